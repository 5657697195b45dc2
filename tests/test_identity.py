import unittest

from correlate.identity import build_account_map, resolve_activity_actors, resolve_identities
from correlate.models import Actor
from normalize.models import Account, Activity, Identity, IdentityAccount


def _identities():
    return [
        Identity(
            'id-alice',
            display_name='Alice',
            email='alice@example.com',
            accounts=[
                IdentityAccount('gh-alice', 'github'),
                IdentityAccount('jira-alice', 'jira', url='https://jira.example.com/alice'),
            ],
        ),
        Identity('id-bob', accounts=[IdentityAccount('gh-bob', 'github')]),
        Identity('id-carol', display_name='Carol'),
    ]


class TestBuildAccountMap(unittest.TestCase):
    def test_maps_linked_accounts(self):
        self.assertEqual(build_account_map(_identities()), {
            'gh-alice': 'id-alice',
            'jira-alice': 'id-alice',
            'gh-bob': 'id-bob',
        })

    def test_first_claim_wins(self):
        identities = _identities() + [Identity('id-dup', accounts=[IdentityAccount('gh-bob', 'github')])]
        self.assertEqual(build_account_map(identities)['gh-bob'], 'id-bob')


class TestResolveIdentities(unittest.TestCase):
    def setUp(self):
        self.identities = _identities()
        self.account_map = build_account_map(self.identities)
        self.accounts = {
            'gh-alice': Account('gh-alice', 'github', name='alice', url='https://github.com/alice'),
            'jira-alice': Account('jira-alice', 'jira', url='https://jira.example.com/other'),
            'gh-bob': Account('gh-bob', 'github'),
            'gh-eve': Account('gh-eve', 'github', name='eve', url='https://github.com/eve'),
            'gh-zed': Account('gh-zed', 'github'),
        }

    def test_accounts_collapse_into_identity(self):
        actors = resolve_identities(self.accounts, self.identities, self.account_map)
        alice = actors['id-alice']
        self.assertEqual(alice.name, 'Alice')
        self.assertEqual(alice.email, 'alice@example.com')
        self.assertEqual([a['id'] for a in alice.accounts], ['gh-alice', 'jira-alice'])
        self.assertNotIn('gh-alice', actors)
        self.assertNotIn('jira-alice', actors)

    def test_url_backfilled_only_when_missing(self):
        alice = resolve_identities(self.accounts, self.identities, self.account_map)['id-alice']
        self.assertEqual(alice.account('gh-alice')['url'], 'https://github.com/alice')
        self.assertEqual(alice.account('jira-alice')['url'], 'https://jira.example.com/alice')

    def test_identity_without_display_name_uses_id(self):
        actors = resolve_identities(self.accounts, self.identities, self.account_map)
        self.assertEqual(actors['id-bob'].name, 'id-bob')

    def test_unmapped_account_is_its_own_actor(self):
        actors = resolve_identities(self.accounts, self.identities, self.account_map)
        self.assertEqual(actors['gh-eve'], Actor('gh-eve', 'eve', urls=[{'type': 'github', 'url': 'https://github.com/eve'}]))
        self.assertEqual(actors['gh-zed'].name, 'gh-zed')
        self.assertIsNone(actors['gh-zed'].urls)

    def test_unknown_identity_falls_back_to_account(self):
        actors = resolve_identities(self.accounts, self.identities, dict(self.account_map, **{'gh-zed': 'id-ghost'}))
        self.assertIn('gh-zed', actors)
        self.assertNotIn('id-ghost', actors)

    def test_identity_without_accounts_gets_actor(self):
        actors = resolve_identities({}, self.identities, self.account_map)
        self.assertEqual(set(actors), {'id-alice', 'id-bob', 'id-carol'})
        self.assertEqual(actors['id-carol'].accounts, [])
        self.assertEqual(actors['id-carol'].to_dict(), {'name': 'Carol', 'accounts': []})


class TestResolveActivityActors(unittest.TestCase):
    def test_replaces_account_ids(self):
        account_map = build_account_map(_identities())
        activities = [
            Activity('a1', 'created', 'code', actor_id='gh-alice'),
            Activity('a2', 'created', 'task', actor_id='jira-alice'),
            Activity('a3', 'created', 'code', actor_id='gh-eve'),
            Activity('a4', 'created', 'code'),
        ]
        result = resolve_activity_actors(activities, account_map)
        self.assertIs(result, activities)
        self.assertEqual([a.actor_id for a in activities], ['id-alice', 'id-alice', 'gh-eve', None])

    def test_idempotent(self):
        # an identity id that is also some account's id must not be remapped on a second pass
        account_map = {'acc-1': 'u1', 'u1': 'u2'}
        activities = [Activity('a1', 'created', 'code', actor_id='acc-1')]
        resolve_activity_actors(activities, account_map)
        self.assertEqual(activities[0].actor_id, 'u1')
        resolve_activity_actors(activities, account_map)
        self.assertEqual(activities[0].actor_id, 'u1')


if __name__ == '__main__':
    unittest.main()
