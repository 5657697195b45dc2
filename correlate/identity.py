"""
Identity resolution: map raw upstream accounts to canonical identities and build the actor record.
"""
from typing import Dict, Iterable, List, Mapping

from logconfig import get_logger
from normalize.models import Account, Activity, Identity
from .models import Actor

logger = get_logger(__name__)


def build_account_map(identities: Iterable[Identity]) -> Dict[str, str]:
    """Return account id -> identity id from the identities' linked accounts (first claim wins)."""
    account_map: Dict[str, str] = {}
    for identity in identities:
        for acc in identity.accounts:
            if acc.id and acc.id not in account_map:
                account_map[acc.id] = identity.id
    return account_map


def _identity_actor(identity: Identity) -> Actor:
    return Actor(
        id=identity.id,
        name=identity.display_name or identity.id,
        email=identity.email,
        accounts=[{'id': a.id, 'type': a.type, 'url': a.url} for a in identity.accounts],
    )


def _account_actor(account: Account) -> Actor:
    return Actor(
        id=account.id,
        name=account.name or account.id,
        urls=[{'type': account.type, 'url': account.url}] if account.url else None,
    )


def resolve_identities(
    accounts: Mapping[str, Account],
    identities: List[Identity],
    account_to_identity: Mapping[str, str],
) -> Dict[str, Actor]:
    """Build actor id -> Actor for every known account and identity.

    Accounts mapped to a known identity collapse into that identity's actor, and fill in account URLs the
    identity lacks. Unmapped accounts, or accounts mapped to an unknown identity, become their own actor.
    Identities without any account still get an actor.
    """
    by_id = {identity.id: identity for identity in identities}
    actors: Dict[str, Actor] = {}

    for account_id, account in accounts.items():
        identity = by_id.get(account_to_identity.get(account_id) or '')
        if identity is None:
            if account_to_identity.get(account_id):
                logger.debug("Account %s maps to unknown identity %s", account_id, account_to_identity[account_id])
            actors[account_id] = _account_actor(account)
            continue
        actor = actors.get(identity.id)
        if actor is None:
            actor = _identity_actor(identity)
            actors[identity.id] = actor
        linked = actor.account(account_id)
        if linked is not None and not linked.get('url') and account.url:
            linked['url'] = account.url

    for identity in identities:
        if identity.id not in actors:
            actors[identity.id] = _identity_actor(identity)

    return actors


def resolve_activity_actors(activities: List[Activity], account_to_identity: Mapping[str, str]) -> List[Activity]:
    """Replace each activity's raw account actor id by its identity id, in place. Idempotent."""
    identity_ids = set(account_to_identity.values())
    for activity in activities:
        # an id that is already an identity is never remapped, even if an account shares it
        if activity.actor_id in identity_ids:
            continue
        if activity.actor_id and account_to_identity.get(activity.actor_id):
            activity.actor_id = account_to_identity[activity.actor_id]
    return activities
