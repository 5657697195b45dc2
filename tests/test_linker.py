import unittest
from correlate.linker import (
    UNKNOWN_PRIORITY,
    apply_priorities,
    find_first_ticket,
    find_ticket_keys_in_text,
    find_tickets,
    infer_priority,
    infer_ticket_status,
)
from correlate.models import TicketStatus
from normalize.models import Activity


class TestLinker(unittest.TestCase):
    def test_find_keys(self):
        text = "Fixed PROJ-123 and addressed PROJ-456 in this change, see PROJ-123"
        self.assertEqual(find_ticket_keys_in_text(text), ['PROJ-123', 'PROJ-456'])
        self.assertEqual(find_ticket_keys_in_text(None), [])
        self.assertEqual(find_ticket_keys_in_text('lowercase abc-1 only'), [])

    def test_custom_pattern(self):
        self.assertEqual(find_ticket_keys_in_text('T#12 and T#7', r'T#[0-9]+'), ['T#12', 'T#7'])

    def test_issue_key_is_authoritative(self):
        metadata = {'issue': {'key': 'ABC-1'}, 'pullRequest': {'ref': 'XYZ-2-branch'}}
        self.assertEqual(find_first_ticket(metadata), 'ABC-1')
        self.assertEqual(find_tickets(metadata, 'DEF-3'), ['ABC-1'])

    def test_search_order(self):
        metadata = {
            'pullRequest': {'ref': 'feature/no-ticket', 'title': 'PRJ-5 title'},
            'commits': [{'message': 'PRJ-6 first'}, {'message': 'PRJ-7 second'}],
        }
        self.assertEqual(find_first_ticket(metadata), 'PRJ-6')
        self.assertEqual(find_tickets(metadata, 'PRJ-8 and PRJ-5'), ['PRJ-5', 'PRJ-6', 'PRJ-7', 'PRJ-8'])
        self.assertEqual(find_first_ticket({'pullRequest': {'ref': 'PRJ-9-fix'}}), 'PRJ-9')
        self.assertIsNone(find_first_ticket({'pullRequest': {'title': 'PRJ-10 only in title'}}))
        self.assertIsNone(find_first_ticket({'commits': 'not-a-list'}))


class TestInferPriority(unittest.TestCase):
    def test_known_ticket(self):
        self.assertEqual(infer_priority({'ABC-1': 2}, {'issue': {'key': 'ABC-1'}}), 2)
        self.assertEqual(infer_priority({'ABC-1': 4}, {'commits': [{'message': 'ABC-1 fix'}]}), 4)

    def test_unknown_ticket(self):
        self.assertEqual(infer_priority({'XYZ-1': 2}, {'issue': {'key': 'ABC-999'}}), UNKNOWN_PRIORITY)
        self.assertEqual(infer_priority({'XYZ-1': 2}, {}), UNKNOWN_PRIORITY)
        self.assertEqual(infer_priority({'XYZ-1': None}, {'issue': {'key': 'XYZ-1'}}), UNKNOWN_PRIORITY)

    def test_first_reference_only(self):
        # the first reference misses the table, a later one would match but is not tried
        metadata = {'pullRequest': {'ref': 'ABC-999-branch'}, 'commits': [{'message': 'XYZ-1'}]}
        self.assertEqual(infer_priority({'XYZ-1': 2}, metadata), UNKNOWN_PRIORITY)

    def test_title_is_not_a_priority_source(self):
        metadata = {
            'pullRequest': {'ref': 'feature/x', 'title': 'ABC-5 cleanup'},
            'commits': [{'message': 'XYZ-1 fix'}],
        }
        self.assertEqual(infer_priority({'XYZ-1': 2}, metadata), 2)
        self.assertEqual(infer_priority({'ABC-5': 1}, metadata), UNKNOWN_PRIORITY)

    def test_malformed_metadata_values(self):
        metadata = {'issue': {'key': 42}, 'pullRequest': {'ref': 7, 'title': {'text': 'ABC-1'}}}
        self.assertEqual(infer_priority({'ABC-1': 1}, metadata), UNKNOWN_PRIORITY)
        self.assertEqual(find_tickets(metadata, 12), [])
        self.assertIsNone(infer_ticket_status({'issue': {'status': {'name': ['Done']}}}))

    def test_apply_priorities(self):
        activities = [
            Activity('a1', 'created', 'task', metadata={'issue': {'key': 'ABC-1'}}),
            Activity('a2', 'created', 'code', metadata={'issue': {'key': 'ABC-1'}}, priority=5),
            Activity('a3', 'created', 'code', description='nothing here'),
            Activity('a4', 'created', 'code', metadata={'commits': [{'message': 'ABC-1'}]}, priority=UNKNOWN_PRIORITY),
            Activity('a5', 'created', 'code', description='ABC-1'),
        ]
        self.assertEqual(apply_priorities(activities, {'ABC-1': 1}), 2)
        self.assertEqual([a.priority for a in activities], [1, 5, UNKNOWN_PRIORITY, 1, UNKNOWN_PRIORITY])


class TestTicketStatus(unittest.TestCase):
    def test_status_map(self):
        self.assertEqual(infer_ticket_status({'issue': {'status': {'name': 'Done'}}}), TicketStatus.COMPLETED)
        self.assertEqual(infer_ticket_status({'issue': {'status': {'name': 'In QA'}}}), TicketStatus.IN_TESTING)
        self.assertIsNone(infer_ticket_status({'issue': {'status': {'name': 'Mystery'}}}))
        custom = {'Mystery': TicketStatus.BLOCKED}
        self.assertEqual(infer_ticket_status({'issue': {'status': {'name': 'Mystery'}}}, custom), TicketStatus.BLOCKED)

    def test_code_activity_is_in_progress(self):
        self.assertEqual(infer_ticket_status({'pullRequest': {'ref': 'x'}}), TicketStatus.IN_PROGRESS)
        self.assertIsNone(infer_ticket_status({'page': {'id': 'p'}}))
        self.assertIsNone(infer_ticket_status(None))


if __name__ == '__main__':
    unittest.main()
