"""
Ticket linking heuristics: find Jira-style ticket keys referenced by an activity and infer
its priority and the ticket status from them.
- the issue key of a Jira activity is authoritative
- priority: otherwise the first key in the PR ref, then in each commit message
- ticket rollups: also the PR title and the description
"""
import re
from typing import Any, Dict, List, Mapping, Optional

from normalize.models import Activity
from normalize.util import commit_messages, issue_key, issue_status_name, pull_request_ref, pull_request_title
from .models import TicketStatus

DEFAULT_TICKET_PATTERN = r"[A-Z][A-Z0-9]+-[0-9]+"
UNKNOWN_PRIORITY = -1

DEFAULT_TICKET_STATUS_MAP: Dict[str, TicketStatus] = {
    'To Do': TicketStatus.NEW,
    'Backlog': TicketStatus.NEW,
    'Development Backlog': TicketStatus.NEW,
    'Selected for Development': TicketStatus.IN_PROGRESS,
    'In Development': TicketStatus.IN_PROGRESS,
    'In Progress': TicketStatus.IN_PROGRESS,
    'Code Review': TicketStatus.IN_PROGRESS,
    'Work in progress': TicketStatus.IN_PROGRESS,
    'Pending closure': TicketStatus.IN_PROGRESS,
    'Ready for Regression': TicketStatus.IN_TESTING,
    'In Regression': TicketStatus.IN_TESTING,
    'In QA': TicketStatus.IN_TESTING,
    'Ready for Release': TicketStatus.IN_TESTING,
    'Blocked': TicketStatus.BLOCKED,
    'Waiting for support': TicketStatus.BLOCKED,
    'Pending Customer': TicketStatus.BLOCKED,
    'Done': TicketStatus.COMPLETED,
    'Closed': TicketStatus.COMPLETED,
    'Rejected': TicketStatus.COMPLETED,
}


def find_ticket_keys_in_text(text: Optional[str], key_pattern: Optional[str] = None) -> List[str]:
    """Return the distinct ticket keys in text, in order of appearance."""
    if not isinstance(text, str) or not text:
        return []
    pattern = re.compile(key_pattern or DEFAULT_TICKET_PATTERN)
    keys: List[str] = []
    for m in pattern.finditer(text):
        if m.group(0) not in keys:
            keys.append(m.group(0))
    return keys


def _priority_texts(metadata: Optional[Dict[str, Any]]) -> List[str]:
    texts = [pull_request_ref(metadata)]
    texts.extend(commit_messages(metadata))
    return [t for t in texts if t]


def _scanned_texts(metadata: Optional[Dict[str, Any]], description: Optional[str]) -> List[str]:
    texts = [pull_request_ref(metadata), pull_request_title(metadata)]
    texts.extend(commit_messages(metadata))
    texts.append(description)
    return [t for t in texts if t]


def find_first_ticket(metadata: Optional[Dict[str, Any]], key_pattern: Optional[str] = None) -> Optional[str]:
    """Return the ticket key that decides an activity's priority, or None.

    The issue key when there is one, else the first key in the PR ref, then in each commit message.
    """
    key = issue_key(metadata)
    if key:
        return key
    for text in _priority_texts(metadata):
        keys = find_ticket_keys_in_text(text, key_pattern)
        if keys:
            return keys[0]
    return None


def find_tickets(metadata: Optional[Dict[str, Any]], description: Optional[str] = None, key_pattern: Optional[str] = None) -> List[str]:
    """Return every ticket key referenced by an activity; the issue key alone when there is one."""
    key = issue_key(metadata)
    if key:
        return [key]
    tickets: List[str] = []
    for text in _scanned_texts(metadata, description):
        for k in find_ticket_keys_in_text(text, key_pattern):
            if k not in tickets:
                tickets.append(k)
    return tickets


def infer_priority(tickets: Mapping[str, Optional[int]], metadata: Optional[Dict[str, Any]], key_pattern: Optional[str] = None) -> int:
    """Priority of the first ticket referenced by an activity, or -1.

    Only the first reference is looked up: when it is missing from tickets the result is -1,
    later references are not tried.
    """
    ticket = find_first_ticket(metadata, key_pattern)
    if not ticket:
        return UNKNOWN_PRIORITY
    priority = tickets.get(ticket)
    return priority if priority is not None else UNKNOWN_PRIORITY


def has_priority(activity: Activity) -> bool:
    return activity.priority is not None and activity.priority != UNKNOWN_PRIORITY


def apply_priorities(activities: List[Activity], tickets: Mapping[str, Optional[int]], key_pattern: Optional[str] = None) -> int:
    """Fill the priority of activities lacking one from the ticket table. Returns how many were set."""
    updated = 0
    for activity in activities:
        if has_priority(activity):
            continue
        priority = infer_priority(tickets, activity.metadata, key_pattern)
        activity.priority = priority
        if priority != UNKNOWN_PRIORITY:
            updated += 1
    return updated


def infer_ticket_status(metadata: Optional[Dict[str, Any]], status_map: Optional[Mapping[str, TicketStatus]] = None) -> Optional[TicketStatus]:
    """Map the issue status name to a TicketStatus; code activity without an issue status means in progress."""
    if not isinstance(metadata, dict):
        return None
    status_name = issue_status_name(metadata)
    if not status_name:
        if metadata.get('commits') or metadata.get('pullRequest') or metadata.get('pullRequestComment'):
            return TicketStatus.IN_PROGRESS
        return None
    return (status_map or DEFAULT_TICKET_STATUS_MAP).get(status_name)
