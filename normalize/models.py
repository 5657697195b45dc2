"""
Unified data models for activities, accounts, identities and rule buckets.
"""

from enum import Enum
from typing import List, Optional, Dict, Any


class Artifact(str, Enum):
    CODE = 'code'
    CODE_ORG = 'codeOrg'
    TASK = 'task'
    TASK_ORG = 'taskOrg'
    DOC = 'doc'
    DOC_ORG = 'docOrg'


class Phase(str, Enum):
    DESIGN = 'design'
    DEV = 'dev'
    TEST = 'test'
    DEPLOY = 'deploy'
    STABILIZE = 'stabilize'
    OPS = 'ops'


class Activity:
    """
    One observed event from an upstream feed (GitHub, Jira, Confluence).

    initiative_id / launch_item_id: None means not classified yet, '' means a user explicitly unset it.
    priority: 1 (highest) to 5 (lowest); None or -1 means unknown.
    """
    def __init__(
        self,
        id: str,
        action: str,
        artifact: str,
        timestamp: int = 0,
        created_timestamp: Optional[int] = None,
        actor_id: Optional[str] = None,
        event: Optional[str] = None,
        event_type: Optional[str] = None,
        initiative_id: Optional[str] = None,
        launch_item_id: Optional[str] = None,
        priority: Optional[int] = None,
        phase: Optional[str] = None,
        effort: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
        note: Optional[str] = None,
        combined_ids: Optional[List[str]] = None,
        ongoing: bool = False,
    ):
        self.id = id
        self.action = action
        self.artifact = artifact
        self.timestamp = timestamp
        self.created_timestamp = created_timestamp if created_timestamp is not None else timestamp
        self.actor_id = actor_id
        self.event = event
        self.event_type = event_type  # jira/github/confluence
        self.initiative_id = initiative_id
        self.launch_item_id = launch_item_id
        self.priority = priority
        self.phase = phase
        self.effort = effort
        self.metadata = metadata  # issue, pullRequest, commits, comment, changeLog, attachment(s), page, ...
        self.description = description
        self.note = note
        self.combined_ids = combined_ids
        self.ongoing = ongoing

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase record that activity mapper rules are evaluated against."""
        record = {
            'id': self.id,
            'action': self.action,
            'artifact': self.artifact,
            'timestamp': self.timestamp,
            'createdTimestamp': self.created_timestamp,
            'actorId': self.actor_id,
            'event': self.event,
            'eventType': self.event_type,
            'initiativeId': self.initiative_id,
            'launchItemId': self.launch_item_id,
            'priority': self.priority,
            'phase': self.phase,
            'effort': self.effort,
            'metadata': self.metadata,
            'description': self.description,
            'note': self.note,
        }
        if self.combined_ids:
            record['combinedIds'] = list(self.combined_ids)
        if self.ongoing:
            record['ongoing'] = True
        return record

    def __repr__(self):
        return f"Activity(id={self.id!r}, artifact={self.artifact!r}, action={self.action!r}, actor_id={self.actor_id!r})"


class Account:
    """
    Raw upstream account (a GitHub login, a Jira/Confluence account id).
    """
    def __init__(self, id: str, type: str, name: Optional[str] = None, url: Optional[str] = None):
        self.id = id
        self.type = type
        self.name = name
        self.url = url


class IdentityAccount:
    """
    Account linked to an identity.
    """
    def __init__(self, id: str, type: str, feed_id: Optional[int] = None, name: Optional[str] = None, url: Optional[str] = None):
        self.id = id
        self.type = type
        self.feed_id = feed_id
        self.name = name
        self.url = url


class Identity:
    """
    Canonical person record merging one or more upstream accounts.
    """
    def __init__(
        self,
        id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
        accounts: Optional[List[IdentityAccount]] = None,
        manager_id: Optional[str] = None,
        report_ids: Optional[List[str]] = None,
    ):
        self.id = id
        self.display_name = display_name
        self.email = email
        self.accounts = accounts or []
        self.manager_id = manager_id
        self.report_ids = report_ids or []


class Bucket:
    """
    Classification target (an initiative or a launch item) with its optional activity mapper rule.
    """
    def __init__(self, id: str, key: str = '', label: Optional[str] = None, color: Optional[str] = None, activity_mapper: Optional[str] = None):
        self.id = id
        self.key = key
        self.label = label
        self.color = color
        self.activity_mapper = activity_mapper
