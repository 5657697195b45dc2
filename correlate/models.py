"""
Data models for resolved actors and ticket statistics.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class Actor:
    """
    Resolved person: an identity, or a raw account when no identity claims it.
    """

    def __init__(self, id: str, name: str, email: Optional[str] = None, accounts: Optional[List[Dict[str, Any]]] = None, urls: Optional[List[Dict[str, Any]]] = None):
        self.id = id
        self.name = name
        self.email = email
        self.accounts = accounts  # [{'id', 'type', 'url'}] for identity actors
        self.urls = urls  # [{'type', 'url'}] for account actors

    def account(self, account_id: str) -> Optional[Dict[str, Any]]:
        for acc in self.accounts or []:
            if acc.get('id') == account_id:
                return acc
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'name': self.name}
        if self.email is not None:
            data['email'] = self.email
        if self.accounts is not None:
            data['accounts'] = [dict(a) for a in self.accounts]
        if self.urls is not None:
            data['urls'] = [dict(u) for u in self.urls]
        return data

    def __eq__(self, other):
        if not isinstance(other, Actor):
            return NotImplemented
        return self.id == other.id and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Actor(id={self.id!r}, name={self.name!r})"


class TicketStatus(str, Enum):
    NEW = 'new'
    IN_PROGRESS = 'inProgress'
    IN_TESTING = 'inTesting'
    BLOCKED = 'blocked'
    COMPLETED = 'completed'


class Ticket:
    """
    Ticket referenced by activities, with its latest inferred status.
    """

    def __init__(self, key: str, status: Optional[TicketStatus] = None):
        self.key = key
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'key': self.key}
        if self.status is not None:
            data['status'] = self.status.value
        return data

    def __repr__(self):
        return f"Ticket(key={self.key!r}, status={self.status!r})"
