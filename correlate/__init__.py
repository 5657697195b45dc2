"""
Correlate package: resolve identities and link activities to tickets.
"""

from .identity import build_account_map, resolve_activity_actors, resolve_identities
from .linker import apply_priorities, find_first_ticket, find_tickets, infer_priority, infer_ticket_status

__all__ = [
    "apply_priorities",
    "build_account_map",
    "find_first_ticket",
    "find_tickets",
    "infer_priority",
    "infer_ticket_status",
    "resolve_activity_actors",
    "resolve_identities",
]
