"""
Activity grouping: fold a collection of classified activities into the rollups shown on dashboards.
"""
from typing import Any, Dict, Iterable, List, Optional, Set

from correlate.linker import find_tickets, infer_ticket_status
from correlate.models import Ticket, TicketStatus
from normalize.models import Activity
from .utils import (
    ARTIFACTS,
    DEFAULT_TOP_ACTORS_LIMIT,
    PHASES,
    build_artifact_action_key,
    rank_with_others,
)


class BucketRollup:
    """
    Counters for one initiative or launch item.
    The distinct actor set is internal; only actor_count is exposed once the rollup is finalized.
    """

    def __init__(self, id: str, key: str = ''):
        self.id = id
        self.key = key
        self.artifact_count: Dict[str, int] = {a: 0 for a in ARTIFACTS}
        self.phase_count: Dict[str, int] = {p: 0 for p in PHASES}
        self.actor_count = 0
        self.effort = 0.0
        self._actor_ids: Optional[Set[str]] = set()

    def add(self, activity: Activity, count_phase: bool):
        if activity.artifact in self.artifact_count:
            self.artifact_count[activity.artifact] += 1
        if count_phase and activity.phase in self.phase_count:
            self.phase_count[activity.phase] += 1
        if activity.actor_id is not None:
            self._actor_ids.add(activity.actor_id)
        self.effort += activity.effort or 0

    def finalize(self):
        self.actor_count = len(self._actor_ids or ())
        self._actor_ids = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'key': self.key,
            'artifactCount': dict(self.artifact_count),
            'phaseCount': dict(self.phase_count),
            'actorCount': self.actor_count,
            'effort': self.effort,
        }


class GroupedActivities:
    """
    Result of group_activities().

    top_actors: artifact-action key -> [{'id', 'count'}], at most the limit plus an 'others' entry
    priorities: [{'id': priority, 'count'}] sorted by descending priority value
    initiatives / launch_items: BucketRollup lists in first-seen order
    """

    def __init__(self, top_actors: Dict[str, List[Dict[str, Any]]], priorities: List[Dict[str, int]], initiatives: List[BucketRollup], launch_items: List[BucketRollup]):
        self.top_actors = top_actors
        self.priorities = priorities
        self.initiatives = initiatives
        self.launch_items = launch_items

    def initiative(self, initiative_id: str) -> Optional[BucketRollup]:
        return next((i for i in self.initiatives if i.id == initiative_id), None)

    def launch_item(self, launch_item_id: str) -> Optional[BucketRollup]:
        return next((i for i in self.launch_items if i.id == launch_item_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'topActors': {k: [dict(a) for a in v] for k, v in self.top_actors.items()},
            'priorities': [dict(p) for p in self.priorities],
            'initiatives': [i.to_dict() for i in self.initiatives],
            'launchItems': [i.to_dict() for i in self.launch_items],
        }


def _count_top_actor(top_actors: Dict[str, Dict[str, Dict[str, Any]]], activity: Activity):
    key = build_artifact_action_key(activity.artifact, activity.action)
    actors = top_actors.setdefault(key, {})
    entry = actors.get(activity.actor_id)
    if entry is None:
        entry = {'id': activity.actor_id, 'count': 0}
        actors[activity.actor_id] = entry
    entry['count'] += 1


def _rollup_for(rollups: Dict[str, BucketRollup], bucket_id: str) -> BucketRollup:
    rollup = rollups.get(bucket_id)
    if rollup is None:
        rollup = BucketRollup(bucket_id)
        rollups[bucket_id] = rollup
    return rollup


def group_activities(activities: Iterable[Activity], top_actors_limit: int = DEFAULT_TOP_ACTORS_LIMIT) -> GroupedActivities:
    """Compute top actors, priority histogram, and initiative and launch item rollups in one pass."""
    top_actors: Dict[str, Dict[str, Dict[str, Any]]] = {}
    priority_counts: Dict[int, int] = {}
    initiatives: Dict[str, BucketRollup] = {}
    launch_items: Dict[str, BucketRollup] = {}

    for activity in activities:
        if activity.actor_id is not None:
            _count_top_actor(top_actors, activity)

        if activity.priority is not None and activity.priority != -1:
            priority_counts[activity.priority] = priority_counts.get(activity.priority, 0) + 1

        if activity.initiative_id:
            # phases are only tracked for launch items
            _rollup_for(initiatives, activity.initiative_id).add(activity, count_phase=False)

        if activity.launch_item_id:
            _rollup_for(launch_items, activity.launch_item_id).add(activity, count_phase=True)

    for rollup in list(initiatives.values()) + list(launch_items.values()):
        rollup.finalize()

    return GroupedActivities(
        top_actors={key: rank_with_others(list(actors.values()), top_actors_limit) for key, actors in top_actors.items()},
        priorities=[{'id': p, 'count': priority_counts[p]} for p in sorted(priority_counts, reverse=True)],
        initiatives=list(initiatives.values()),
        launch_items=list(launch_items.values()),
    )


class InitiativeTickets:
    """
    Tickets touched for one initiative, with the summed effort of its activities (None if none had effort).
    """

    def __init__(self, initiative_id: str):
        self.initiative_id = initiative_id
        self.tickets: Dict[str, Ticket] = {}
        self.effort: Optional[float] = None

    def status_counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in TicketStatus}
        for ticket in self.tickets.values():
            if ticket.status is not None:
                counts[ticket.status.value] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'initiativeId': self.initiative_id,
            'tickets': [t.to_dict() for t in self.tickets.values()],
            'statusCount': self.status_counts(),
        }
        if self.effort is not None:
            data['effort'] = self.effort
        return data


def _record_ticket(tickets: Dict[str, Ticket], key: str, status: Optional[TicketStatus]):
    ticket = tickets.get(key)
    if ticket is None:
        ticket = Ticket(key)
        tickets[key] = ticket
    # latest activity wins
    ticket.status = status


def group_actor_activities(
    activities: Iterable[Activity],
    key_pattern: Optional[str] = None,
    status_map: Optional[Dict[str, TicketStatus]] = None,
) -> Dict[str, Any]:
    """Collect referenced tickets (overall and per initiative) with their latest inferred status.

    Returns {'tickets': [Ticket], 'initiatives': [InitiativeTickets]}.
    """
    tickets: Dict[str, Ticket] = {}
    initiatives: Dict[str, InitiativeTickets] = {}

    for activity in sorted(activities, key=lambda a: a.timestamp or 0):
        keys = find_tickets(activity.metadata, activity.description, key_pattern)
        status = TicketStatus.IN_PROGRESS if activity.ongoing else infer_ticket_status(activity.metadata, status_map)
        for key in keys:
            _record_ticket(tickets, key, status)

        if not activity.initiative_id:
            continue
        initiative = initiatives.get(activity.initiative_id)
        if initiative is None:
            initiative = InitiativeTickets(activity.initiative_id)
            initiatives[activity.initiative_id] = initiative
        for key in keys:
            _record_ticket(initiative.tickets, key, status)
        if activity.effort is not None:
            initiative.effort = (initiative.effort or 0) + activity.effort

    return {'tickets': list(tickets.values()), 'initiatives': list(initiatives.values())}
