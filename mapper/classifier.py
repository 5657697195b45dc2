"""
Activity classification against the compiled initiative and launch item mappers.
"""
from typing import Any, Dict, Iterable, List, Optional

from normalize.models import Activity
from .cache import MapperCache, default_cache
from .expression import CompiledExpression


class Classification:
    """Bucket ids whose rules matched an activity, in rule insertion order."""

    def __init__(self, initiatives: Optional[List[str]] = None, launch_items: Optional[List[str]] = None):
        self.initiatives = initiatives or []
        self.launch_items = launch_items or []

    @property
    def initiative_id(self) -> Optional[str]:
        return self.initiatives[0] if self.initiatives else None

    @property
    def launch_item_id(self) -> Optional[str]:
        return self.launch_items[0] if self.launch_items else None

    def to_dict(self) -> Dict[str, List[str]]:
        return {'initiatives': list(self.initiatives), 'launchItems': list(self.launch_items)}

    def __eq__(self, other):
        if not isinstance(other, Classification):
            return NotImplemented
        return self.initiatives == other.initiatives and self.launch_items == other.launch_items

    def __repr__(self):
        return f"Classification(initiatives={self.initiatives!r}, launch_items={self.launch_items!r})"


def _matching_ids(compiled: Dict[str, CompiledExpression], record: Dict[str, Any]) -> List[str]:
    # only an exact True counts; error instances and other values are non-matches
    return [bucket_id for bucket_id, expression in compiled.items() if expression(record) is True]


def _needs_initiative(activity: Activity) -> bool:
    return not activity.initiative_id


def _needs_launch_item(activity: Activity) -> bool:
    # '' means the user explicitly unset the launch item
    return activity.launch_item_id is None


class ActivityClassifier:
    """Evaluates activities against the rules held by a MapperCache."""

    def __init__(self, cache: Optional[MapperCache] = None):
        self.cache = cache or default_cache

    def classify(self, activity: Any) -> Classification:
        """Return every initiative and launch item whose rule matches. Always evaluates; never raises."""
        record = activity.to_dict() if hasattr(activity, 'to_dict') else (activity or {})
        initiatives, launch_items = self.cache.snapshot()
        return Classification(_matching_ids(initiatives, record), _matching_ids(launch_items, record))

    def apply(self, activity: Activity) -> Activity:
        """Fill initiative_id / launch_item_id from the first matching rule where still unclassified.

        An activity with an initiative keeps it. A launch item of '' was explicitly unset and is kept.
        """
        want_initiative = _needs_initiative(activity)
        want_launch_item = _needs_launch_item(activity)
        if not (want_initiative or want_launch_item):
            return activity
        mapping = self.classify(activity)
        if want_initiative and mapping.initiative_id:
            activity.initiative_id = mapping.initiative_id
        if want_launch_item and mapping.launch_item_id:
            activity.launch_item_id = mapping.launch_item_id
        return activity

    def apply_all(self, activities: Iterable[Activity]) -> int:
        """Apply to each activity and return how many got a new initiative or launch item."""
        changed = 0
        for activity in activities:
            before = (activity.initiative_id, activity.launch_item_id)
            self.apply(activity)
            if (activity.initiative_id, activity.launch_item_id) != before:
                changed += 1
        return changed


def classify_activity(activity: Any) -> Classification:
    """Classify with the shared default cache."""
    return ActivityClassifier(default_cache).classify(activity)


def map_activity(activity: Activity) -> Activity:
    """Apply the classification policy with the shared default cache."""
    return ActivityClassifier(default_cache).apply(activity)
