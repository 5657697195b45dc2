"""
Scoring utility functions.
Provides settings loading, artifact/phase constants and small aggregation helpers used by scoring.grouper.
"""
from typing import Dict, Any, Iterable, List, Optional, Tuple
import os
import importlib.util

from correlate.linker import DEFAULT_TICKET_PATTERN, DEFAULT_TICKET_STATUS_MAP
from correlate.models import TicketStatus
from logconfig import get_logger
from normalize.models import Activity, Artifact, Phase

logger = get_logger(__name__)

# filename used for the YAML settings
SETTINGS_FILENAME = 'settings.yaml'

TOP_ACTORS_OTHERS_ID = 'TOP_ACTORS_OTHERS'
DEFAULT_TOP_ACTORS_LIMIT = 10

ARTIFACTS: Tuple[str, ...] = tuple(a.value for a in Artifact)
PHASES: Tuple[str, ...] = tuple(p.value for p in Phase)

# artifact-action key -> display order and label
ARTIFACT_ACTIONS: Dict[str, Dict[str, Any]] = {
    'task-created': {'sort_order': 1, 'label': 'Task created'},
    'task-updated': {'sort_order': 2, 'label': 'Task updated'},
    'task-deleted': {'sort_order': 3, 'label': 'Task deleted'},
    'taskOrg-created': {'sort_order': 4, 'label': 'Task org. created'},
    'taskOrg-updated': {'sort_order': 5, 'label': 'Task org. updated'},
    'code-created': {'sort_order': 6, 'label': 'Code'},
    'code-updated': {'sort_order': 7, 'label': 'Code review'},
    'code-deleted': {'sort_order': 8, 'label': 'Code deleted'},
    'code-unknown': {'sort_order': 9, 'label': 'Code misc.'},
    'codeOrg-created': {'sort_order': 10, 'label': 'Code org. created'},
    'codeOrg-updated': {'sort_order': 11, 'label': 'Code org. updated'},
    'codeOrg-deleted': {'sort_order': 12, 'label': 'Code org. deleted'},
    'docOrg-created': {'sort_order': 13, 'label': 'Doc org. created'},
    'doc-created': {'sort_order': 14, 'label': 'Doc created'},
    'doc-updated': {'sort_order': 15, 'label': 'Doc updated'},
}

DEFAULT_SETTINGS: Dict[str, Any] = {
    'top_actors_limit': DEFAULT_TOP_ACTORS_LIMIT,
    'ticket_key_pattern': DEFAULT_TICKET_PATTERN,
    'ticket_status_map': dict(DEFAULT_TICKET_STATUS_MAP),
    'log_level': 'INFO',
}


def default_settings_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), 'config', SETTINGS_FILENAME)


def _read_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path) or importlib.util.find_spec('yaml') is None:
        return {}
    import yaml
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as ex:
        logger.warning("Ignoring unreadable settings file %s: %s", path, ex)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a mapping", path)
        return {}
    return data


def _status_map(raw: Any) -> Dict[str, TicketStatus]:
    merged = dict(DEFAULT_TICKET_STATUS_MAP)
    if not isinstance(raw, dict):
        return merged
    for name, value in raw.items():
        try:
            merged[str(name)] = TicketStatus(value)
        except ValueError:
            logger.warning("Unknown ticket status %r for %r in settings", value, name)
    return merged


def load_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load settings from a YAML file if available, merged over defaults, then apply ACTIVITY_* environment overrides.
    Unreadable files and invalid values fall back to defaults.
    """
    data = _read_yaml(path or default_settings_path())
    settings = dict(DEFAULT_SETTINGS)

    limit = os.getenv('ACTIVITY_TOP_ACTORS_LIMIT', data.get('top_actors_limit'))
    if limit is not None:
        try:
            settings['top_actors_limit'] = max(0, int(limit))
        except (TypeError, ValueError):
            logger.warning("Invalid top_actors_limit %r, using %d", limit, DEFAULT_TOP_ACTORS_LIMIT)

    pattern = data.get('ticket_key_pattern')
    if isinstance(pattern, str) and pattern:
        settings['ticket_key_pattern'] = pattern

    settings['ticket_status_map'] = _status_map(data.get('ticket_status_map'))
    settings['log_level'] = str(os.getenv('ACTIVITY_LOG_LEVEL') or data.get('log_level') or 'INFO').upper()
    return settings


def build_artifact_action_key(artifact: Optional[str], action: Optional[str]) -> str:
    return f"{artifact}-{action}"


def artifact_action_label(key: str) -> str:
    entry = ARTIFACT_ACTIONS.get(key)
    return entry['label'] if entry else key


def artifact_action_sort_key(key: str) -> Tuple[int, str]:
    entry = ARTIFACT_ACTIONS.get(key)
    return (entry['sort_order'] if entry else len(ARTIFACT_ACTIONS) + 1, key)


def activities_total_effort(activities: Iterable[Activity]) -> Optional[float]:
    """Sum of effort over activities that have one; None when none has."""
    efforts = [a.effort for a in activities if a.effort is not None]
    return sum(efforts) if efforts else None


def rank_with_others(counts: List[Dict[str, Any]], limit: int = DEFAULT_TOP_ACTORS_LIMIT, others_id: str = TOP_ACTORS_OTHERS_ID) -> List[Dict[str, Any]]:
    """Sort {'id', 'count'} entries by descending count, keep limit, and sum the rest into an 'others' entry.

    The sort is stable: equal counts keep their first-seen order. The others entry is omitted when its sum is 0.
    """
    ranked = sorted(counts, key=lambda c: c['count'], reverse=True)
    others = sum(c['count'] for c in ranked[limit:])
    top = ranked[:limit]
    if others > 0:
        top.append({'id': others_id, 'count': others})
    return top
