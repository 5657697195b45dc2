"""
Normalization utility helpers.
Small helpers to normalize raw store documents into normalize.models entities, plus typed accessors for activity metadata.
"""
from typing import Dict, Any, List, Optional, Union
from normalize.models import Activity, Account, Identity, IdentityAccount, Bucket


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float_or_none(value: Any) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_activity(raw: Dict[str, Any], activity_id: Optional[str] = None) -> Activity:
    """Create an Activity from a raw camelCase document.
    Missing optional fields become None; initiativeId/launchItemId keep the None vs '' distinction.
    """
    timestamp = _int_or_none(raw.get('timestamp'))
    created = _int_or_none(raw.get('createdTimestamp'))
    if timestamp is None:
        timestamp = created or 0
    metadata = raw.get('metadata')
    return Activity(
        id=str(activity_id or raw.get('id') or ''),
        action=raw.get('action') or 'unknown',
        artifact=raw.get('artifact') or '',
        timestamp=timestamp,
        created_timestamp=created,
        actor_id=raw.get('actorId'),
        event=raw.get('event'),
        event_type=raw.get('eventType'),
        initiative_id=raw.get('initiativeId'),
        launch_item_id=raw.get('launchItemId'),
        priority=_int_or_none(raw.get('priority')),
        phase=raw.get('phase') or None,
        effort=_float_or_none(raw.get('effort')),
        metadata=metadata if isinstance(metadata, dict) else None,
        description=raw.get('description'),
        note=raw.get('note'),
        combined_ids=raw.get('combinedIds'),
        ongoing=bool(raw.get('ongoing')),
    )


def normalize_activities(raw: Union[List[Dict[str, Any]], Dict[str, Dict[str, Any]]]) -> List[Activity]:
    """Normalize either a list of documents or a mapping id -> document."""
    if isinstance(raw, dict):
        return [normalize_activity(doc, activity_id) for activity_id, doc in raw.items() if isinstance(doc, dict)]
    return [normalize_activity(doc) for doc in raw or [] if isinstance(doc, dict)]


def normalize_account(raw: Dict[str, Any], account_id: Optional[str] = None) -> Account:
    return Account(
        id=str(account_id or raw.get('id') or ''),
        type=raw.get('type') or '',
        name=raw.get('name') or raw.get('displayName'),
        url=raw.get('url'),
    )


def normalize_accounts(raw: Union[List[Dict[str, Any]], Dict[str, Dict[str, Any]]]) -> Dict[str, Account]:
    """Return an ordered mapping account id -> Account from a list or a mapping of documents."""
    if isinstance(raw, dict):
        items = [normalize_account(doc, account_id) for account_id, doc in raw.items() if isinstance(doc, dict)]
    else:
        items = [normalize_account(doc) for doc in raw or [] if isinstance(doc, dict)]
    return {a.id: a for a in items if a.id}


def normalize_identity(raw: Dict[str, Any], identity_id: Optional[str] = None) -> Identity:
    accounts = []
    for acc in raw.get('accounts') or []:
        if not isinstance(acc, dict) or not acc.get('id'):
            continue
        accounts.append(
            IdentityAccount(
                id=str(acc['id']),
                type=acc.get('type') or '',
                feed_id=_int_or_none(acc.get('feedId')),
                name=acc.get('name'),
                url=acc.get('url'),
            )
        )
    return Identity(
        id=str(identity_id or raw.get('id') or ''),
        display_name=raw.get('displayName'),
        email=raw.get('email'),
        accounts=accounts,
        manager_id=raw.get('managerId'),
        report_ids=list(raw.get('reportIds') or []),
    )


def normalize_identities(raw: Union[List[Dict[str, Any]], Dict[str, Dict[str, Any]]]) -> List[Identity]:
    if isinstance(raw, dict):
        return [normalize_identity(doc, identity_id) for identity_id, doc in raw.items() if isinstance(doc, dict)]
    return [normalize_identity(doc) for doc in raw or [] if isinstance(doc, dict)]


def normalize_bucket(raw: Dict[str, Any], bucket_id: Optional[str] = None) -> Bucket:
    return Bucket(
        id=str(bucket_id or raw.get('id') or ''),
        key=raw.get('key') or '',
        label=raw.get('label'),
        color=raw.get('color'),
        activity_mapper=raw.get('activityMapper') or None,
    )


def normalize_buckets(raw: Union[List[Dict[str, Any]], Dict[str, Dict[str, Any]]]) -> Dict[str, Bucket]:
    """Return an ordered mapping bucket id -> Bucket (initiatives or launch items)."""
    if isinstance(raw, dict):
        items = [normalize_bucket(doc, bucket_id) for bucket_id, doc in raw.items() if isinstance(doc, dict)]
    else:
        items = [normalize_bucket(doc) for doc in raw or [] if isinstance(doc, dict)]
    return {b.id: b for b in items if b.id}


# --- metadata accessors ---

def _section(metadata: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    if not isinstance(metadata, dict):
        return {}
    value = metadata.get(name)
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def issue_key(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    return _text(_section(metadata, 'issue').get('key'))


def issue_status_name(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    status = _section(metadata, 'issue').get('status')
    if isinstance(status, dict):
        return _text(status.get('name'))
    return None


def pull_request_ref(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    return _text(_section(metadata, 'pullRequest').get('ref'))


def pull_request_title(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    return _text(_section(metadata, 'pullRequest').get('title'))


def commit_messages(metadata: Optional[Dict[str, Any]]) -> List[str]:
    """Return the commit messages in order, skipping malformed entries."""
    if not isinstance(metadata, dict):
        return []
    commits = metadata.get('commits')
    if not isinstance(commits, list):
        return []
    return [c.get('message') for c in commits if isinstance(c, dict) and isinstance(c.get('message'), str)]
