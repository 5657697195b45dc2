"""
Combine successive activities that belong together (PR updates, pushes sharing commits, page edits, ...).
Activities are expected sorted by ascending timestamp; the most recent matching activity is replaced.
"""
from typing import Callable, List, Optional
from normalize.models import Activity


def _both_start_with(a: Optional[str], b: Optional[str], prefix: str) -> bool:
    return bool(a and b and a.startswith(prefix) and b.startswith(prefix))


def is_matching(a: Activity, b: Activity) -> bool:
    """Same actor, artifact, event type and action, and compatible events."""
    return (
        a.actor_id == b.actor_id
        and a.artifact == b.artifact
        and a.event_type == b.event_type
        and a.action == b.action
        and (a.event == b.event or _both_start_with(a.event, b.event, 'pull_request') or _both_start_with(a.event, b.event, 'comment_'))
    )


def _find_last_index(activities: List[Activity], predicate: Callable[[Activity], bool]) -> int:
    for i in range(len(activities) - 1, -1, -1):
        if predicate(activities[i]):
            return i
    return -1


def _meta(activity: Activity) -> dict:
    return activity.metadata if isinstance(activity.metadata, dict) else {}


def _sub(activity: Activity, name: str) -> dict:
    value = _meta(activity).get(name)
    return value if isinstance(value, dict) else {}


def _replace(activities: List[Activity], index: int, old: Activity, new: Activity):
    new.combined_ids = list(old.combined_ids or [])
    new.combined_ids.append(old.id)
    del activities[index]
    activities.append(new)


def _combine_pull_request(new: Activity, activities: List[Activity]) -> bool:
    uri = _sub(new, 'pullRequest').get('uri')
    code_action = _meta(new).get('codeAction')
    index = _find_last_index(
        activities,
        lambda a: is_matching(a, new) and _sub(a, 'pullRequest').get('uri') == uri and bool(_meta(a).get('codeAction')),
    )
    if index < 0 or not code_action:
        return False
    found = activities[index]
    found_action = _meta(found)['codeAction']
    actions = list(found_action) if isinstance(found_action, list) else [found_action]
    for action in code_action if isinstance(code_action, list) else [code_action]:
        if action not in actions:
            actions.append(action)
    new.event = 'pull_request_*'
    new.metadata['codeAction'] = actions
    _replace(activities, index, found, new)
    return True


def _combine_push(new: Activity, activities: List[Activity]) -> bool:
    index = _find_last_index(activities, lambda a: is_matching(a, new) and bool(_meta(a).get('commits')))
    if index < 0:
        return False
    found = activities[index]
    found_commits = _meta(found)['commits']
    urls = [c.get('url') for c in found_commits]
    # at least one identical commit means both pushes are the same work
    if not any(c.get('url') in urls for c in new.metadata['commits']):
        return False
    commits = list(found_commits)
    for commit in new.metadata['commits']:
        if commit.get('url') not in urls:
            commits.append(commit)
            urls.append(commit.get('url'))
    new.metadata['commits'] = commits
    _replace(activities, index, found, new)
    return True


def _combine_changelog(new: Activity, activities: List[Activity]) -> bool:
    key = _sub(new, 'issue').get('key')
    index = _find_last_index(
        activities,
        lambda a: is_matching(a, new) and _sub(a, 'issue').get('key') == key and bool(_meta(a).get('changeLog')),
    )
    if index < 0:
        return False
    found = activities[index]
    new.metadata['changeLog'] = list(new.metadata['changeLog']) + list(_meta(found)['changeLog'])
    _replace(activities, index, found, new)
    return True


def _combine_jira_attachment(new: Activity, activities: List[Activity]) -> bool:
    index = _find_last_index(activities, lambda a: is_matching(a, new))
    if index < 0:
        return False
    found = activities[index]
    found_files = _sub(found, 'attachments').get('files')
    if found_files:
        new.metadata['attachments'] = {'files': list(found_files) + [new.metadata['attachment']]}
    elif _meta(found).get('attachment'):
        new.metadata['attachments'] = {'files': [_meta(found)['attachment'], new.metadata['attachment']]}
    new.metadata.pop('attachment', None)
    _replace(activities, index, found, new)
    return True


def _combine_comment(new: Activity, activities: List[Activity]) -> bool:
    comment_id = _sub(new, 'comment').get('id')
    index = _find_last_index(activities, lambda a: is_matching(a, new) and _sub(a, 'comment').get('id') == comment_id)
    if index < 0:
        return False
    new.event = 'comment_*'
    _replace(activities, index, activities[index], new)
    return True


def _combine_page(new: Activity, activities: List[Activity]) -> bool:
    page_id = _sub(new, 'page').get('id')
    index = _find_last_index(activities, lambda a: is_matching(a, new) and _sub(a, 'page').get('id') == page_id)
    if index < 0:
        return False
    found = activities[index]
    page = new.metadata['page']
    found_version = _sub(found, 'page').get('version')
    if page.get('version') and page.get('version') != found_version:
        page['version'] = f"{page['version']}, {found_version}"
    _replace(activities, index, found, new)
    return True


def _combine_page_attachments(new: Activity, activities: List[Activity]) -> bool:
    parent_id = (_sub(new, 'attachments').get('parent') or {}).get('id')
    index = _find_last_index(
        activities,
        lambda a: is_matching(a, new) and bool(parent_id) and (_sub(a, 'attachments').get('parent') or {}).get('id') == parent_id,
    )
    if index < 0:
        return False
    found = activities[index]
    new.metadata['attachments']['files'] = list(new.metadata['attachments']['files']) + list(_sub(found, 'attachments').get('files') or [])
    _replace(activities, index, found, new)
    return True


def _pick_combiner(new: Activity) -> Optional[Callable[[Activity, List[Activity]], bool]]:
    meta = _meta(new)
    if _sub(new, 'pullRequest').get('uri'):
        return _combine_pull_request
    if new.event == 'push' and meta.get('commits'):
        return _combine_push
    if _sub(new, 'issue').get('key') and meta.get('changeLog'):
        return _combine_changelog
    if new.event == 'attachment_created' and meta.get('attachment'):
        return _combine_jira_attachment
    if new.event == 'comment_updated' and _sub(new, 'comment').get('id'):
        return _combine_comment
    if _sub(new, 'page').get('id'):
        return _combine_page
    if _sub(new, 'attachments').get('files'):
        return _combine_page_attachments
    return None


def combine_and_push_activity(new_activity: Activity, activities: List[Activity]) -> List[Activity]:
    """Combine new_activity with a matching element of activities, or append it. Returns activities."""
    if not new_activity.metadata:
        activities.append(new_activity)
        return activities
    combiner = _pick_combiner(new_activity)
    if combiner is None or not combiner(new_activity, activities):
        activities.append(new_activity)
    return activities


def combine_activities(activities: List[Activity]) -> List[Activity]:
    """Return a new list where combinable activities have been merged, oldest first."""
    combined: List[Activity] = []
    for activity in sorted(activities, key=lambda a: a.timestamp or 0):
        combine_and_push_activity(activity, combined)
    return combined
