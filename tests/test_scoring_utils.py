import unittest
import importlib.util

import pytest

from correlate.models import TicketStatus
from scoring.utils import (
    DEFAULT_TOP_ACTORS_LIMIT,
    TOP_ACTORS_OTHERS_ID,
    activities_total_effort,
    artifact_action_label,
    artifact_action_sort_key,
    build_artifact_action_key,
    load_settings,
    rank_with_others,
)
from normalize.models import Activity


class TestScoringUtils(unittest.TestCase):
    def test_rank_with_others(self):
        counts = [{'id': 'a', 'count': 1}, {'id': 'b', 'count': 3}, {'id': 'c', 'count': 2}, {'id': 'd', 'count': 1}]
        self.assertEqual(rank_with_others(counts, limit=2), [
            {'id': 'b', 'count': 3},
            {'id': 'c', 'count': 2},
            {'id': TOP_ACTORS_OTHERS_ID, 'count': 2},
        ])
        self.assertEqual(len(rank_with_others(counts, limit=4)), 4)
        self.assertEqual(rank_with_others(counts, limit=0), [{'id': TOP_ACTORS_OTHERS_ID, 'count': 7}])

    def test_artifact_action_helpers(self):
        self.assertEqual(build_artifact_action_key('code', 'updated'), 'code-updated')
        self.assertEqual(artifact_action_label('code-updated'), 'Code review')
        self.assertEqual(artifact_action_label('doc-deleted'), 'doc-deleted')
        keys = sorted(['doc-updated', 'zzz-other', 'task-created'], key=artifact_action_sort_key)
        self.assertEqual(keys, ['task-created', 'doc-updated', 'zzz-other'])

    def test_total_effort(self):
        self.assertIsNone(activities_total_effort([Activity('a', 'created', 'code')]))
        activities = [Activity('a', 'created', 'code', effort=1.5), Activity('b', 'created', 'code'), Activity('c', 'created', 'code', effort=0)]
        self.assertEqual(activities_total_effort(activities), 1.5)


def test_load_settings_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv('ACTIVITY_TOP_ACTORS_LIMIT', raising=False)
    monkeypatch.delenv('ACTIVITY_LOG_LEVEL', raising=False)
    settings = load_settings(str(tmp_path / 'missing.yaml'))
    assert settings['top_actors_limit'] == DEFAULT_TOP_ACTORS_LIMIT
    assert settings['log_level'] == 'INFO'
    assert settings['ticket_status_map']['Done'] == TicketStatus.COMPLETED


def test_load_settings_bundled_file(monkeypatch):
    monkeypatch.delenv('ACTIVITY_TOP_ACTORS_LIMIT', raising=False)
    settings = load_settings()
    assert settings['top_actors_limit'] == 10
    assert settings['ticket_key_pattern'] == '[A-Z][A-Z0-9]+-[0-9]+'


@pytest.mark.skipif(importlib.util.find_spec('yaml') is None, reason='PyYAML not installed')
def test_load_settings_from_yaml(tmp_path, monkeypatch):
    monkeypatch.delenv('ACTIVITY_TOP_ACTORS_LIMIT', raising=False)
    monkeypatch.delenv('ACTIVITY_LOG_LEVEL', raising=False)
    path = tmp_path / 'settings.yaml'
    path.write_text(
        "top_actors_limit: 3\n"
        "log_level: debug\n"
        "ticket_key_pattern: 'T#[0-9]+'\n"
        "ticket_status_map:\n"
        "  Parked: blocked\n"
        "  Weird: notastatus\n",
        encoding='utf-8',
    )
    settings = load_settings(str(path))
    assert settings['top_actors_limit'] == 3
    assert settings['log_level'] == 'DEBUG'
    assert settings['ticket_key_pattern'] == 'T#[0-9]+'
    assert settings['ticket_status_map']['Parked'] == TicketStatus.BLOCKED
    assert 'Weird' not in settings['ticket_status_map']
    assert settings['ticket_status_map']['Done'] == TicketStatus.COMPLETED


@pytest.mark.skipif(importlib.util.find_spec('yaml') is None, reason='PyYAML not installed')
def test_load_settings_ignores_non_mapping(tmp_path, monkeypatch):
    monkeypatch.delenv('ACTIVITY_TOP_ACTORS_LIMIT', raising=False)
    path = tmp_path / 'settings.yaml'
    path.write_text("- just\n- a list\n", encoding='utf-8')
    assert load_settings(str(path))['top_actors_limit'] == DEFAULT_TOP_ACTORS_LIMIT


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv('ACTIVITY_TOP_ACTORS_LIMIT', '4')
    monkeypatch.setenv('ACTIVITY_LOG_LEVEL', 'warning')
    settings = load_settings(str(tmp_path / 'missing.yaml'))
    assert settings['top_actors_limit'] == 4
    assert settings['log_level'] == 'WARNING'


def test_invalid_env_limit_falls_back(tmp_path, monkeypatch):
    monkeypatch.setenv('ACTIVITY_TOP_ACTORS_LIMIT', 'many')
    settings = load_settings(str(tmp_path / 'missing.yaml'))
    assert settings['top_actors_limit'] == DEFAULT_TOP_ACTORS_LIMIT


if __name__ == '__main__':
    unittest.main()
