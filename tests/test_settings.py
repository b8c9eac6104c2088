import json

from budget_planner.config import DEDUPE_POLICY, MAX_ITERATIONS, REGENERATE_THRESHOLD, RETENTION_DAYS
from budget_planner.settings import SETTINGS_PATH, get_label, get_message, get_setting, load_settings


def test_planner_constants():
    assert MAX_ITERATIONS == 100
    assert get_setting('constants', 'hours_per_day') == 8
    assert REGENERATE_THRESHOLD == 3
    assert RETENTION_DAYS == 30
    assert DEDUPE_POLICY == 'none'


def test_missing_values_fall_back_to_default():
    assert get_setting('nope', 'missing', default='x') == 'x'
    assert get_setting('constants', 'max_iterations', 'deeper', default=1) == 1


def test_messages_are_formatted():
    assert get_message('ledger_full', limit=100) == "Maximum of 100 iterations allowed"
    assert get_message('unknown_key', 'fallback') == 'fallback'
    assert get_label('visualization_tab') == 'Visualization'


def test_settings_file_override(monkeypatch, tmp_path):
    custom = tmp_path / 'planner.json'
    custom.write_text(json.dumps({'ui': {'messages': {'ledger_full': "At most {limit} rows"}}}))
    monkeypatch.setenv('BUDGET_PLANNER_SETTINGS', str(custom))

    assert get_message('ledger_full', limit=7) == "At most 7 rows"
    assert get_setting('constants', 'max_iterations', default=42) == 42
    assert load_settings(SETTINGS_PATH)['constants']['max_iterations'] == 100


def test_missing_settings_file_uses_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv('BUDGET_PLANNER_SETTINGS', str(tmp_path / 'absent.json'))
    assert get_setting('constants', 'max_iterations', default=100) == 100
    assert get_label('save_button', 'Save') == 'Save'
