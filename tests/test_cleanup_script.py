import importlib.util
from pathlib import Path

from budget_planner.persistence import SnapshotManager
from budget_planner.storage import LocalSnapshotStorage

SCRIPT_PATH = Path(__file__).resolve().parents[1] / 'scripts' / 'cleanup_saved_states.py'


def _load_script():
    spec = importlib.util.spec_from_file_location('cleanup_saved_states_test', SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_cleanup_with_explicit_owner(tmp_path, fake_remote, capsys):
    module = _load_script()
    manager = SnapshotManager(local=LocalSnapshotStorage(tmp_path / 'states.json'), remote=fake_remote)
    code = module.main(['--days', '7', '--user-id', 'user-1', '--token', 'tok'], manager=manager)

    assert code == 0
    assert manager.retention_days == 7
    assert fake_remote.authorized == {'user-1': 'tok'}
    assert len(fake_remote.cutoffs) == 1
    assert "Cleaned up 2 old saved states" in capsys.readouterr().out


def test_cleanup_failure_exit_code(tmp_path, failing_remote):
    module = _load_script()
    manager = SnapshotManager(local=LocalSnapshotStorage(tmp_path / 'states.json'), remote=failing_remote)
    assert module.main(['--user-id', 'u', '--token', 't'], manager=manager) == 1


def test_default_retention_window():
    module = _load_script()
    args = module.parse_args([])
    assert args.days == 30
