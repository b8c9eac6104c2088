from datetime import datetime, timedelta, timezone

import pytest

from budget_planner.auth import AuthSession
from budget_planner.models import PlannerState
from budget_planner.persistence import SnapshotManager, merge_snapshots
from budget_planner.storage import LocalSnapshotStorage


@pytest.fixture
def owner():
    return AuthSession(user_id='user-1', token='tok')


@pytest.fixture
def local(tmp_path):
    return LocalSnapshotStorage(tmp_path / 'states.json')


@pytest.fixture
def state(params, ledger_five):
    return PlannerState(parameters=params, iterations=ledger_five)


def test_anonymous_save_is_local_only(local, fake_remote, state):
    manager = SnapshotManager(local=local, remote=fake_remote)
    result = manager.save('mine', state)
    assert result.ok
    assert result.message == "✅ Saved 'mine'"
    assert len(local.list()) == 1
    assert fake_remote.rows == {}


def test_owned_save_mirrors_remote(local, fake_remote, state, owner):
    manager = SnapshotManager(local=local, remote=fake_remote)
    result = manager.save('shared', state, owner)
    assert result.ok and not result.notices
    assert fake_remote.authorized == {'user-1': 'tok'}
    assert local.get(result.value.id).remote_id == 'r-1'
    assert fake_remote.rows['r-1'].owner_id == 'user-1'


def test_save_requires_name(local, state):
    result = SnapshotManager(local=local).save('  ', state)
    assert not result.ok
    assert local.list() == []


def test_remote_failure_keeps_local_save(local, failing_remote, state, owner):
    manager = SnapshotManager(local=local, remote=failing_remote)
    result = manager.save('offline', state, owner)
    assert result.ok
    assert [n.level for n in result.notices] == ['warning']
    assert local.list()[0].remote_id is None


def test_list_without_dedupe_shows_both_copies(local, fake_remote, state, owner):
    manager = SnapshotManager(local=local, remote=fake_remote, dedupe_policy='none')
    manager.save('twice', state, owner)
    listing = manager.list(owner).value
    assert [s.source for s in listing] == ['local', 'remote']


def test_list_with_remote_id_dedupe(local, fake_remote, state, owner):
    manager = SnapshotManager(local=local, remote=fake_remote, dedupe_policy='remote_id')
    manager.save('once', state, owner)
    listing = manager.list(owner).value
    assert [s.source for s in listing] == ['local']


def test_list_reports_remote_outage(local, failing_remote, state, owner):
    manager = SnapshotManager(local=local, remote=failing_remote)
    manager.save('x', state)
    result = manager.list(owner)
    assert result.ok
    assert len(result.value) == 1
    assert result.notices[0].level == 'warning'


def test_load_round_trip(local, state):
    manager = SnapshotManager(local=local)
    saved = manager.save('reload', state).value
    loaded = manager.load(saved.id)
    assert loaded.ok
    assert loaded.value == state


def test_load_unknown_fails(local):
    result = SnapshotManager(local=local).load('missing')
    assert not result.ok
    assert 'missing' in result.message


def test_delete_unknown_leaves_collection_unchanged(local, fake_remote, state, owner):
    manager = SnapshotManager(local=local, remote=fake_remote)
    manager.save('keep', state, owner)
    before_local = local.path.read_bytes()
    before_remote = dict(fake_remote.rows)

    result = manager.delete('no-such-id', owner)
    assert not result.ok
    assert local.path.read_bytes() == before_local
    assert fake_remote.rows == before_remote
    assert fake_remote.deleted == []


def test_delete_mirrored_removes_both(local, fake_remote, state, owner):
    manager = SnapshotManager(local=local, remote=fake_remote)
    saved = manager.save('gone', state, owner).value
    result = manager.delete(saved.id, owner)
    assert result.ok
    assert local.list() == []
    assert fake_remote.rows == {}


def test_delete_remote_only_entry(local, fake_remote, state, owner):
    manager = SnapshotManager(local=local, remote=fake_remote)
    saved = manager.save('remote', state, owner).value
    local.delete(saved.id)
    result = manager.delete('r-1', owner)
    assert result.ok
    assert fake_remote.deleted == ['r-1']


def test_delete_remote_failure_still_deletes_locally(local, fake_remote, state, owner):
    manager = SnapshotManager(local=local, remote=fake_remote)
    saved = manager.save('half', state, owner).value
    fake_remote.fail = True
    result = manager.delete(saved.id, owner)
    assert result.ok
    assert local.list() == []
    assert result.notices[0].level == 'warning'


def test_cleanup_uses_retention_window(local, fake_remote, owner):
    manager = SnapshotManager(local=local, remote=fake_remote, retention_days=30)
    now = datetime(2024, 6, 30, tzinfo=timezone.utc)
    result = manager.cleanup(owner, now=now)
    assert result.ok and result.value == 2
    assert fake_remote.cutoffs == [now - timedelta(days=30)]


def test_cleanup_without_remote(local):
    result = SnapshotManager(local=local).cleanup()
    assert result.ok and result.value == 0


def test_cleanup_failure_reported(local, failing_remote, owner):
    result = SnapshotManager(local=local, remote=failing_remote).cleanup(owner)
    assert not result.ok


def test_unknown_dedupe_policy_rejected(local):
    with pytest.raises(ValueError):
        SnapshotManager(local=local, dedupe_policy='newest')
    with pytest.raises(ValueError):
        merge_snapshots([], [], 'newest')
