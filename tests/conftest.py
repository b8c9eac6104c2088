import sys
from dataclasses import replace
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from budget_planner.errors import RemoteStoreError
from budget_planner.ledger import generate_iterations
from budget_planner.models import BudgetParameters


class FakeRemote:
    """In-memory remote snapshot backend."""

    source = 'remote'

    def __init__(self, fail=False):
        self.fail = fail
        self.rows = {}
        self.authorized = {}
        self.deleted = []
        self.cutoffs = []
        self._next = 0

    def _check(self):
        if self.fail:
            raise RemoteStoreError("service down")

    def authorize(self, owner_id, token):
        self.authorized[owner_id] = token

    def create(self, snapshot):
        self._check()
        self._next += 1
        remote_id = f"r-{self._next}"
        self.rows[remote_id] = replace(snapshot, id=remote_id, remote_id=remote_id, source='remote')
        return remote_id

    def list(self, owner_id=None):
        self._check()
        return [s for s in self.rows.values() if s.owner_id == owner_id]

    def delete(self, snapshot_id, owner_id=None):
        self._check()
        self.deleted.append(snapshot_id)
        return self.rows.pop(snapshot_id, None) is not None

    def delete_older_than(self, cutoff, owner_id=None):
        self._check()
        self.cutoffs.append(cutoff)
        return 2


@pytest.fixture
def params():
    return BudgetParameters(
        cost_per_hour=50,
        budget_size=100000,
        team_size=5,
        working_days_per_iteration=10,
        currency='$',
    )


@pytest.fixture
def ledger_five(params):
    return generate_iterations(params)


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def failing_remote():
    return FakeRemote(fail=True)
