import pytest

from budget_planner import ledger
from budget_planner.config import MAX_ITERATIONS
from budget_planner.errors import ValidationError
from budget_planner.models import BudgetParameters, IterationRecord


def test_initial_ledger_length(params):
    assert ledger.required_iterations(params) == 5
    records = ledger.generate_iterations(params)
    assert [r.iteration_number for r in records] == [1, 2, 3, 4, 5]
    assert all(r.iteration_days == 10 and r.team_size == 5 for r in records)
    assert [r.is_current for r in records] == [False, False, False, False, True]


def test_required_iterations_rounds_up_and_caps(params):
    params.budget_size = 100001
    assert ledger.required_iterations(params) == 6
    params.budget_size = 10_000_000
    assert ledger.required_iterations(params) == MAX_ITERATIONS


def test_reconcile_fills_empty_ledger(params):
    result = ledger.reconcile(params, [])
    assert result.action == 'regenerated'
    assert len(result.iterations) == 5
    assert result.notices == []


def test_reconcile_extends_small_shortfall(params, ledger_five):
    params.budget_size = 120000
    result = ledger.reconcile(params, ledger_five)
    assert result.action == 'extended'
    assert [r.iteration_number for r in result.iterations] == [1, 2, 3, 4, 5, 6]
    # The existing current iteration stays current.
    assert [r.iteration_number for r in result.iterations if r.is_current] == [5]


def test_reconcile_keeps_edits_within_threshold(params, ledger_five):
    edited = ledger.update_iteration(ledger_five, 2, total_hours=300)
    edited = ledger.set_current(edited, 2)
    params.budget_size = 70000
    result = ledger.reconcile(params, edited)
    assert result.action == 'unchanged'
    assert len(result.iterations) == 5
    assert result.iterations[1].total_hours == 300


def test_reconcile_regenerates_large_gap(params, ledger_five):
    edited = ledger.update_iteration(ledger_five, 1, total_hours=123)
    params.budget_size = 200000
    result = ledger.reconcile(params, edited, threshold=3)
    assert result.action == 'regenerated'
    assert len(result.iterations) == 10
    assert all(r.total_hours is None for r in result.iterations)
    assert result.notices and result.notices[0].level == 'warning'


def test_reconcile_regenerates_when_spend_exceeds_budget(params, ledger_five):
    params.budget_size = 90000
    result = ledger.reconcile(params, ledger_five)
    assert result.action == 'regenerated'
    assert len(result.iterations) == 5


def test_reconcile_threshold_is_configurable(params, ledger_five):
    edited = ledger.set_current(ledger_five, 1)
    params.budget_size = 200000
    result = ledger.reconcile(params, edited, threshold=10)
    assert result.action == 'extended'
    assert len(result.iterations) == 10


def test_reconcile_clears_when_nothing_required(ledger_five):
    params = BudgetParameters(budget_size=0)
    assert ledger.reconcile(params, ledger_five).action == 'cleared'
    assert ledger.reconcile(params, []).action == 'unchanged'


def test_reconcile_warns_when_budget_needs_more_than_cap():
    params = BudgetParameters(budget_size=10_000_000)
    result = ledger.reconcile(params, [])
    assert result.action == 'regenerated'
    assert len(result.iterations) == MAX_ITERATIONS
    assert [n.level for n in result.notices] == ['warning']
    assert str(MAX_ITERATIONS) in result.notices[0].message


def test_reconcile_within_cap_has_no_cap_warning(params, ledger_five):
    params.budget_size = 120000
    result = ledger.reconcile(params, ledger_five)
    assert result.notices == []


def test_add_iteration_sorted_and_current_moves(ledger_five):
    record = IterationRecord(iteration_number=7, iteration_days=5, team_size=3, is_current=True)
    updated = ledger.add_iteration(ledger_five, record)
    assert [r.iteration_number for r in updated] == [1, 2, 3, 4, 5, 7]
    assert [r.iteration_number for r in updated if r.is_current] == [7]
    # The input ledger is untouched.
    assert ledger_five[-1].is_current


def test_add_iteration_rejects_duplicates_and_invalid(ledger_five):
    with pytest.raises(ValidationError, match="already exists"):
        ledger.add_iteration(ledger_five, IterationRecord(3, 10, 5))
    with pytest.raises(ValidationError):
        ledger.add_iteration(ledger_five, IterationRecord(8, 0, 5))


def test_add_iteration_rejects_full_ledger(params):
    full = ledger.generate_iterations(params, MAX_ITERATIONS)
    with pytest.raises(ValidationError, match=str(MAX_ITERATIONS)):
        ledger.add_iteration(full, IterationRecord(MAX_ITERATIONS + 1, 10, 5))


def test_update_iteration(ledger_five):
    updated = ledger.update_iteration(ledger_five, 3, iteration_days=8, total_hours=250)
    assert updated[2].iteration_days == 8
    assert updated[2].total_hours == 250

    reverted = ledger.update_iteration(updated, 3, total_hours=None)
    assert reverted[2].effective_hours == 8 * 5 * 8


def test_update_iteration_errors(ledger_five):
    with pytest.raises(ValidationError):
        ledger.update_iteration(ledger_five, 42, iteration_days=5)
    with pytest.raises(ValidationError):
        ledger.update_iteration(ledger_five, 1, iteration_number=9)
    with pytest.raises(ValidationError):
        ledger.update_iteration(ledger_five, 1, team_size=0)


def test_update_iteration_cannot_renumber(ledger_five):
    with pytest.raises(ValidationError, match="iteration_number"):
        ledger.update_iteration(ledger_five, 1, iteration_number=9)
    assert [it.iteration_number for it in ledger_five] == [1, 2, 3, 4, 5]


def test_set_current_single_flag(ledger_five):
    updated = ledger.set_current(ledger_five, 2)
    assert [r.iteration_number for r in updated if r.is_current] == [2]
    with pytest.raises(ValidationError):
        ledger.set_current(ledger_five, 99)


def test_validate_ledger_rejects_two_current(ledger_five):
    ledger_five[0].is_current = True
    with pytest.raises(ValidationError):
        ledger.validate_ledger(ledger_five)
