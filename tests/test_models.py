import pytest

from budget_planner.errors import ValidationError
from budget_planner.models import (
    BudgetParameters,
    IterationRecord,
    PlannerState,
    ProjectedPoint,
    SavedSnapshot,
)


def test_standard_iteration_cost(params):
    assert params.standard_hours == 400
    assert params.standard_iteration_cost == 20000


def test_defaults_come_from_settings():
    params = BudgetParameters()
    assert params.cost_per_hour == 50
    assert params.budget_size == 100000
    assert params.team_size == 5
    assert params.working_days_per_iteration == 10
    assert params.currency == '$'


@pytest.mark.parametrize('field,value', [
    ('cost_per_hour', 0),
    ('budget_size', -1),
    ('team_size', 0),
    ('working_days_per_iteration', -5),
    ('currency', ''),
    ('currency', 'TOOLONG'),
])
def test_invalid_parameters_rejected(params, field, value):
    setattr(params, field, value)
    with pytest.raises(ValidationError):
        params.validate()


def test_iteration_hours_derived_until_overridden():
    record = IterationRecord(iteration_number=1, iteration_days=10, team_size=5)
    assert record.effective_hours == 400
    assert not record.hours_overridden
    assert record.cost(50) == 20000

    record.total_hours = 500
    assert record.hours_overridden
    assert record.cost(50) == 25000


def test_iteration_validation():
    with pytest.raises(ValidationError):
        IterationRecord(iteration_number=1, iteration_days=0, team_size=5).validate()
    with pytest.raises(ValidationError):
        IterationRecord(iteration_number=1, iteration_days=10, team_size=5, total_hours=-1).validate()


def test_iteration_from_dict_keeps_only_real_overrides():
    derived = IterationRecord.from_dict({
        'iterationNumber': 2, 'iterationDays': 10, 'teamSize': 5, 'totalHours': 400,
    })
    assert derived.total_hours is None

    overridden = IterationRecord.from_dict({
        'iterationNumber': 2, 'iterationDays': 10, 'teamSize': 5, 'totalHours': 450,
    })
    assert overridden.total_hours == 450

    flagged = IterationRecord.from_dict({
        'iterationNumber': 2, 'iterationDays': 10, 'teamSize': 5,
        'totalHours': 400, 'hoursOverridden': True, 'isCurrent': 'true',
    })
    assert flagged.total_hours == 400
    assert flagged.is_current is True


def test_planner_state_wire_keys(params, ledger_five):
    state = PlannerState(
        parameters=params,
        iterations=ledger_five,
        chart_data=[ProjectedPoint('Start', 0.0, 0.0, 0.0)],
    )
    data = state.to_dict()
    assert set(data) == {'budgetParams', 'iterations', 'chartData', 'visibleSeries'}
    assert data['budgetParams']['costPerHour'] == 50
    assert data['chartData'][0]['name'] == 'Start'
    assert PlannerState.from_dict(data) == state


def test_unknown_visible_series_dropped(params):
    data = PlannerState(parameters=params).to_dict()
    data['visibleSeries'] = ['cumulativeActual', 'bogus']
    assert PlannerState.from_dict(data).visible_series == ['cumulativeActual']


def test_snapshot_round_trip(params, ledger_five):
    snapshot = SavedSnapshot(
        id='abc',
        name='Q3 plan',
        timestamp='2024-01-02T03:04:05+00:00',
        state=PlannerState(parameters=params, iterations=ledger_five),
        owner_id='user-1',
        remote_id='r-9',
    )
    data = snapshot.to_dict()
    assert data['date'] == '2024-01-02T03:04:05+00:00'
    assert data['budgetParams']['budgetSize'] == 100000
    assert SavedSnapshot.from_dict(data) == snapshot
