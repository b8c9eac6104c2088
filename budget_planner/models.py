"""Data classes for budget parameters, iterations, projections and snapshots.

Serialization uses the camelCase keys of the saved-state wire format so that
snapshots written by older clients still load.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .config import HOURS_PER_DAY, MAX_CURRENCY_LENGTH
from .errors import ValidationError
from .settings import get_setting

SERIES_NAMES = ('iterationCost', 'cumulativeStandard', 'cumulativeActual')

_DEFAULTS: Dict[str, Any] = get_setting('defaults', default={}) or {}


def _positive(value: Any, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number") from None
    if not number > 0:
        raise ValidationError(f"{label} must be greater than zero")
    return number


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {'true', '1', 'yes', 'y'}
    return bool(value)


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


@dataclass
class BudgetParameters:
    cost_per_hour: float = float(_DEFAULTS.get('costPerHour', 50))
    budget_size: float = float(_DEFAULTS.get('budgetSize', 100000))
    team_size: int = int(_DEFAULTS.get('teamSize', 5))
    working_days_per_iteration: float = float(_DEFAULTS.get('workingDaysPerIteration', 10))
    currency: str = str(_DEFAULTS.get('currency', '$'))

    @property
    def standard_hours(self) -> float:
        return HOURS_PER_DAY * self.team_size * self.working_days_per_iteration

    @property
    def standard_iteration_cost(self) -> float:
        """Cost of one iteration run with the default team and length."""
        return self.cost_per_hour * self.standard_hours

    def validate(self) -> 'BudgetParameters':
        _positive(self.cost_per_hour, "Cost per hour")
        _positive(self.budget_size, "Budget size")
        _positive(self.team_size, "Team size")
        _positive(self.working_days_per_iteration, "Working days per iteration")
        currency = (self.currency or '').strip()
        if not currency or len(currency) > MAX_CURRENCY_LENGTH:
            raise ValidationError(
                f"Currency must be between 1 and {MAX_CURRENCY_LENGTH} characters"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'costPerHour': self.cost_per_hour,
            'budgetSize': self.budget_size,
            'teamSize': self.team_size,
            'workingDaysPerIteration': self.working_days_per_iteration,
            'currency': self.currency,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BudgetParameters':
        defaults = cls()
        return cls(
            cost_per_hour=float(data.get('costPerHour', defaults.cost_per_hour)),
            budget_size=float(data.get('budgetSize', defaults.budget_size)),
            team_size=int(float(data.get('teamSize', defaults.team_size))),
            working_days_per_iteration=float(
                data.get('workingDaysPerIteration', defaults.working_days_per_iteration)
            ),
            currency=str(data.get('currency') or defaults.currency),
        )


# ---------------------------------------------------------------------------
# Iterations
# ---------------------------------------------------------------------------


@dataclass
class IterationRecord:
    iteration_number: int
    iteration_days: float
    team_size: int
    total_hours: Optional[float] = None  # None -> derived from days and team size
    is_current: bool = False

    @property
    def derived_hours(self) -> float:
        return self.iteration_days * self.team_size * HOURS_PER_DAY

    @property
    def effective_hours(self) -> float:
        return self.total_hours if self.total_hours is not None else self.derived_hours

    @property
    def hours_overridden(self) -> bool:
        return self.total_hours is not None

    def cost(self, cost_per_hour: float) -> float:
        return cost_per_hour * self.effective_hours

    def validate(self) -> 'IterationRecord':
        _positive(self.iteration_number, "Iteration number")
        _positive(self.iteration_days, "Iteration days")
        _positive(self.team_size, "Team size")
        if self.total_hours is not None:
            _positive(self.total_hours, "Total hours")
        return self

    def copy(self, **changes: Any) -> 'IterationRecord':
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'iterationNumber': self.iteration_number,
            'iterationDays': self.iteration_days,
            'teamSize': self.team_size,
            'totalHours': self.effective_hours,
            'hoursOverridden': self.hours_overridden,
            'isCurrent': self.is_current,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IterationRecord':
        total_hours = data.get('totalHours')
        record = cls(
            iteration_number=int(float(data['iterationNumber'])),
            iteration_days=float(data['iterationDays']),
            team_size=int(float(data['teamSize'])),
            is_current=_as_bool(data.get('isCurrent', False)),
        )
        if total_hours not in (None, ''):
            hours = float(total_hours)
            # Older saves always wrote totalHours; only keep it when it differs
            # from the derived value or the save marked it as an override.
            if data.get('hoursOverridden') or hours != record.derived_hours:
                record.total_hours = hours
        return record


# ---------------------------------------------------------------------------
# Projection and snapshots
# ---------------------------------------------------------------------------


@dataclass
class ProjectedPoint:
    label: str
    iteration_cost: float
    cumulative_standard: float
    cumulative_actual: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.label,
            'iterationCost': self.iteration_cost,
            'cumulativeStandard': self.cumulative_standard,
            'cumulativeActual': self.cumulative_actual,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectedPoint':
        return cls(
            label=str(data.get('name', '')),
            iteration_cost=float(data.get('iterationCost', 0.0)),
            cumulative_standard=float(data.get('cumulativeStandard', 0.0)),
            cumulative_actual=float(data.get('cumulativeActual', 0.0)),
        )


@dataclass
class PlannerState:
    """Everything a snapshot captures."""

    parameters: BudgetParameters
    iterations: List[IterationRecord] = field(default_factory=list)
    chart_data: List[ProjectedPoint] = field(default_factory=list)
    visible_series: List[str] = field(default_factory=lambda: list(SERIES_NAMES))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'budgetParams': self.parameters.to_dict(),
            'iterations': [it.to_dict() for it in self.iterations],
            'chartData': [pt.to_dict() for pt in self.chart_data],
            'visibleSeries': list(self.visible_series),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlannerState':
        visible = data.get('visibleSeries')
        if not isinstance(visible, list):
            visible = list(SERIES_NAMES)
        return cls(
            parameters=BudgetParameters.from_dict(data.get('budgetParams') or {}),
            iterations=[IterationRecord.from_dict(it) for it in data.get('iterations') or []],
            chart_data=[ProjectedPoint.from_dict(pt) for pt in data.get('chartData') or []],
            visible_series=[s for s in visible if s in SERIES_NAMES],
        )


@dataclass
class SavedSnapshot:
    id: str
    name: str
    timestamp: str
    state: PlannerState
    owner_id: Optional[str] = None
    remote_id: Optional[str] = None
    source: str = 'local'

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'id': self.id,
            'name': self.name,
            'date': self.timestamp,
            'ownerId': self.owner_id,
            'remoteId': self.remote_id,
        }
        payload.update(self.state.to_dict())
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = 'local') -> 'SavedSnapshot':
        return cls(
            id=str(data['id']),
            name=str(data.get('name', '')),
            timestamp=str(data.get('date', '')),
            state=PlannerState.from_dict(data),
            owner_id=data.get('ownerId'),
            remote_id=data.get('remoteId'),
            source=source,
        )
