"""Iteration ledger operations and budget auto-fill.

Every function returns a new list; callers replace their ledger wholesale.
The ledger is kept long enough that iterations run at the standard pace
reach the total budget, capped at ``MAX_ITERATIONS``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .config import MAX_ITERATIONS, REGENERATE_THRESHOLD
from .errors import Notice, ValidationError
from .models import BudgetParameters, IterationRecord
from .projection import actual_cost_to_current
from .settings import get_message

logger = logging.getLogger(__name__)

RECONCILE_ACTIONS = ('unchanged', 'extended', 'regenerated', 'cleared')


@dataclass
class ReconcileResult:
    iterations: List[IterationRecord]
    action: str
    notices: List[Notice] = field(default_factory=list)


def sort_iterations(iterations: Iterable[IterationRecord]) -> List[IterationRecord]:
    return sorted(iterations, key=lambda it: it.iteration_number)


def next_iteration_number(iterations: Sequence[IterationRecord]) -> int:
    return max((it.iteration_number for it in iterations), default=0) + 1


def required_iterations(parameters: BudgetParameters, limit: int = MAX_ITERATIONS) -> int:
    """Number of standard-pace iterations needed to spend the budget."""
    standard_cost = parameters.standard_iteration_cost
    if standard_cost <= 0 or parameters.budget_size <= 0:
        return 0
    return min(limit, _uncapped_iterations(parameters))


def _uncapped_iterations(parameters: BudgetParameters) -> int:
    return math.ceil(parameters.budget_size / parameters.standard_iteration_cost)


def _cap_notices(parameters: BudgetParameters) -> List[Notice]:
    needed = _uncapped_iterations(parameters)
    if needed <= MAX_ITERATIONS:
        return []
    logger.warning("Ledger capped at %d iterations; budget needs %d", MAX_ITERATIONS, needed)
    return [Notice('warning', get_message('ledger_full', limit=MAX_ITERATIONS))]


def generate_iterations(
    parameters: BudgetParameters,
    count: Optional[int] = None,
    start: int = 1,
    mark_last_current: bool = True,
) -> List[IterationRecord]:
    """Build default-shaped iterations numbered from ``start``.

    ``count`` defaults to :func:`required_iterations`.
    """
    if count is None:
        count = required_iterations(parameters)
    count = max(0, min(count, MAX_ITERATIONS))
    records = [
        IterationRecord(
            iteration_number=start + offset,
            iteration_days=parameters.working_days_per_iteration,
            team_size=parameters.team_size,
        )
        for offset in range(count)
    ]
    if records and mark_last_current:
        records[-1].is_current = True
    return records


def ensure_filled(parameters: BudgetParameters, iterations: Sequence[IterationRecord]) -> List[IterationRecord]:
    """Generate the initial ledger when ``iterations`` is empty."""
    if iterations:
        return [it.copy() for it in iterations]
    return generate_iterations(parameters)


def reconcile(
    parameters: BudgetParameters,
    iterations: Sequence[IterationRecord],
    threshold: int = REGENERATE_THRESHOLD,
) -> ReconcileResult:
    """Re-sync the ledger length after a parameter change.

    A large length mismatch, or actual spend already beyond the new budget,
    discards the ledger and regenerates it; manual edits are lost in that case.
    Small shortfalls are closed by appending default-shaped iterations. A
    budget needing more than ``MAX_ITERATIONS`` adds a warning notice.
    """
    required = required_iterations(parameters)
    if required == 0:
        return ReconcileResult([], 'cleared' if iterations else 'unchanged')
    capped = _cap_notices(parameters)

    if not iterations:
        return ReconcileResult(generate_iterations(parameters, required), 'regenerated', capped)

    current = sort_iterations(it.copy() for it in iterations)
    gap = required - len(current)
    spent = actual_cost_to_current(parameters, current)

    if abs(gap) > threshold or spent > parameters.budget_size:
        logger.warning(
            "Regenerating ledger: %d iterations held, %d required, %.2f spent of %.2f",
            len(current), required, spent, parameters.budget_size,
        )
        notices = [Notice('warning', get_message(
            'ledger_regenerated',
            "Iterations were regenerated for the new parameters; manual edits were discarded.",
        ))]
        return ReconcileResult(generate_iterations(parameters, required), 'regenerated', notices + capped)

    room = MAX_ITERATIONS - len(current)
    to_add = min(gap, room)
    if to_add <= 0:
        return ReconcileResult(current, 'unchanged', capped)

    has_current = any(it.is_current for it in current)
    extra = generate_iterations(
        parameters,
        to_add,
        start=next_iteration_number(current),
        mark_last_current=not has_current,
    )
    return ReconcileResult(current + extra, 'extended', capped)


# ---------------------------------------------------------------------------
# Manual edits
# ---------------------------------------------------------------------------


def validate_ledger(iterations: Sequence[IterationRecord]) -> None:
    """Raise :class:`ValidationError` when ledger invariants are broken."""
    seen = set()
    for record in iterations:
        record.validate()
        if record.iteration_number in seen:
            raise ValidationError(f"Iteration {record.iteration_number} already exists")
        seen.add(record.iteration_number)
    if sum(1 for it in iterations if it.is_current) > 1:
        raise ValidationError("Only one iteration can be marked as current")
    if len(iterations) > MAX_ITERATIONS:
        raise ValidationError(get_message('ledger_full', limit=MAX_ITERATIONS))


def add_iteration(iterations: Sequence[IterationRecord], record: IterationRecord) -> List[IterationRecord]:
    if len(iterations) >= MAX_ITERATIONS:
        raise ValidationError(get_message('ledger_full', limit=MAX_ITERATIONS))
    record.validate()
    if any(it.iteration_number == record.iteration_number for it in iterations):
        raise ValidationError(f"Iteration {record.iteration_number} already exists")

    updated = [it.copy() for it in iterations]
    new_record = record.copy()
    if new_record.is_current:
        for it in updated:
            it.is_current = False
    updated.append(new_record)
    return sort_iterations(updated)


def update_iteration(
    iterations: Sequence[IterationRecord],
    iteration_number: int,
    /,
    **changes,
) -> List[IterationRecord]:
    """Apply an inline edit to one iteration.

    Accepted keys are ``iteration_days``, ``team_size`` and ``total_hours``;
    ``total_hours=None`` returns the record to derived hours.
    """
    allowed = {'iteration_days', 'team_size', 'total_hours'}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")

    updated: List[IterationRecord] = []
    found = False
    for it in iterations:
        if it.iteration_number == iteration_number:
            edited = it.copy(**changes)
            edited.validate()
            updated.append(edited)
            found = True
        else:
            updated.append(it.copy())
    if not found:
        raise ValidationError(f"Iteration {iteration_number} does not exist")
    return updated


def set_current(iterations: Sequence[IterationRecord], iteration_number: int) -> List[IterationRecord]:
    if not any(it.iteration_number == iteration_number for it in iterations):
        raise ValidationError(f"Iteration {iteration_number} does not exist")
    return [it.copy(is_current=(it.iteration_number == iteration_number)) for it in iterations]
