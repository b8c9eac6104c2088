"""Budget projection over the iteration ledger.

The projection produces two cumulative curves:

* **standard** – every iteration costs the default team running the default
  iteration length, regardless of what was recorded;
* **actual** – recorded costs up to and including the current iteration,
  then standard cost for every iteration after it (what is spent is actual,
  what is ahead is projected at the standard rate).

If no iteration is flagged current, the last one is treated as current.
Nothing here raises; malformed values are rejected before they reach the
ledger.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from .models import BudgetParameters, IterationRecord, ProjectedPoint

START_LABEL = "Start"


def _sorted(iterations: Sequence[IterationRecord]) -> List[IterationRecord]:
    return sorted(iterations, key=lambda it: it.iteration_number)


def current_index(iterations: Sequence[IterationRecord]) -> int:
    """Index of the current iteration in number order (-1 for an empty ledger)."""
    ordered = _sorted(iterations)
    for idx, record in enumerate(ordered):
        if record.is_current:
            return idx
    return len(ordered) - 1


def iteration_label(record: IterationRecord) -> str:
    return f"Iteration {record.iteration_number}"


def project(parameters: BudgetParameters, iterations: Sequence[IterationRecord]) -> List[ProjectedPoint]:
    """Map parameters and ledger to the cost series shown on the charts."""
    ordered = _sorted(iterations)
    standard_cost = parameters.standard_iteration_cost
    current = current_index(ordered)

    points = [ProjectedPoint(START_LABEL, 0.0, 0.0, 0.0)]
    cumulative_standard = 0.0
    cumulative_actual = 0.0
    for idx, record in enumerate(ordered):
        cost = record.cost(parameters.cost_per_hour)
        cumulative_standard += standard_cost
        cumulative_actual += cost if idx <= current else standard_cost
        points.append(ProjectedPoint(
            label=iteration_label(record),
            iteration_cost=cost,
            cumulative_standard=cumulative_standard,
            cumulative_actual=cumulative_actual,
        ))
    return points


def actual_cost_to_current(parameters: BudgetParameters, iterations: Sequence[IterationRecord]) -> float:
    """Recorded spend through the current iteration (inclusive)."""
    ordered = _sorted(iterations)
    current = current_index(ordered)
    return float(sum(it.cost(parameters.cost_per_hour) for it in ordered[:current + 1]))


def consumption_summary(parameters: BudgetParameters, iterations: Sequence[IterationRecord]) -> Dict[str, float]:
    """Total, consumed and remaining budget plus the consumed percentage."""
    total = float(parameters.budget_size)
    consumed = actual_cost_to_current(parameters, iterations) if iterations else 0.0
    percent = (consumed / total * 100.0) if total > 0 else 0.0
    return {
        'total': total,
        'consumed': consumed,
        'remaining': total - consumed,
        'percent': percent,
    }


def projection_frame(points: Sequence[ProjectedPoint]) -> pd.DataFrame:
    """Tabular form of the projection, one row per point."""
    columns = ['Label', 'Iteration Cost', 'Standard Cumulative', 'Actual Cumulative']
    if not points:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        [(p.label, p.iteration_cost, p.cumulative_standard, p.cumulative_actual) for p in points],
        columns=columns,
    )


def consumption_table(parameters: BudgetParameters, iterations: Sequence[IterationRecord]) -> pd.DataFrame:
    """Per-iteration budget consumption used by the report and the table view.

    ``Cumulative`` is the running total of each record's own cost, so it
    always agrees with the ``Cost`` column. ``Exhaustion`` flags the first
    iteration whose cumulative spend strictly exceeds the budget.
    """
    columns = [
        'Iteration', 'Hours', 'Cost', 'Cumulative', 'Remaining',
        'Consumed (%)', 'Current', 'Exhaustion',
    ]
    ordered = _sorted(iterations)
    if not ordered:
        return pd.DataFrame(columns=columns)

    budget = float(parameters.budget_size)
    costs = np.array([it.cost(parameters.cost_per_hour) for it in ordered], dtype=float)
    cumulative = np.cumsum(costs)
    remaining = budget - cumulative
    percent = cumulative / budget * 100.0 if budget > 0 else np.zeros_like(cumulative)

    exhausted = np.flatnonzero(remaining < 0)
    exhaustion_idx = int(exhausted[0]) if exhausted.size else -1
    current = current_index(ordered)

    table = pd.DataFrame({
        'Iteration': [it.iteration_number for it in ordered],
        'Hours': [it.effective_hours for it in ordered],
        'Cost': costs,
        'Cumulative': cumulative,
        'Remaining': remaining,
        'Consumed (%)': percent,
    })
    table['Current'] = table.index == current
    table['Exhaustion'] = table.index == exhaustion_idx
    return table[columns]
