"""CSV import and export for budget parameters and iteration ledgers.

Two layouts are recognised by their header:

* parameters – ``costPerHour,budgetSize,teamSize,workingDaysPerIteration[,currency]``
  with a single data row;
* iterations – ``iterationNumber,iterationDays,teamSize[,totalHours][,isCurrent]``
  with up to ``MAX_ITERATIONS`` data rows.

Values are read as text and converted with ``float`` so an exported file
re-imports to exactly the same numbers.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, List, Optional, Union

import pandas as pd

from .config import MAX_ITERATIONS
from .errors import Notice, ValidationError
from .models import BudgetParameters, IterationRecord

logger = logging.getLogger(__name__)

PARAMETER_COLUMNS = ['costPerHour', 'budgetSize', 'teamSize', 'workingDaysPerIteration']
OPTIONAL_PARAMETER_COLUMNS = ['currency']
ITERATION_COLUMNS = ['iterationNumber', 'iterationDays', 'teamSize']
OPTIONAL_ITERATION_COLUMNS = ['totalHours', 'isCurrent']

PARAMETERS_FILENAME = 'budget_parameters.csv'
ITERATIONS_FILENAME = 'iterations.csv'

_TRUE_VALUES = {'true', '1', 'yes', 'y'}
_FALSE_VALUES = {'false', '0', 'no', 'n', ''}

CsvSource = Union[str, Path, bytes, IO[Any]]


@dataclass
class ImportResult:
    kind: str  # 'parameters' or 'iterations'
    parameters: Optional[BudgetParameters] = None
    iterations: List[IterationRecord] = field(default_factory=list)
    notices: List[Notice] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _format_number(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _parse_number(value: Any) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _parse_flag(value: Any) -> Optional[bool]:
    text = '' if value is None else str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def read_frame(source: CsvSource) -> pd.DataFrame:
    """Read CSV content as strings, whatever the source type."""
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    elif isinstance(source, str) and '\n' in source:
        source = io.StringIO(source)
    try:
        frame = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Error parsing CSV file: {exc}") from exc
    frame.columns = [str(col).strip() for col in frame.columns]
    return frame


def detect_schema(frame: pd.DataFrame) -> str:
    if 'costPerHour' in frame.columns:
        return 'parameters'
    if 'iterationNumber' in frame.columns:
        return 'iterations'
    raise ValidationError("Invalid CSV format. Please check the template.")


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


def parse_parameters(frame: pd.DataFrame) -> BudgetParameters:
    missing = [col for col in PARAMETER_COLUMNS if col not in frame.columns]
    if missing:
        raise ValidationError(f"Parameters CSV is missing column(s): {', '.join(missing)}")
    if frame.empty:
        raise ValidationError("Parameters CSV has no data row")

    row = frame.iloc[0]
    values = {}
    for col in PARAMETER_COLUMNS:
        number = _parse_number(row[col])
        if number is None or number <= 0:
            raise ValidationError(f"'{col}' must be a number greater than zero")
        values[col] = number
    if not float(values['teamSize']).is_integer():
        raise ValidationError("'teamSize' must be a whole number")

    currency = str(row.get('currency', '') or '').strip() or BudgetParameters().currency
    params = BudgetParameters(
        cost_per_hour=values['costPerHour'],
        budget_size=values['budgetSize'],
        team_size=int(values['teamSize']),
        working_days_per_iteration=values['workingDaysPerIteration'],
        currency=currency,
    )
    return params.validate()


def export_parameters_csv(parameters: BudgetParameters) -> str:
    frame = pd.DataFrame([{
        'costPerHour': _format_number(parameters.cost_per_hour),
        'budgetSize': _format_number(parameters.budget_size),
        'teamSize': str(int(parameters.team_size)),
        'workingDaysPerIteration': _format_number(parameters.working_days_per_iteration),
        'currency': parameters.currency,
    }], columns=PARAMETER_COLUMNS + OPTIONAL_PARAMETER_COLUMNS)
    return frame.to_csv(index=False, lineterminator='\n')


# ---------------------------------------------------------------------------
# Iterations
# ---------------------------------------------------------------------------


def parse_iterations(frame: pd.DataFrame) -> ImportResult:
    missing = [col for col in ITERATION_COLUMNS if col not in frame.columns]
    if missing:
        raise ValidationError(f"Iterations CSV is missing column(s): {', '.join(missing)}")

    result = ImportResult(kind='iterations')
    if len(frame) > MAX_ITERATIONS:
        result.notices.append(Notice(
            'warning',
            f"CSV contains more than {MAX_ITERATIONS} iterations. Only the first {MAX_ITERATIONS} will be imported.",
        ))
        logger.warning("Iterations CSV truncated from %d to %d rows", len(frame), MAX_ITERATIONS)
        frame = frame.head(MAX_ITERATIONS)

    has_hours = 'totalHours' in frame.columns
    has_current = 'isCurrent' in frame.columns
    records: List[IterationRecord] = []
    seen = set()
    invalid = 0
    duplicates = 0

    for _, row in frame.iterrows():
        number = _parse_number(row['iterationNumber'])
        days = _parse_number(row['iterationDays'])
        team = _parse_number(row['teamSize'])
        hours = _parse_number(row['totalHours']) if has_hours else None
        hours_text = str(row['totalHours']).strip() if has_hours else ''

        if any(v is None or v <= 0 for v in (number, days, team)):
            invalid += 1
            continue
        if hours_text and (hours is None or hours <= 0):
            invalid += 1
            continue
        if not float(number).is_integer() or not float(team).is_integer():
            invalid += 1
            continue

        number = int(number)
        if number in seen:
            duplicates += 1
            continue
        seen.add(number)

        record = IterationRecord(
            iteration_number=number,
            iteration_days=days,
            team_size=int(team),
            is_current=bool(_parse_flag(row['isCurrent'])) if has_current else False,
        )
        if hours is not None and hours != record.derived_hours:
            record.total_hours = hours
        records.append(record)

    if invalid:
        result.notices.append(Notice('warning', "Some iterations had invalid data and were skipped"))
        logger.warning("Dropped %d iteration row(s) with non-positive or missing values", invalid)
    if duplicates:
        result.notices.append(Notice('warning', f"Skipped {duplicates} duplicate iteration number(s)"))

    flagged = [r for r in records if r.is_current]
    if len(flagged) > 1:
        keep = flagged[-1].iteration_number
        for r in records:
            r.is_current = r.iteration_number == keep
        result.notices.append(Notice(
            'warning', f"Several iterations were marked current; keeping iteration {keep}",
        ))

    result.iterations = sorted(records, key=lambda r: r.iteration_number)
    result.notices.append(Notice('success', f"{len(result.iterations)} iterations imported successfully"))
    return result


def export_iterations_csv(iterations: List[IterationRecord]) -> str:
    columns = ITERATION_COLUMNS + OPTIONAL_ITERATION_COLUMNS
    if not iterations:
        template = pd.DataFrame([{'iterationNumber': '1', 'iterationDays': '10', 'teamSize': '5'}],
                                columns=ITERATION_COLUMNS)
        return template.to_csv(index=False, lineterminator='\n')
    rows = [{
        'iterationNumber': str(it.iteration_number),
        'iterationDays': _format_number(it.iteration_days),
        'teamSize': str(it.team_size),
        'totalHours': _format_number(it.effective_hours),
        'isCurrent': 'true' if it.is_current else 'false',
    } for it in sorted(iterations, key=lambda r: r.iteration_number)]
    return pd.DataFrame(rows, columns=columns).to_csv(index=False, lineterminator='\n')


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def import_csv(source: CsvSource) -> ImportResult:
    """Parse either CSV layout; raises :class:`ValidationError` on bad input."""
    frame = read_frame(source)
    kind = detect_schema(frame)
    if kind == 'parameters':
        params = parse_parameters(frame)
        return ImportResult(
            kind='parameters',
            parameters=params,
            notices=[Notice('success', "Budget parameters imported successfully")],
        )
    return parse_iterations(frame)
