"""Period series extraction, de-cumulation and actual/budget alignment.

The functions in this module are pure: they take immutable report models
and return new series or comparison records.
"""

import logging
import math
import re
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Union

from xero_agent.models.report import (
    ComparisonRecord,
    DataRow,
    PeriodColumn,
    PeriodSeries,
    SectionRow,
    SummaryRow,
)

logger = logging.getLogger(__name__)

# Anything that is not a digit, sign or decimal point ("$", ",", spaces, ...)
_NON_NUMERIC = re.compile(r"[^0-9+\-.]")

# Months per period for each timeframe
TIMEFRAME_MONTHS = {
    "MONTH": 1,
    "QUARTER": 3,
    "YEAR": 12,
}


def parse_amount(raw: Union[str, int, float, None]) -> float:
    """Parse a report cell value into a number.

    Currency symbols, thousands separators and whitespace are stripped.
    Empty or unparsable values count as 0.0.

    Examples:
        >>> parse_amount("$1,234.50")
        1234.5
        >>> parse_amount("")
        0.0
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else 0.0

    cleaned = _NON_NUMERIC.sub("", str(raw))
    if not cleaned:
        return 0.0
    try:
        value = float(cleaned)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _period_count(section: Optional[SectionRow], columns: Sequence[PeriodColumn]) -> int:
    if columns:
        return len(columns)
    if section is None:
        return 0
    for child in section.children:
        cells = getattr(child, "cells", ())
        if len(cells) > 1:
            # First cell is the row label
            return len(cells) - 1
    return 0


def _period_labels(columns: Sequence[PeriodColumn], count: int) -> List[str]:
    if columns:
        return [column.label for column in columns]
    return [f"Period {i + 1}" for i in range(count)]


def extract_sections_series(
    sections: Iterable[SectionRow],
    period_columns: Sequence[PeriodColumn],
) -> PeriodSeries:
    """Sum the data and summary rows of several sections into one series.

    The period count ``M`` comes from ``period_columns``; without columns it
    is inferred from the first row with more than one cell. Rows with
    ``M + 1`` cells (label plus values) or ``M`` cells (values only)
    contribute; rows of any other width are skipped.

    Args:
        sections: Sections whose rows are summed
        period_columns: The owning report's period columns

    Returns:
        A series of exactly ``M`` points. When no row contributed every
        value is None, which tells "no data" apart from "all zero".
    """
    sections = list(sections)
    count = 0
    for section in sections:
        count = _period_count(section, period_columns)
        if count:
            break
    if not sections:
        count = _period_count(None, period_columns)

    labels = _period_labels(period_columns, count)
    totals = [0.0] * count
    rows_contributed = 0

    for section in sections:
        for child in section.children:
            if not isinstance(child, (DataRow, SummaryRow)):
                continue
            width = len(child.cells)
            if count and width == count + 1:
                value_cells = child.cells[1:]
            elif count and width == count:
                value_cells = child.cells
            else:
                continue
            for i, cell in enumerate(value_cells):
                totals[i] += parse_amount(cell.raw_value)
            rows_contributed += 1

    if rows_contributed == 0:
        return PeriodSeries.from_values(labels, [None] * count)

    return PeriodSeries.from_values(labels, totals)


def extract_period_series(
    section: Optional[SectionRow],
    period_columns: Sequence[PeriodColumn],
) -> PeriodSeries:
    """Reduce one section to a value per period.

    An unresolved section (``None``) yields an all-null series sized by the
    report's columns.
    """
    sections = [section] if section is not None else []
    return extract_sections_series(sections, period_columns)


def decumulate(series: PeriodSeries) -> PeriodSeries:
    """Turn period-to-date running totals into per-period deltas.

    The first value is kept. Each later value becomes the difference to its
    predecessor, or None when either of the two is None.
    """
    values = series.values
    deltas: List[Optional[float]] = []
    for i, value in enumerate(values):
        if i == 0:
            deltas.append(value)
        elif value is not None and values[i - 1] is not None:
            deltas.append(value - values[i - 1])
        else:
            deltas.append(None)
    return PeriodSeries.from_values(series.labels, deltas)


def _first_values(series: PeriodSeries) -> Dict[str, Optional[float]]:
    lookup: Dict[str, Optional[float]] = {}
    for point in series.points:
        lookup.setdefault(point.label, point.value)
    return lookup


def align_periods(actual: PeriodSeries, budget: PeriodSeries) -> List[ComparisonRecord]:
    """Merge actual and budget series into comparison records.

    Periods are ordered as the actual labels followed by the labels only
    the budget has, in budget order. Values are matched by label; a period
    missing on one side gets None there. Variance is actual minus budget
    when both are present.
    """
    actual_values = _first_values(actual)
    budget_values = _first_values(budget)

    periods = list(actual_values)
    periods.extend(label for label in budget_values if label not in actual_values)

    records = []
    for period in periods:
        actual_value = actual_values.get(period)
        budget_value = budget_values.get(period)
        variance = None
        if actual_value is not None and budget_value is not None:
            variance = actual_value - budget_value
        records.append(ComparisonRecord(
            period=period,
            actual=actual_value,
            budget=budget_value,
            variance=variance,
        ))

    if actual_values and budget_values and not set(actual_values) & set(budget_values):
        logger.warning(
            "Actual and budget period labels do not overlap: "
            f"{list(actual_values)[:3]} vs {list(budget_values)[:3]}"
        )

    return records


def count_periods(from_date: date, to_date: date, timeframe: str = "MONTH") -> int:
    """Number of periods of ``timeframe`` covering ``from_date`` to ``to_date``.

    Counts calendar months inclusively of the start month and divides by
    the timeframe size, rounding up. A range ending before it starts still
    counts one period.

    Args:
        from_date: Range start
        to_date: Range end
        timeframe: MONTH, QUARTER or YEAR

    Returns:
        Period count, at least 1

    Raises:
        ValueError: For an unknown timeframe
    """
    size = TIMEFRAME_MONTHS.get(timeframe.upper())
    if size is None:
        raise ValueError(f"Unknown timeframe: {timeframe}")

    if timeframe.upper() == "YEAR":
        return max(to_date.year - from_date.year + 1, 1)

    months = (to_date.year - from_date.year) * 12 + (to_date.month - from_date.month) + 1
    return max(math.ceil(months / size), 1)
