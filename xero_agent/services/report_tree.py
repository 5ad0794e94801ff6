"""Report tree builder for Xero report payloads.

Xero returns reports as nested rows tagged by a ``RowType`` field. The REST
API uses PascalCase keys (``Rows``, ``RowType``, ``Cells``, ``Value``) while
SDK serializations use camelCase (``rows``, ``rowType``, ``cells``,
``value``). Both are accepted.

The builder never raises on shape problems. Missing lists become empty
tuples, rows with an unknown type become empty data rows and are counted
on ``Report.unrecognized_rows``.
"""

import logging
from typing import Any, List, Optional, Tuple

from xero_agent.models.report import (
    Cell,
    DataRow,
    HeaderRow,
    PeriodColumn,
    Report,
    SectionRow,
    SummaryRow,
)

logger = logging.getLogger(__name__)


def _field(record: dict, name: str, default: Any = None) -> Any:
    """Read ``Name`` or ``name`` from a record."""
    pascal = name[0].upper() + name[1:]
    camel = name[0].lower() + name[1:]
    if pascal in record:
        return record[pascal]
    return record.get(camel, default)


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _unwrap_report(raw: Any) -> Optional[dict]:
    """Return the report dict from a ``{"Reports": [...]}`` wrapper, a list or a bare report."""
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if not isinstance(raw, dict):
        return None
    reports = _field(raw, "reports")
    if isinstance(reports, list):
        return _unwrap_report(reports)
    return raw


def _build_cell(raw: Any) -> Cell:
    value = _field(raw, "value") if isinstance(raw, dict) else raw
    if isinstance(value, bool) or (
        value is not None and not isinstance(value, (str, int, float))
    ):
        value = str(value)
    return Cell(raw_value=value)


def _build_cells(raw_row: dict) -> Tuple[Cell, ...]:
    return tuple(_build_cell(c) for c in _as_list(_field(raw_row, "cells")))


class _RowCounter:
    def __init__(self) -> None:
        self.unrecognized = 0


def _build_row(raw_row: Any, counter: _RowCounter):
    if not isinstance(raw_row, dict):
        counter.unrecognized += 1
        return DataRow()

    row_type = _field(raw_row, "rowType")

    if row_type == "Header":
        return HeaderRow(cells=_build_cells(raw_row))
    if row_type == "Section":
        title = _field(raw_row, "title")
        return SectionRow(
            title=title if isinstance(title, str) else "",
            children=tuple(
                _build_row(child, counter)
                for child in _as_list(_field(raw_row, "rows"))
            ),
        )
    if row_type == "Row":
        return DataRow(cells=_build_cells(raw_row))
    if row_type == "SummaryRow":
        return SummaryRow(cells=_build_cells(raw_row))

    counter.unrecognized += 1
    return DataRow()


def _columns_from_metadata(report: dict) -> List[PeriodColumn]:
    columns = []
    for index, column in enumerate(_as_list(_field(report, "columns"))):
        if isinstance(column, dict):
            label = _field(column, "title") or f"Period {index + 1}"
        else:
            label = str(column)
        columns.append(PeriodColumn(index=index, label=str(label)))
    return columns


def _columns_from_header(rows) -> List[PeriodColumn]:
    """Use the first header row. Its first cell labels the row titles, not a period."""
    for row in rows:
        if isinstance(row, HeaderRow):
            return [
                PeriodColumn(
                    index=index,
                    label="" if cell.raw_value is None else str(cell.raw_value),
                )
                for index, cell in enumerate(row.cells[1:])
            ]
    return []


def build_report(raw: Any) -> Report:
    """Parse a raw Xero report payload into a ``Report``.

    Args:
        raw: Report payload, a ``{"Reports": [...]}`` envelope or a list
            of reports (the first one is used)

    Returns:
        Immutable Report. A payload that is not a report yields an empty one.
    """
    report = _unwrap_report(raw)
    if report is None:
        logger.warning(f"Malformed report payload of type {type(raw).__name__}, using empty report")
        return Report()

    counter = _RowCounter()
    raw_rows = _field(report, "rows")
    if raw_rows is None:
        logger.warning("Report payload has no rows")
    rows = tuple(_build_row(r, counter) for r in _as_list(raw_rows))

    columns = _columns_from_metadata(report) or _columns_from_header(rows)

    if counter.unrecognized:
        logger.warning(
            f"Report '{_field(report, 'reportName', '')}' had "
            f"{counter.unrecognized} unrecognized row(s)"
        )

    name = _field(report, "reportName") or _field(report, "reportID") or ""
    report_date = _field(report, "reportDate")
    titles = tuple(str(t) for t in _as_list(_field(report, "reportTitles")))

    return Report(
        name=str(name),
        period_columns=tuple(columns),
        rows=rows,
        unrecognized_rows=counter.unrecognized,
        report_date=str(report_date) if report_date is not None else None,
        titles=titles,
    )
