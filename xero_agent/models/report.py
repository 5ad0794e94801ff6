"""Typed report tree and period series models.

A Xero report (Profit and Loss, Budget Summary) is a loosely typed tree of
rows. ``build_report`` in ``xero_agent.services.report_tree`` turns that
payload into the closed set of row variants defined here.
"""

from typing import Annotated, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import Field

from xero_agent.models.base import FrozenModel


RawValue = Union[str, int, float, None]


class Cell(FrozenModel):
    """A single report cell. Upstream gives no type guarantee."""
    raw_value: RawValue = None


class PeriodColumn(FrozenModel):
    """One period column of a report.

    ``index`` is positional and defines the canonical period order.
    """
    index: int
    label: str


class HeaderRow(FrozenModel):
    """Column header row."""
    row_type: Literal["Header"] = "Header"
    cells: Tuple[Cell, ...] = ()


class DataRow(FrozenModel):
    """Regular data row, usually one account."""
    row_type: Literal["Row"] = "Row"
    cells: Tuple[Cell, ...] = ()


class SummaryRow(FrozenModel):
    """Total row closing a section."""
    row_type: Literal["SummaryRow"] = "SummaryRow"
    cells: Tuple[Cell, ...] = ()


class SectionRow(FrozenModel):
    """Named group of rows."""
    row_type: Literal["Section"] = "Section"
    title: str = ""
    children: Tuple["Row", ...] = ()


Row = Annotated[
    Union[HeaderRow, SectionRow, DataRow, SummaryRow],
    Field(discriminator="row_type"),
]

SectionRow.model_rebuild()


class Report(FrozenModel):
    """A parsed financial statement.

    Attributes:
        name: Report name as given by Xero (e.g. "Profit and Loss")
        period_columns: Period columns in canonical order
        rows: Top-level rows
        unrecognized_rows: Rows whose type could not be classified. They are
            kept as empty data rows and counted here.
        report_date: Report date string, if provided
        titles: Report titles, if provided
    """
    name: str = ""
    period_columns: Tuple[PeriodColumn, ...] = ()
    rows: Tuple[Row, ...] = ()
    unrecognized_rows: int = 0
    report_date: Optional[str] = None
    titles: Tuple[str, ...] = ()

    @property
    def sections(self) -> List[SectionRow]:
        """Top-level sections in report order."""
        return [row for row in self.rows if isinstance(row, SectionRow)]

    @property
    def section_titles(self) -> List[str]:
        """Non-empty titles of top-level sections in report order."""
        return [s.title for s in self.sections if s.title.strip()]


class PeriodPoint(FrozenModel):
    """A (period label, value) pair."""
    label: str
    value: Optional[float] = None


class PeriodSeries(FrozenModel):
    """One value per report period, index-aligned with the report columns."""
    points: Tuple[PeriodPoint, ...] = ()

    @classmethod
    def from_values(
        cls,
        labels: Iterable[str],
        values: Iterable[Optional[float]],
    ) -> "PeriodSeries":
        """Pair labels and values positionally."""
        return cls(points=tuple(
            PeriodPoint(label=label, value=value)
            for label, value in zip(labels, values)
        ))

    @property
    def labels(self) -> List[str]:
        return [p.label for p in self.points]

    @property
    def values(self) -> List[Optional[float]]:
        return [p.value for p in self.points]

    def __len__(self) -> int:
        return len(self.points)


class ComparisonRecord(FrozenModel):
    """Actual vs budget for one period."""
    period: str
    actual: Optional[float] = None
    budget: Optional[float] = None
    variance: Optional[float] = None
