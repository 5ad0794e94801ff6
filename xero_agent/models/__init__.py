"""Report, series and failure models."""

from xero_agent.models.base import FrozenModel
from xero_agent.models.failures import Failure, SectionNotFound, UpstreamFetchError
from xero_agent.models.report import (
    Cell,
    ComparisonRecord,
    DataRow,
    HeaderRow,
    PeriodColumn,
    PeriodPoint,
    PeriodSeries,
    Report,
    Row,
    SectionRow,
    SummaryRow,
)

__all__ = [
    "FrozenModel",
    "Cell",
    "PeriodColumn",
    "HeaderRow",
    "SectionRow",
    "DataRow",
    "SummaryRow",
    "Row",
    "Report",
    "PeriodPoint",
    "PeriodSeries",
    "ComparisonRecord",
    "Failure",
    "SectionNotFound",
    "UpstreamFetchError",
]
