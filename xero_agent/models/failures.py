"""Typed failures returned (never raised) by the reconciliation core."""

from typing import Literal, Optional, Tuple, Union

from xero_agent.core.errors import ErrorCode, ErrorResponse, create_error_response
from xero_agent.models.base import FrozenModel


ReportSource = Literal["actual", "budget"]


class SectionNotFound(FrozenModel):
    """No section of the report matches the requested metric.

    Carries the titles that do exist so the caller can retry with one.
    """
    kind: Literal["SectionNotFound"] = "SectionNotFound"
    query: str
    available_sections: Tuple[str, ...] = ()
    source: Optional[ReportSource] = None

    @property
    def message(self) -> str:
        where = f" in the {self.source} report" if self.source else ""
        available = ", ".join(self.available_sections) or "none"
        return (
            f"No section matching '{self.query}'{where}. "
            f"Available sections: {available}"
        )

    def to_error_response(self) -> ErrorResponse:
        return create_error_response(
            ErrorCode.SECTION_NOT_FOUND,
            message=self.message,
            details={
                "query": self.query,
                "source": self.source,
                "available_sections": list(self.available_sections),
            },
        )


class UpstreamFetchError(FrozenModel):
    """A report fetch collaborator failed. The message is kept verbatim."""
    kind: Literal["UpstreamFetchError"] = "UpstreamFetchError"
    source: ReportSource
    message: str

    def to_error_response(self) -> ErrorResponse:
        return create_error_response(
            ErrorCode.UPSTREAM_FETCH_ERROR,
            message=f"Error fetching {self.source}: {self.message}",
            details={"source": self.source},
        )


Failure = Union[SectionNotFound, UpstreamFetchError]
