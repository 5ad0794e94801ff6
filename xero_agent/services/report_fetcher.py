"""Report fetch collaborators for the reconciler.

Both fetches return either a parsed ``Report`` or an ``UpstreamFetchError``
carrying the client's message verbatim. Retries happen inside the client,
never here.
"""

import logging
from typing import Optional, Protocol, Union

from xero_agent.models.failures import UpstreamFetchError
from xero_agent.models.report import Report
from xero_agent.services.report_tree import build_report
from xero_agent.services.xero_client import XeroClient, XeroError

logger = logging.getLogger(__name__)

FetchOutcome = Union[Report, UpstreamFetchError]


class ReportFetcher(Protocol):
    """What the reconciler needs from a report source."""

    async def fetch_actual_report(
        self,
        from_date: str,
        to_date: Optional[str] = None,
        periods: Optional[int] = None,
        timeframe: str = "MONTH",
        standard_layout: Optional[bool] = None,
        payments_only: Optional[bool] = None,
    ) -> FetchOutcome:
        ...

    async def fetch_budget_report(
        self,
        from_date: str,
        periods: Optional[int] = None,
        timeframe: str = "MONTH",
    ) -> FetchOutcome:
        ...


class XeroReportFetcher:
    """Fetches Profit and Loss (actual) and Budget Summary (budget) reports."""

    def __init__(self, client: XeroClient):
        self.client = client

    async def fetch_actual_report(
        self,
        from_date: str,
        to_date: Optional[str] = None,
        periods: Optional[int] = None,
        timeframe: str = "MONTH",
        standard_layout: Optional[bool] = None,
        payments_only: Optional[bool] = None,
    ) -> FetchOutcome:
        try:
            raw = await self.client.get_profit_and_loss(
                from_date=from_date,
                to_date=to_date,
                periods=periods,
                timeframe=timeframe,
                standard_layout=standard_layout,
                payments_only=payments_only,
            )
        except XeroError as e:
            logger.error(f"Xero API error fetching profit and loss: {e}")
            return UpstreamFetchError(source="actual", message=str(e))
        except Exception as e:
            logger.error(f"Unexpected error fetching profit and loss: {e}")
            return UpstreamFetchError(source="actual", message=f"Unexpected error: {e}")
        return build_report(raw)

    async def fetch_budget_report(
        self,
        from_date: str,
        periods: Optional[int] = None,
        timeframe: str = "MONTH",
    ) -> FetchOutcome:
        try:
            reports = await self.client.get_budget_summary(
                date=from_date,
                periods=periods,
                timeframe=timeframe,
            )
        except XeroError as e:
            logger.error(f"Xero API error fetching budget summary: {e}")
            return UpstreamFetchError(source="budget", message=str(e))
        except Exception as e:
            logger.error(f"Unexpected error fetching budget summary: {e}")
            return UpstreamFetchError(source="budget", message=f"Unexpected error: {e}")
        if not reports:
            return UpstreamFetchError(
                source="budget",
                message="Failed to fetch budget summary data from Xero: no report returned.",
            )
        return build_report(reports[0])
