"""Actual vs budget reconciliation.

The Reconciler fetches a Profit and Loss report (actuals) and a Budget
Summary report concurrently, resolves the requested metric to report
sections on both sides, reduces each to a per-period series, de-cumulates
the actual series when it holds running totals, and aligns the two series
period by period.

Stages run in order ``FETCHING -> RESOLVING -> EXTRACTING -> ALIGNING ->
DONE``. A typed failure in any stage ends the run in ``FAILED``; nothing is
retried here and no exception escapes ``reconcile``.
"""

import asyncio
import calendar
import logging
from datetime import date
from enum import Enum
from typing import Annotated, Any, Awaitable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from xero_agent.core.config import settings
from xero_agent.core.errors import ErrorResponse
from xero_agent.core.logging import LoggerAdapter
from xero_agent.models.base import FrozenModel
from xero_agent.models.failures import Failure, SectionNotFound, UpstreamFetchError
from xero_agent.models.report import ComparisonRecord, Report, SectionRow
from xero_agent.services.period_series import (
    align_periods,
    count_periods,
    decumulate,
    extract_sections_series,
)
from xero_agent.services.report_fetcher import ReportFetcher
from xero_agent.services.section_resolver import (
    ALL_SECTIONS,
    normalize_title,
    resolve_sections,
)

logger = logging.getLogger(__name__)

Timeframe = Literal["MONTH", "QUARTER", "YEAR"]


class ReconcilerState(str, Enum):
    """Pipeline stages."""
    FETCHING = "FETCHING"
    RESOLVING = "RESOLVING"
    EXTRACTING = "EXTRACTING"
    ALIGNING = "ALIGNING"
    DONE = "DONE"
    FAILED = "FAILED"


class ReconciliationRequest(BaseModel):
    """Arguments of one actual vs budget comparison."""
    metric: str = Field(description="Section title to compare, or ALL")
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    periods: Optional[int] = Field(default=None, ge=1)
    timeframe: Timeframe = "MONTH"
    standard_layout: Optional[bool] = None
    payments_only: Optional[bool] = None

    def date_range(self, today: Optional[date] = None) -> Tuple[date, date]:
        """Requested range, defaulting to the current calendar month."""
        today = today or date.today()
        start = self.from_date or today.replace(day=1)
        if self.to_date:
            end = self.to_date
        else:
            last_day = calendar.monthrange(today.year, today.month)[1]
            end = today.replace(day=last_day)
        return start, end


class SectionComparison(FrozenModel):
    """Comparison records for one section title."""
    section: str
    records: Tuple[ComparisonRecord, ...] = ()


class ReconciliationResult(FrozenModel):
    """Outcome of ``Reconciler.reconcile``.

    Attributes:
        state: DONE or FAILED
        states: Every stage entered, in order
        sections: One comparison per resolved section title
        failure: The failure that ended the run, if any
        keyed: Serialize by section title even for a single section
            (set for the ALL query)
    """
    state: ReconcilerState
    states: Tuple[ReconcilerState, ...] = ()
    sections: Tuple[SectionComparison, ...] = ()
    keyed: bool = False
    failure: Optional[
        Annotated[Union[SectionNotFound, UpstreamFetchError], Field(discriminator="kind")]
    ] = None

    @property
    def success(self) -> bool:
        return self.state == ReconcilerState.DONE

    @property
    def records(self) -> List[ComparisonRecord]:
        """All comparison records, section after section."""
        return [record for section in self.sections for record in section.records]

    def error_response(self) -> Optional[ErrorResponse]:
        if self.failure is None:
            return None
        return self.failure.to_error_response()

    def to_payload(self) -> Any:
        """JSON-ready comparison.

        A single section serializes as a list of records; several sections,
        or any result of an ALL query, as an object keyed by section title.
        """
        if self.failure is not None:
            return self.failure.to_error_response().model_dump()
        if len(self.sections) == 1 and not self.keyed:
            return [r.model_dump() for r in self.sections[0].records]
        return {
            s.section: [r.model_dump() for r in s.records]
            for s in self.sections
        }


def _group_by_title(sections: Tuple[SectionRow, ...]) -> Dict[str, Tuple[str, List[SectionRow]]]:
    """Group sections by normalized title, keeping the first display title."""
    groups: Dict[str, Tuple[str, List[SectionRow]]] = {}
    for section in sections:
        key = normalize_title(section.title)
        if key not in groups:
            groups[key] = (section.title.strip(), [])
        groups[key][1].append(section)
    return groups


def budget_timeframe(timeframe: str) -> str:
    """Budget Summary only supports MONTH and YEAR."""
    return "YEAR" if timeframe == "YEAR" else "MONTH"


class Reconciler:
    """Compares actual and budgeted values period by period.

    Example:
        ```python
        reconciler = Reconciler(XeroReportFetcher(client))
        result = await reconciler.reconcile(
            ReconciliationRequest(metric="Income", from_date=date(2024, 1, 1),
                                  to_date=date(2024, 3, 31))
        )
        ```
    """

    def __init__(
        self,
        fetcher: ReportFetcher,
        cumulative_actuals: Optional[bool] = None,
    ):
        """Initialize Reconciler.

        Args:
            fetcher: Source of actual and budget reports
            cumulative_actuals: Whether the actual report is requested with
                an end date and holds running totals to de-cumulate.
                Defaults to ``settings.actual_report_cumulative``.
        """
        self.fetcher = fetcher
        self.cumulative_actuals = (
            settings.actual_report_cumulative
            if cumulative_actuals is None
            else cumulative_actuals
        )

    async def reconcile(
        self,
        request: ReconciliationRequest,
        today: Optional[date] = None,
    ) -> ReconciliationResult:
        """Run the comparison.

        Args:
            request: Metric, date range and timeframe
            today: Reference date for default ranges

        Returns:
            ReconciliationResult in state DONE or FAILED
        """
        log = LoggerAdapter(logger, {"metric": request.metric, "timeframe": request.timeframe})
        states: List[ReconcilerState] = [ReconcilerState.FETCHING]

        def failed(failure: Failure) -> ReconciliationResult:
            states.append(ReconcilerState.FAILED)
            log.warning(f"Reconciliation failed: {failure.kind}")
            return ReconciliationResult(
                state=ReconcilerState.FAILED,
                states=tuple(states),
                failure=failure,
            )

        start, end = request.date_range(today)
        actual_timeframe = request.timeframe
        budget_tf = budget_timeframe(actual_timeframe)

        if request.periods is not None:
            actual_periods = request.periods
            budget_periods = (
                request.periods * 3 if actual_timeframe == "QUARTER" else request.periods
            )
        else:
            actual_periods = count_periods(start, end, actual_timeframe)
            budget_periods = count_periods(start, end, budget_tf)

        log.info(
            f"Fetching reports {start.isoformat()}..{end.isoformat()} "
            f"(actual periods={actual_periods}, budget periods={budget_periods})"
        )

        fetched = await self._fetch_both(
            self.fetcher.fetch_actual_report(
                from_date=start.isoformat(),
                to_date=end.isoformat() if self.cumulative_actuals else None,
                periods=actual_periods,
                timeframe=actual_timeframe,
                standard_layout=request.standard_layout,
                payments_only=request.payments_only,
            ),
            self.fetcher.fetch_budget_report(
                from_date=start.isoformat(),
                periods=budget_periods,
                timeframe=budget_tf,
            ),
        )
        if isinstance(fetched, UpstreamFetchError):
            return failed(fetched)
        actual_report, budget_report = fetched

        states.append(ReconcilerState.RESOLVING)
        actual_sections = resolve_sections(actual_report, request.metric)
        if isinstance(actual_sections, SectionNotFound):
            return failed(actual_sections.model_copy(update={"source": "actual"}))
        budget_sections = resolve_sections(budget_report, request.metric)
        if isinstance(budget_sections, SectionNotFound):
            return failed(budget_sections.model_copy(update={"source": "budget"}))

        states.append(ReconcilerState.EXTRACTING)
        keyed = normalize_title(request.metric) in ALL_SECTIONS
        actual_groups = _group_by_title(actual_sections)
        budget_groups = _group_by_title(budget_sections)

        if not keyed and not set(actual_groups) & set(budget_groups):
            # Both sides matched the metric under different titles
            title = next(iter(actual_groups.values()))[0]
            pairs = [(title, list(actual_sections), list(budget_sections))]
        else:
            keys = list(actual_groups)
            keys.extend(k for k in budget_groups if k not in actual_groups)
            pairs = [
                (
                    (actual_groups.get(key) or budget_groups[key])[0],
                    actual_groups.get(key, ("", []))[1],
                    budget_groups.get(key, ("", []))[1],
                )
                for key in keys
            ]

        series = []
        for title, actual_group, budget_group in pairs:
            actual_series = extract_sections_series(actual_group, actual_report.period_columns)
            if self.cumulative_actuals:
                actual_series = decumulate(actual_series)
            budget_series = extract_sections_series(budget_group, budget_report.period_columns)
            series.append((title, actual_series, budget_series))

        states.append(ReconcilerState.ALIGNING)
        comparisons = tuple(
            SectionComparison(
                section=title,
                records=tuple(align_periods(actual_series, budget_series)),
            )
            for title, actual_series, budget_series in series
        )

        states.append(ReconcilerState.DONE)
        log.info(f"Compared {len(comparisons)} section(s)")
        return ReconciliationResult(
            state=ReconcilerState.DONE,
            states=tuple(states),
            sections=comparisons,
            keyed=keyed,
        )

    async def _guard(self, source: str, awaitable: Awaitable) -> Union[Report, UpstreamFetchError]:
        """Turn any collaborator exception into an UpstreamFetchError."""
        try:
            return await awaitable
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error fetching {source} report: {e}")
            return UpstreamFetchError(source=source, message=f"Unexpected error: {e}")

    async def _fetch_both(
        self,
        actual: Awaitable,
        budget: Awaitable,
    ) -> Union[Tuple[Report, Report], UpstreamFetchError]:
        """Run both fetches concurrently and stop at the first failure.

        The fetch still running when the other one fails is cancelled and
        its result is never looked at.
        """
        tasks = {
            asyncio.create_task(self._guard("actual", actual)): "actual",
            asyncio.create_task(self._guard("budget", budget)): "budget",
        }
        reports: Dict[str, Report] = {}
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=lambda t: tasks[t] != "actual"):
                    outcome = task.result()
                    if isinstance(outcome, UpstreamFetchError):
                        return outcome
                    reports[tasks[task]] = outcome
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)
        return reports["actual"], reports["budget"]
