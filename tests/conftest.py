"""Pytest configuration and fixtures for tests.

Provides Xero report payload factories and a fake report fetcher for the
reconciliation tests.
"""

import asyncio
import os
from typing import Any, Dict, List, Optional, Sequence

# Set test environment variables BEFORE any xero_agent imports
# Settings are read once when xero_agent.core.config is first imported
os.environ["XERO_BEARER_TOKEN"] = "test-token"
os.environ["XERO_TENANT_ID"] = "tenant-123"
os.environ["ACTUAL_REPORT_CUMULATIVE"] = "true"

import pytest

from xero_agent.models.failures import UpstreamFetchError
from xero_agent.models.report import Report
from xero_agent.services.agent_tools import set_tool_context
from xero_agent.services.report_tree import build_report


MONTHS = ["Jan-24", "Feb-24", "Mar-24"]


def _cells(label: str, values: Sequence[Any]) -> List[Dict[str, Any]]:
    return [{"Value": label}] + [{"Value": v} for v in values]


def make_report_payload(
    name: str,
    labels: Sequence[str],
    sections: Dict[str, Sequence[Sequence[Any]]],
    summaries: Optional[Dict[str, Sequence[Any]]] = None,
) -> Dict[str, Any]:
    """Build a Xero-shaped ``{"Reports": [...]}`` payload.

    Args:
        name: Report name
        labels: Period column labels
        sections: Section title -> data rows (values per period)
        summaries: Optional section title -> summary row values
    """
    summaries = summaries or {}
    rows: List[Dict[str, Any]] = [{"RowType": "Header", "Cells": _cells("", labels)}]
    for title, data_rows in sections.items():
        children = [
            {"RowType": "Row", "Cells": _cells(f"{title} {i + 1}", values)}
            for i, values in enumerate(data_rows)
        ]
        if title in summaries:
            children.append({"RowType": "SummaryRow", "Cells": _cells(f"Total {title}", summaries[title])})
        rows.append({"RowType": "Section", "Title": title, "Rows": children})
    return {
        "Reports": [{
            "ReportID": name.replace(" ", ""),
            "ReportName": name,
            "ReportDate": "19 October 2026",
            "ReportTitles": [name, "Demo Company (AU)"],
            "Rows": rows,
        }]
    }


class FakeFetcher:
    """Report fetcher returning canned outcomes, optionally after a delay."""

    def __init__(
        self,
        actual: Any,
        budget: Any,
        actual_delay: float = 0,
        budget_delay: float = 0,
    ):
        self.actual = actual
        self.budget = budget
        self.actual_delay = actual_delay
        self.budget_delay = budget_delay
        self.actual_calls: List[Dict[str, Any]] = []
        self.budget_calls: List[Dict[str, Any]] = []
        self.cancelled: List[str] = []
        self.completed: List[str] = []

    async def _outcome(self, source: str, value: Any, delay: float):
        try:
            if delay:
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(source)
            raise
        self.completed.append(source)
        if isinstance(value, Exception):
            raise value
        if isinstance(value, (Report, UpstreamFetchError)):
            return value
        return build_report(value)

    async def fetch_actual_report(self, from_date, to_date=None, periods=None,
                                  timeframe="MONTH", standard_layout=None,
                                  payments_only=None):
        self.actual_calls.append({
            "from_date": from_date,
            "to_date": to_date,
            "periods": periods,
            "timeframe": timeframe,
            "standard_layout": standard_layout,
            "payments_only": payments_only,
        })
        return await self._outcome("actual", self.actual, self.actual_delay)

    async def fetch_budget_report(self, from_date, periods=None, timeframe="MONTH"):
        self.budget_calls.append({
            "from_date": from_date,
            "periods": periods,
            "timeframe": timeframe,
        })
        return await self._outcome("budget", self.budget, self.budget_delay)


@pytest.fixture
def report_payload():
    """Factory fixture for Xero report payloads."""
    return make_report_payload


@pytest.fixture
def actual_payload() -> Dict[str, Any]:
    """Cumulative Profit and Loss: Income 100, 180, 300."""
    return make_report_payload(
        "Profit and Loss",
        MONTHS,
        {
            "Income": [["100.00", "180.00", "300.00"]],
            "Operating Expenses": [["40.00", "70.00", "120.00"]],
        },
    )


@pytest.fixture
def budget_payload() -> Dict[str, Any]:
    """Budget Summary: Income 90, 85, 100 per month."""
    return make_report_payload(
        "Budget Summary",
        MONTHS,
        {
            "Income": [["90.00", "85.00", "100.00"]],
            "Operating Expenses": [["35.00", "35.00", "45.00"]],
        },
    )


@pytest.fixture
def fake_fetcher(actual_payload, budget_payload) -> FakeFetcher:
    return FakeFetcher(actual_payload, budget_payload)


@pytest.fixture(autouse=True)
def reset_tool_context():
    """Make sure no test leaks a ToolContext into the next one."""
    yield
    set_tool_context(None)
