"""Unit tests for XeroReportFetcher."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from xero_agent.models.failures import UpstreamFetchError
from xero_agent.models.report import Report
from xero_agent.services.report_fetcher import XeroReportFetcher
from xero_agent.services.xero_client import XeroClient, XeroRateLimitError


@pytest.fixture
def mock_client():
    client = MagicMock(spec=XeroClient)
    client.get_profit_and_loss = AsyncMock()
    client.get_budget_summary = AsyncMock()
    return client


class TestFetchActualReport:
    """Tests for fetch_actual_report."""

    @pytest.mark.asyncio
    async def test_returns_report(self, mock_client, actual_payload):
        mock_client.get_profit_and_loss.return_value = actual_payload["Reports"][0]
        fetcher = XeroReportFetcher(mock_client)

        report = await fetcher.fetch_actual_report(
            "2024-01-01", "2024-03-31", periods=3, timeframe="MONTH"
        )

        assert isinstance(report, Report)
        assert report.section_titles == ["Income", "Operating Expenses"]
        mock_client.get_profit_and_loss.assert_awaited_once_with(
            from_date="2024-01-01",
            to_date="2024-03-31",
            periods=3,
            timeframe="MONTH",
            standard_layout=None,
            payments_only=None,
        )

    @pytest.mark.asyncio
    async def test_client_error_message_kept(self, mock_client):
        mock_client.get_profit_and_loss.side_effect = XeroRateLimitError("Rate limited: slow down")
        fetcher = XeroReportFetcher(mock_client)

        outcome = await fetcher.fetch_actual_report("2024-01-01")

        assert outcome == UpstreamFetchError(source="actual", message="Rate limited: slow down")

    @pytest.mark.asyncio
    async def test_unexpected_error(self, mock_client):
        mock_client.get_profit_and_loss.side_effect = KeyError("Reports")
        fetcher = XeroReportFetcher(mock_client)

        outcome = await fetcher.fetch_actual_report("2024-01-01")

        assert isinstance(outcome, UpstreamFetchError)
        assert outcome.message.startswith("Unexpected error")


class TestFetchBudgetReport:
    """Tests for fetch_budget_report."""

    @pytest.mark.asyncio
    async def test_uses_first_report(self, mock_client, budget_payload):
        mock_client.get_budget_summary.return_value = budget_payload["Reports"]
        fetcher = XeroReportFetcher(mock_client)

        report = await fetcher.fetch_budget_report("2024-01-01", periods=3, timeframe="YEAR")

        assert report.name == "Budget Summary"
        mock_client.get_budget_summary.assert_awaited_once_with(
            date="2024-01-01", periods=3, timeframe="YEAR"
        )

    @pytest.mark.asyncio
    async def test_empty_report_list(self, mock_client):
        mock_client.get_budget_summary.return_value = []
        fetcher = XeroReportFetcher(mock_client)

        outcome = await fetcher.fetch_budget_report("2024-01-01")

        assert isinstance(outcome, UpstreamFetchError)
        assert outcome.source == "budget"
        assert "no report returned" in outcome.message
