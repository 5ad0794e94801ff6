"""Tests for the FastAPI surface.

The lifespan is not run by ASGITransport, so each test installs its own
ToolContext around a mocked XeroClient.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from xero_agent.core.config import settings
from xero_agent.main import app
from xero_agent.services.agent_tools import ToolContext, set_tool_context
from xero_agent.services.xero_client import XeroClient, XeroServerError


@pytest.fixture
def mock_xero_client(actual_payload, budget_payload):
    client = MagicMock(spec=XeroClient)
    client.is_configured = True
    client.get_profit_and_loss = AsyncMock(return_value=actual_payload["Reports"][0])
    client.get_budget_summary = AsyncMock(return_value=budget_payload["Reports"])
    client.get_accounts = AsyncMock(return_value=[{"Code": "200", "Name": "Sales"}])
    client.health_check = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client


@pytest.fixture
def tool_context(mock_xero_client):
    context = ToolContext(mock_xero_client, cumulative_actuals=True)
    set_tool_context(context)
    return context


@pytest.fixture
async def api_client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


class TestHealth:
    """Tests for health endpoints."""

    async def test_app_health(self, api_client):
        response = await api_client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_root(self, api_client):
        response = await api_client.get("/")

        assert response.json()["message"] == settings.app_name

    async def test_xero_health(self, api_client, tool_context):
        response = await api_client.get("/api/v1/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["services"]["xero"]["available"] is True

    async def test_xero_health_without_context(self, api_client):
        response = await api_client.get("/api/v1/health")

        body = response.json()
        assert body["status"] == "degraded"
        assert body["services"]["xero"]["available"] is False

    async def test_xero_health_unreachable(self, api_client, tool_context, mock_xero_client):
        mock_xero_client.health_check.return_value = False

        response = await api_client.get("/api/v1/health/xero")

        assert response.json()["available"] is False


class TestToolsEndpoints:
    """Tests for tool listing and invocation."""

    async def test_list_tools(self, api_client):
        response = await api_client.get("/api/v1/tools")

        assert response.status_code == 200
        tools = {t["name"]: t for t in response.json()}
        assert "periodic_actual_vs_budget" in tools
        assert "metric" in tools["periodic_actual_vs_budget"]["args"]

    async def test_invoke_comparison_tool(self, api_client, tool_context):
        response = await api_client.post(
            "/api/v1/tools/periodic_actual_vs_budget",
            json={"metric": "Income", "from_date": "2024-01-01", "to_date": "2024-03-31"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["tool"] == "periodic_actual_vs_budget"
        assert [r["variance"] for r in body["result"]] == [10.0, -5.0, 20.0]

    async def test_invoke_dict_tool(self, api_client, tool_context):
        response = await api_client.post("/api/v1/tools/list_accounts", json={})

        assert response.status_code == 200
        assert response.json()["result"]["accounts"][0]["code"] == "200"

    async def test_unknown_tool(self, api_client, tool_context):
        response = await api_client.post("/api/v1/tools/does_not_exist", json={})

        assert response.status_code == 404
        detail = response.json()["detail"]
        assert detail["error_code"] == "TOOL_NOT_FOUND"
        assert "list_accounts" in detail["details"]["available_tools"]

    async def test_missing_required_argument(self, api_client, tool_context):
        response = await api_client.post("/api/v1/tools/periodic_actual_vs_budget", json={})

        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "VALIDATION_ERROR"

    async def test_without_context(self, api_client):
        response = await api_client.post("/api/v1/tools/list_accounts", json={})

        assert response.status_code == 503
        assert response.json()["detail"]["error_code"] == "TOOL_CONTEXT_MISSING"


class TestReconciliationEndpoint:
    """Tests for POST /api/v1/reconciliation."""

    async def test_success(self, api_client, tool_context, mock_xero_client):
        response = await api_client.post(
            "/api/v1/reconciliation",
            json={"metric": "Income", "from_date": "2024-01-01", "to_date": "2024-03-31"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["metric"] == "Income"
        assert body["states"][-1] == "DONE"
        assert [r["actual"] for r in body["data"]] == [100.0, 80.0, 120.0]
        assert mock_xero_client.get_profit_and_loss.await_args.kwargs["to_date"] == "2024-03-31"

    async def test_section_not_found(self, api_client, tool_context):
        response = await api_client.post(
            "/api/v1/reconciliation",
            json={"metric": "Payroll", "from_date": "2024-01-01", "to_date": "2024-03-31"},
        )

        assert response.status_code == 404
        detail = response.json()["detail"]
        assert detail["error_code"] == "SECTION_NOT_FOUND"
        assert detail["details"]["available_sections"] == ["Income", "Operating Expenses"]

    async def test_upstream_error(self, api_client, tool_context, mock_xero_client):
        mock_xero_client.get_budget_summary.side_effect = XeroServerError("Server error (502): down")

        response = await api_client.post(
            "/api/v1/reconciliation",
            json={"metric": "Income", "from_date": "2024-01-01", "to_date": "2024-03-31"},
        )

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["error_code"] == "UPSTREAM_FETCH_ERROR"
        assert detail["message"] == "Error fetching budget: Server error (502): down"

    async def test_invalid_request(self, api_client, tool_context):
        response = await api_client.post(
            "/api/v1/reconciliation",
            json={"metric": "Income", "timeframe": "WEEK"},
        )

        assert response.status_code == 422
