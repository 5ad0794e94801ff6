"""Tests for configuration, logging and error infrastructure."""

import logging

from xero_agent.core.config import Settings, settings
from xero_agent.core.errors import (
    AppException,
    ErrorCode,
    NotFoundError,
    ServiceUnavailableError,
    create_error_response,
)
from xero_agent.core.logging import LoggerAdapter, get_logger
from xero_agent.models.failures import SectionNotFound, UpstreamFetchError


class TestConfig:
    """Tests for application configuration."""

    def test_settings_loaded(self):
        """Test that settings are loaded from environment."""
        assert settings.app_name == "Xero Agent Tools"
        assert settings.xero_bearer_token == "test-token"
        assert settings.xero_tenant_id == "tenant-123"
        assert settings.actual_report_cumulative is True

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("XERO_BEARER_TOKEN", raising=False)
        monkeypatch.setenv("ACTUAL_REPORT_CUMULATIVE", "false")
        monkeypatch.setenv("MAX_RETRIES", "5")

        fresh = Settings(_env_file=None)

        assert fresh.xero_api_url == "https://api.xero.com/api.xro/2.0"
        assert fresh.xero_bearer_token == ""
        assert fresh.actual_report_cumulative is False
        assert fresh.max_retries == 5


class TestLogging:
    """Tests for logging helpers."""

    def test_get_logger_namespaces(self):
        assert get_logger("reports").name == "xero_agent.reports"
        assert get_logger("xero_agent.services.reconciler").name == "xero_agent.services.reconciler"

    def test_logger_adapter_appends_context(self):
        adapter = LoggerAdapter(logging.getLogger("test"), {"metric": "Income", "timeframe": "MONTH"})

        msg, _ = adapter.process("Resolved sections", {})

        assert msg == "Resolved sections - metric=Income - timeframe=MONTH"


class TestErrorResponses:
    """Tests for standardized error responses."""

    def test_default_message_is_suggested_action(self):
        response = create_error_response(ErrorCode.XERO_RATE_LIMITED, retry_after=30)

        assert response.error_code == "XERO_RATE_LIMITED"
        assert response.message == response.suggested_action
        assert response.retry_after == 30
        assert response.is_retryable is True

    def test_not_retryable(self):
        response = create_error_response(ErrorCode.SECTION_NOT_FOUND, message="missing")

        assert response.message == "missing"
        assert response.is_retryable is False

    def test_section_not_found_conversion(self):
        failure = SectionNotFound(query="Payroll", available_sections=("Income",), source="budget")

        response = failure.to_error_response()

        assert response.error_code == "SECTION_NOT_FOUND"
        assert "in the budget report" in response.message
        assert response.details == {
            "query": "Payroll",
            "source": "budget",
            "available_sections": ["Income"],
        }

    def test_upstream_error_conversion(self):
        response = UpstreamFetchError(source="actual", message="timeout").to_error_response()

        assert response.message == "Error fetching actual: timeout"
        assert response.is_retryable is True


class TestAppExceptions:
    """Tests for HTTP exceptions."""

    def test_not_found(self):
        exc = NotFoundError(ErrorCode.TOOL_NOT_FOUND, message="Unknown tool: x")

        assert exc.status_code == 404
        assert exc.detail["error_code"] == "TOOL_NOT_FOUND"

    def test_service_unavailable(self):
        exc = ServiceUnavailableError(ErrorCode.TOOL_CONTEXT_MISSING)

        assert exc.status_code == 503

    def test_from_response(self):
        response = UpstreamFetchError(source="budget", message="down").to_error_response()

        exc = AppException.from_response(response, status_code=502)

        assert exc.status_code == 502
        assert exc.detail["message"] == "Error fetching budget: down"
        assert exc.detail["details"] == {"source": "budget"}
