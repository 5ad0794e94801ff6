"""API endpoints package."""

from xero_agent.api.endpoints import health, reconciliation, tools

__all__ = ["health", "reconciliation", "tools"]
