"""Core application modules."""

from xero_agent.core.config import settings
from xero_agent.core.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
]
