"""Common dependencies for API endpoints."""

from typing import Annotated

from fastapi import Depends

from xero_agent.core.errors import ErrorCode, ServiceUnavailableError
from xero_agent.services.agent_tools import ToolContext, get_tool_context


def require_tool_context() -> ToolContext:
    """Return the active ToolContext or fail with 503."""
    try:
        return get_tool_context()
    except RuntimeError as e:
        raise ServiceUnavailableError(
            error_code=ErrorCode.TOOL_CONTEXT_MISSING,
            message=str(e),
        )


# Type alias for the tool context dependency
Context = Annotated[ToolContext, Depends(require_tool_context)]
