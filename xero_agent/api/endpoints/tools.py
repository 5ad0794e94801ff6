"""Agent tool endpoints.

Lists the registered agent tools and invokes one by name with a JSON
object of arguments, the same way the agent would.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from xero_agent.api.deps import Context
from xero_agent.core.errors import ErrorCode, NotFoundError, ValidationError
from xero_agent.services.agent_tools import get_all_tools, get_tool

logger = logging.getLogger(__name__)

router = APIRouter()


class ToolInfo(BaseModel):
    """Description of a registered tool."""
    name: str
    description: str
    args: Dict[str, Any]


class ToolResult(BaseModel):
    """Result of a tool invocation."""
    tool: str
    result: Any


@router.get("", response_model=List[ToolInfo])
async def list_tools() -> List[ToolInfo]:
    """List every registered agent tool with its argument schema."""
    return [
        ToolInfo(name=t.name, description=t.description, args=t.args)
        for t in get_all_tools()
    ]


@router.post("/{name}", response_model=ToolResult)
async def invoke_tool(
    name: str,
    context: Context,
    arguments: Optional[Dict[str, Any]] = Body(default=None),
) -> ToolResult:
    """Invoke an agent tool by name.

    Tools answering with JSON text have it decoded, so the response body
    always carries structured data.
    """
    selected = get_tool(name)
    if selected is None:
        raise NotFoundError(
            error_code=ErrorCode.TOOL_NOT_FOUND,
            message=f"Unknown tool: {name}",
            details={"available_tools": [t.name for t in get_all_tools()]},
        )

    logger.info(f"Invoking tool {name}")
    try:
        output = await selected.ainvoke(arguments or {})
    except PydanticValidationError as e:
        raise ValidationError(
            message=f"Invalid arguments for tool {name}",
            details={"errors": json.loads(e.json())},
        )

    if isinstance(output, str):
        try:
            output = json.loads(output)
        except ValueError:
            pass
    return ToolResult(tool=name, result=output)
