"""Health check endpoints with service status.

Reports whether the Xero API is reachable with the configured
credentials.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from xero_agent.services.agent_tools import get_tool_context

logger = logging.getLogger(__name__)

router = APIRouter()


class ServiceStatus(BaseModel):
    """Status of an individual service."""
    available: bool
    message: Optional[str] = None
    latency_ms: Optional[float] = None


class HealthResponse(BaseModel):
    """Health check response with all service statuses."""
    status: str  # "healthy", "degraded"
    timestamp: str
    version: str
    services: Dict[str, ServiceStatus]


async def check_xero() -> ServiceStatus:
    """Check Xero connectivity."""
    try:
        client = get_tool_context().get_xero_client()
    except RuntimeError as e:
        return ServiceStatus(available=False, message=str(e))

    if not client.is_configured:
        return ServiceStatus(available=False, message="Xero credentials are not configured")

    try:
        start = datetime.now()
        available = await client.health_check()
        latency = (datetime.now() - start).total_seconds() * 1000
        if available:
            return ServiceStatus(available=True, latency_ms=latency)
        return ServiceStatus(available=False, message="Xero API not responding")
    except Exception as e:
        logger.error(f"Xero health check failed: {e}")
        return ServiceStatus(available=False, message=f"Cannot connect to Xero: {e}")


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint.

    Status values:
    - "healthy": Xero is reachable
    - "degraded": The API runs but Xero calls will fail
    """
    services: Dict[str, ServiceStatus] = {"xero": await check_xero()}
    status = "healthy" if services["xero"].available else "degraded"

    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version="0.1.0",
        services=services,
    )


@router.get("/health/xero", response_model=ServiceStatus)
async def xero_health() -> ServiceStatus:
    """Check Xero connectivity specifically."""
    return await check_xero()
