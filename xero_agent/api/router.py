"""Main API router that aggregates all endpoint routers."""

from fastapi import APIRouter

from xero_agent.api.endpoints import health, reconciliation, tools

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include tools router
api_router.include_router(tools.router, prefix="/tools", tags=["Tools"])

# Include reconciliation router
api_router.include_router(reconciliation.router, prefix="/reconciliation", tags=["Reconciliation"])

# Include health router
api_router.include_router(health.router, tags=["Health"])


@api_router.get("/")
async def api_root():
    """API root endpoint."""
    return {
        "message": "Xero Agent Tools API v1",
        "endpoints": {
            "tools": "/api/v1/tools",
            "reconciliation": "/api/v1/reconciliation",
            "health": "/api/v1/health",
        },
    }
