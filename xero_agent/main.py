"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from xero_agent.api.router import api_router
from xero_agent.core.config import settings
from xero_agent.core.logging import get_logger, setup_logging
from xero_agent.services.agent_tools import ToolContext, set_tool_context
from xero_agent.services.xero_client import XeroClient

# Set up logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Xero API URL: {settings.xero_api_url}")

    context = ToolContext(XeroClient.from_settings())
    if not context.client.is_configured:
        logger.warning("Xero credentials are not configured; tool calls will fail")
    set_tool_context(context)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    await context.close()
    set_tool_context(None)
    logger.info("Xero client closed")


app = FastAPI(
    title="Xero Agent Tools API",
    description="Agent tools for Xero reporting and actual vs budget comparison",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "0.1.0",
        "debug": settings.debug,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": settings.app_name,
        "docs": "/api/docs",
        "api": "/api/v1",
    }
