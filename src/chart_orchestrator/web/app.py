"""
FastAPI application for Chart Orchestrator.

PURPOSE: Main application factory and server runner.
AI CONTEXT: Creates app with all routes registered.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from ..__version__ import __version__
from ..config import Config
from .routes import router

__all__ = ["create_app", "run_dashboard"]

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:  # noqa: ARG001
    """
    Manage application lifecycle with startup/shutdown hooks.

    Business context: Startup logging records which data and chat endpoints
    the API will call, the first thing to check when charts come back empty.

    Args:
        app: The FastAPI application instance (provided by FastAPI).

    Yields:
        None. Control returns to FastAPI to handle requests.
    """
    # Startup
    logger.info("Chart Orchestrator API starting (v%s)", __version__)
    logger.info(
        "Data endpoint: %s; chat endpoint: %s",
        Config.get_data_url() or "<unset>",
        Config.get_chat_url() or "<direct API>",
    )
    yield
    # Shutdown
    logger.info("Chart Orchestrator API shutting down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Factory function that creates a new FastAPI instance with all routes
    registered. Uses the application factory pattern for testability.

    Returns:
        Configured FastAPI application with the /api/* routes registered
        and OpenAPI documentation at /docs.

    Example:
        >>> from fastapi.testclient import TestClient
        >>> client = TestClient(create_app())
        >>> client.get('/api/filters').status_code
        200
    """
    app = FastAPI(
        title="Chart Orchestrator",
        description="URL-backed chart configuration, data fetching and chat view updates",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


def run_dashboard(
    host: str = Config.DEFAULT_HOST,
    port: int = Config.DEFAULT_PORT,
    reload: bool = False,
    log_level: str = "info",
) -> None:
    """
    Launch the Chart Orchestrator API server.

    Args:
        host: Network interface to bind the server to. Use '127.0.0.1'
            for local-only access (default) or '0.0.0.0' for network access.
        port: TCP port number for the HTTP server. Default 8000.
        reload: Enable auto-reload on code changes for development.
        log_level: Uvicorn logging verbosity.

    Returns:
        None. This function blocks until the server is stopped (Ctrl+C).

    Raises:
        OSError: If the port is already in use or host is invalid.
    """
    uvicorn.run(
        "chart_orchestrator.web.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# For direct execution
if __name__ == "__main__":
    run_dashboard()
