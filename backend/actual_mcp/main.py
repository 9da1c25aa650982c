"""
FastAPI application for the Actual MCP bridge.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from actual_mcp.config import Settings, get_settings
from actual_mcp.connection import ActualConnection
from actual_mcp.mcp.registry import ToolRegistry, build_default_registry
from actual_mcp.mcp.router import SessionRouter
from actual_mcp.mcp.sessions import SessionRegistry
from actual_mcp.routes import build_api_router
from actual_mcp.utils import get_local_ip

logger = logging.getLogger(__name__)


def _default_connection(settings: Settings, registry: ToolRegistry) -> ActualConnection:
    from actual_mcp.integrations.actual_budget import ActualBudgetClient

    return ActualConnection(ActualBudgetClient(settings), registry)


def create_app(
    settings: Optional[Settings] = None,
    connection: Optional[ActualConnection] = None,
    registry: Optional[ToolRegistry] = None,
) -> FastAPI:
    """
    Build the bridge app.

    Args:
        settings: Bridge settings (defaults to environment settings)
        connection: Backend connection; defaults to an actualpy-backed one
        registry: Tool registry; defaults to the connection's registry or the built-in tools

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    if registry is None:
        registry = connection.registry if connection is not None else build_default_registry()
    if connection is None:
        connection = _default_connection(settings, registry)

    session_router = SessionRouter(
        SessionRegistry(),
        registry,
        connection.execute_tool,
        json_response=settings.mcp_bridge_json_response,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"MCP Streamable HTTP Server listening on "
            f"{settings.mcp_bridge_bind_host}:{settings.mcp_bridge_port}"
        )
        logger.info(f"MCP endpoint: {settings.endpoint_url}")
        logger.info(f"Health check: {settings.health_url}")
        logger.info(f"Tools: {', '.join(registry.names())}")

        if settings.mcp_bridge_connect_on_startup:
            try:
                await connection.connect()
            except Exception as exc:
                # Replayed to every tool caller by the connection guard
                logger.error(f"Backend handshake failed at startup: {exc}")

        async with session_router.run():
            yield
            logger.info("Shutting down, closing MCP sessions...")

        await connection.close()

    app = FastAPI(
        title="Actual MCP Bridge",
        description="MCP streamable-HTTP bridge for Actual Budget",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.connection = connection
    app.state.session_router = session_router
    app.state.server_host = settings.mcp_bridge_public_host or get_local_ip()

    app.include_router(build_api_router(settings.mcp_bridge_http_path))
    return app
