"""
Shared pytest fixtures for the bridge tests.

Wires the FastAPI app to an in-memory budget client so no test ever talks to
a real Actual server.
"""
import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from actual_mcp.config import Settings  # noqa: E402
from actual_mcp.connection import ActualConnection  # noqa: E402
from actual_mcp.main import create_app  # noqa: E402
from actual_mcp.mcp.registry import build_default_registry  # noqa: E402
from tests.mcp_helpers import MCP_PATH, FakeBudgetClient  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        mcp_bridge_http_path=MCP_PATH,
        mcp_bridge_public_host="test-host",
        mcp_bridge_connect_on_startup=False,
    )


@pytest.fixture
def fake_client() -> FakeBudgetClient:
    return FakeBudgetClient()


@pytest.fixture
def connection(fake_client) -> ActualConnection:
    return ActualConnection(fake_client, build_default_registry())


@pytest.fixture
def app(settings, connection):
    return create_app(settings, connection=connection)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sessions(app):
    return app.state.session_router.sessions
