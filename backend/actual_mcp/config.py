"""
Runtime configuration for the Actual MCP bridge.

Values come from the environment (or a local .env file). Backend credentials are
optional at load time; they are checked when the backend handshake runs so the
HTTP endpoint can come up and report a misconfiguration to tool callers.
"""
import os
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

from actual_mcp.exceptions import BackendConfigurationError

load_dotenv()

DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~") or ".", ".actual")


class Settings(BaseSettings):
    """
    Bridge settings. Field names match their environment variables.
    """
    actual_server_url: Optional[str] = None
    actual_password: Optional[str] = None
    actual_budget_sync_id: Optional[str] = None
    actual_budget_encryption_password: Optional[str] = None

    mcp_bridge_data_dir: str = DEFAULT_DATA_DIR
    mcp_bridge_port: int = 3000
    mcp_bridge_bind_host: str = "localhost"
    mcp_bridge_http_path: str = "/mcp"
    mcp_bridge_public_host: Optional[str] = None
    mcp_bridge_advertised_url: Optional[str] = None
    mcp_bridge_connect_on_startup: bool = True
    mcp_bridge_json_response: bool = True

    debug: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"  # Allow unrelated variables in .env

    @field_validator("mcp_bridge_http_path")
    @classmethod
    def _normalize_http_path(cls, value: str) -> str:
        value = value.strip() or "/mcp"
        if not value.startswith("/"):
            value = f"/{value}"
        if len(value) > 1:
            value = value.rstrip("/")
        return value

    @property
    def endpoint_url(self) -> str:
        """URL clients should use to reach the MCP endpoint."""
        if self.mcp_bridge_advertised_url:
            return self.mcp_bridge_advertised_url
        return f"http://{self.mcp_bridge_bind_host}:{self.mcp_bridge_port}{self.mcp_bridge_http_path}"

    @property
    def health_url(self) -> str:
        return f"http://{self.mcp_bridge_bind_host}:{self.mcp_bridge_port}/health"


def require_backend_settings(settings: Settings) -> tuple[str, str, str]:
    """
    Check the settings needed to reach the Actual server.

    Args:
        settings: Loaded bridge settings

    Returns:
        Tuple of (server_url, password, budget_sync_id)

    Raises:
        BackendConfigurationError: If a value is missing or the server URL is malformed
    """
    if not settings.actual_server_url:
        raise BackendConfigurationError("ACTUAL_SERVER_URL not set")
    if not settings.actual_password:
        raise BackendConfigurationError("ACTUAL_PASSWORD not set")
    if not settings.actual_budget_sync_id:
        raise BackendConfigurationError("ACTUAL_BUDGET_SYNC_ID not set")

    parsed = urlparse(settings.actual_server_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise BackendConfigurationError(
            f"ACTUAL_SERVER_URL is not a valid URL: {settings.actual_server_url}"
        )

    return settings.actual_server_url, settings.actual_password, settings.actual_budget_sync_id


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
