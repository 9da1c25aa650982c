"""
Entry point for the Actual MCP bridge.

Usage:
    HTTP mode:
        python mcp_server.py

    With uvicorn directly:
        uvicorn mcp_server:app --port 3000
"""
import logging.config

import uvicorn

from actual_mcp.config import get_settings
from actual_mcp.logging_config import get_logging_config
from actual_mcp.main import create_app

settings = get_settings()
logging.config.dictConfig(get_logging_config(settings.debug))

# HTTP app for uvicorn deployment
app = create_app(settings)


def main() -> None:
    uvicorn.run(
        app,
        host=settings.mcp_bridge_bind_host,
        port=settings.mcp_bridge_port,
        log_config=get_logging_config(settings.debug),
        timeout_graceful_shutdown=5,  # bounds shutdown while SSE streams are open
    )


if __name__ == "__main__":
    main()
