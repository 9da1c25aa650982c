"""
Error types raised by the bridge.

Each error carries the JSON-RPC code it is reported with.
"""
from typing import Any, Optional

from mcp.shared.exceptions import MCPError
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS

# Implementation-defined JSON-RPC server error
SERVER_ERROR = -32000


class BridgeError(Exception):
    """Base class for bridge errors."""
    code: int = INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_mcp_error(self) -> MCPError:
        return MCPError(self.code, self.message, self.data)


class SessionNotFoundError(BridgeError):
    code = SERVER_ERROR

    def __init__(self, session_id: Optional[str] = None):
        super().__init__("No valid session ID")
        self.session_id = session_id


class SessionConflictError(BridgeError):
    code = SERVER_ERROR

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is already registered")
        self.session_id = session_id


class InvalidParamsError(BridgeError):
    code = INVALID_PARAMS


class ToolNotFoundError(InvalidParamsError):

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolInputError(InvalidParamsError):
    """Tool arguments do not match the tool's input schema."""

    def __init__(self, name: str, errors: list[dict]):
        super().__init__(f"Invalid arguments for tool {name}", data=errors)
        self.name = name
        self.errors = errors


class BackendConfigurationError(BridgeError, ValueError):
    """Settings required for the backend handshake are missing or malformed."""
