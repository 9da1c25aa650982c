"""
Session registry: owns the session id -> transport mapping.
"""
import logging
from typing import TYPE_CHECKING

from actual_mcp.exceptions import SessionConflictError, SessionNotFoundError

if TYPE_CHECKING:
    from actual_mcp.mcp.transport import SessionTransport

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Mapping of active sessions.

    An id is bound to one transport for its whole lifetime and removed at
    most once. Instances are independent, so several routers can coexist.
    """

    def __init__(self):
        self._transports: dict[str, "SessionTransport"] = {}

    def register(self, session_id: str, transport: "SessionTransport") -> None:
        if session_id in self._transports:
            raise SessionConflictError(session_id)
        self._transports[session_id] = transport
        logger.debug(f"Session initialized: {session_id}")

    def get(self, session_id: str) -> "SessionTransport":
        transport = self._transports.get(session_id)
        if transport is None:
            raise SessionNotFoundError(session_id)
        return transport

    def remove(self, session_id: str) -> "SessionTransport":
        transport = self._transports.pop(session_id, None)
        if transport is None:
            raise SessionNotFoundError(session_id)
        logger.debug(f"Session {session_id} deleted")
        return transport

    async def close_all(self) -> None:
        """
        Close every transport and forget all sessions.

        Close failures are logged and do not stop the teardown.
        """
        transports, self._transports = self._transports, {}
        for session_id, transport in transports.items():
            try:
                await transport.close()
            except Exception as exc:
                logger.error(f"Error closing transport for session {session_id}: {exc}")
        if transports:
            logger.info(f"Closed {len(transports)} MCP session(s)")

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._transports

    def __len__(self) -> int:
        return len(self._transports)
