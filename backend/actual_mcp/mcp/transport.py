"""
Session transport: one SDK streamable-HTTP transport and the server reading from it.
"""
import logging

import anyio
from anyio.abc import TaskStatus
from mcp.server import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.types import Receive, Scope, Send

logger = logging.getLogger(__name__)


class SessionTransport:
    """
    Frames and delivers MCP messages for a single session.

    POSTs are handled one at a time so messages from one session never
    interleave; the GET stream is not serialized.
    """

    def __init__(self, session_id: str, server: Server, json_response: bool = True):
        self.session_id = session_id
        self.server = server
        self.http = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=json_response,
        )
        self._post_lock = anyio.Lock()

    @property
    def closed(self) -> bool:
        return self.http.is_terminated

    async def run(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        """Serve the session until the transport is terminated."""
        async with self.http.connect() as (read_stream, write_stream):
            task_status.started()
            try:
                await self.server.run(read_stream, write_stream, self.server.create_initialization_options())
            except Exception as exc:
                logger.error(f"Session {self.session_id} crashed: {exc}")
        logger.debug(f"Session {self.session_id} stopped")

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["method"] == "POST":
            async with self._post_lock:
                await self.http.handle_request(scope, receive, send)
        else:
            await self.http.handle_request(scope, receive, send)

    async def close(self) -> None:
        """Terminate the transport; idempotent."""
        if not self.closed:
            await self.http.terminate()
