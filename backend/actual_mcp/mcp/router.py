"""
Session router: multiplexes MCP sessions over one HTTP endpoint.
"""
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp import types
from mcp.server.streamable_http import MCP_PROTOCOL_VERSION_HEADER, MCP_SESSION_ID_HEADER
from mcp.types.version import HANDSHAKE_PROTOCOL_VERSIONS
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send

from actual_mcp.exceptions import SERVER_ERROR, SessionNotFoundError
from actual_mcp.mcp.registry import ToolRegistry
from actual_mcp.mcp.server import build_server
from actual_mcp.mcp.sessions import SessionRegistry
from actual_mcp.mcp.transport import SessionTransport

logger = logging.getLogger(__name__)

ToolExecutor = Callable[[str, Optional[dict]], Awaitable[dict]]


def generate_session_id() -> str:
    return str(uuid.uuid4())


def error_response(
    status_code: int,
    code: int,
    message: str,
    request_id: Optional[Any] = None,
    headers: Optional[dict] = None,
) -> Response:
    body = types.JSONRPCError(
        jsonrpc="2.0",
        id=request_id,
        error=types.ErrorData(code=code, message=message),
    )
    return Response(
        body.model_dump_json(by_alias=True, exclude_unset=True),
        status_code=status_code,
        media_type="application/json",
        headers=headers,
    )


def request_id_of(body: Any) -> Optional[Any]:
    """The JSON-RPC id of a single message, or None."""
    if not isinstance(body, dict):
        return None
    request_id = body.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, (int, str)):
        return None
    return request_id


def is_initialize(body: Any) -> bool:
    return isinstance(body, dict) and body.get("method") == "initialize" and "id" in body


def unsupported_protocol_version(scope: Scope) -> Optional[Response]:
    """A 400 for protocol versions outside the initialize-handshake era, else None."""
    version = Request(scope).headers.get(MCP_PROTOCOL_VERSION_HEADER)
    if version is None or version in HANDSHAKE_PROTOCOL_VERSIONS:
        return None
    return error_response(
        400,
        types.INVALID_REQUEST,
        f"Bad Request: Unsupported protocol version: {version}",
    )


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Hand an already-read body to the next ASGI consumer, then fall back to the client."""
    pending = True

    async def replay() -> Message:
        nonlocal pending
        if pending:
            pending = False
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


class SessionRouter:
    """
    Routes initialize / send / stream / terminate requests to per-session transports.

    Lifecycle of a session: absent -> (initialize) -> active -> (DELETE or
    shutdown) -> absent. Session servers run in the router's task group, so
    requests can only be served inside run().
    """

    def __init__(
        self,
        sessions: SessionRegistry,
        tools: ToolRegistry,
        execute_tool: ToolExecutor,
        session_id_generator: Callable[[], str] = generate_session_id,
        json_response: bool = True,
    ):
        self.sessions = sessions
        self.tools = tools
        self._execute_tool = execute_tool
        self._session_id_generator = session_id_generator
        self.json_response = json_response
        self._task_group: Optional[TaskGroup] = None

    @asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            try:
                yield
            finally:
                await self.shutdown()
                tg.cancel_scope.cancel()
                self._task_group = None

    async def call_tool(self, name: str, arguments: Optional[dict]) -> dict:
        """Forward a tools/call to the backend connection, relaying failures unchanged."""
        try:
            return await self._execute_tool(name, arguments)
        except Exception as exc:
            logger.error(f"Error executing tool {name}: {exc}")
            raise

    def _create_transport(self, session_id: str) -> SessionTransport:
        server = build_server(self.tools, self.call_tool)
        return SessionTransport(session_id, server, json_response=self.json_response)

    async def _serve(
        self,
        transport: SessionTransport,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        try:
            await transport.run(task_status=task_status)
        finally:
            # a session whose server stopped on its own is forgotten as well
            session_id = transport.session_id
            if session_id in self.sessions and self.sessions.get(session_id) is transport:
                self.sessions.remove(session_id)

    async def _open_session(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._task_group is None:
            raise RuntimeError("Session router is not running")

        session_id = self._session_id_generator()
        transport = self._create_transport(session_id)
        await self._task_group.start(self._serve, transport)
        registered = False

        async def register_on_accept(message: Message) -> None:
            nonlocal registered
            # Registered before the client can see the session header
            if message["type"] == "http.response.start" and message["status"] < 400:
                self.sessions.register(session_id, transport)
                registered = True
            await send(message)

        try:
            await transport.handle_request(scope, receive, register_on_accept)
        finally:
            if not registered:
                await transport.close()

    async def handle_post(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        raw = await request.body()
        receive = _replay_body(raw, receive)
        try:
            body = json.loads(raw) if raw else None
        except ValueError:
            await error_response(400, types.PARSE_ERROR, "Parse error")(scope, receive, send)
            return

        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if not session_id:
            if not is_initialize(body):
                response = error_response(400, SERVER_ERROR, "Bad Request: Server not initialized", request_id_of(body))
                await response(scope, receive, send)
                return
            await self._open_session(scope, receive, send)
            return

        try:
            transport = self.sessions.get(session_id)
        except SessionNotFoundError as exc:
            await error_response(400, exc.code, exc.message, request_id_of(body))(scope, receive, send)
            return

        if is_initialize(body):
            response = error_response(
                400,
                types.INVALID_REQUEST,
                "Invalid Request: Server already initialized",
                request_id_of(body),
                headers={MCP_SESSION_ID_HEADER: session_id},
            )
            await response(scope, receive, send)
            return
        await transport.handle_request(scope, receive, send)

    async def handle_get(self, scope: Scope, receive: Receive, send: Send) -> None:
        session_id = Request(scope).headers.get(MCP_SESSION_ID_HEADER)
        try:
            if not session_id:
                raise SessionNotFoundError()
            transport = self.sessions.get(session_id)
        except SessionNotFoundError as exc:
            await error_response(400, exc.code, exc.message)(scope, receive, send)
            return
        await transport.handle_request(scope, receive, send)

    async def handle_delete(self, scope: Scope, receive: Receive, send: Send) -> None:
        session_id = Request(scope).headers.get(MCP_SESSION_ID_HEADER)
        try:
            if not session_id:
                raise SessionNotFoundError()
            transport = self.sessions.remove(session_id)
        except SessionNotFoundError as exc:
            await error_response(400, exc.code, exc.message)(scope, receive, send)
            return
        await transport.handle_request(scope, receive, send)

    async def shutdown(self) -> None:
        """Best-effort close of every open transport."""
        await self.sessions.close_all()
