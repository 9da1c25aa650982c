"""
MCP streamable-HTTP endpoint.

All three verbs share one configurable path; the session router picks the
transport from the mcp-session-id header. The endpoint is a raw ASGI app
because the SDK transport writes its own responses.
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.types import Message, Receive, Scope, Send

from actual_mcp.mcp.router import SessionRouter, unsupported_protocol_version
from actual_mcp.utils import log_transport, redact_headers

logger = logging.getLogger(__name__)

MCP_METHODS = ["GET", "POST", "DELETE"]


class McpEndpoint:
    """ASGI app dispatching the MCP verbs to the session router."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        session_router: SessionRouter = request.app.state.session_router
        tag_host = request.app.state.server_host

        if request.method == "POST":
            log_transport(f"HTTP REQ [server:{tag_host}]", {
                "type": "request",
                "method": request.method,
                "path": request.url.path,
                "headers": redact_headers(request.headers),
                "query": dict(request.query_params),
            })
            handler = session_router.handle_post
        elif request.method == "GET":
            log_transport(f"HTTP CONNECT [server:{tag_host}]", {
                "type": "sse_connect",
                "method": request.method,
                "path": request.url.path,
                "headers": redact_headers(request.headers),
            })
            handler = session_router.handle_get
        elif request.method == "DELETE":
            handler = session_router.handle_delete
        else:
            response = JSONResponse(status_code=405, content={"error": "Method not allowed"})
            await response(scope, receive, send)
            return

        rejection = unsupported_protocol_version(scope)
        if rejection is not None:
            await rejection(scope, receive, send)
            return

        started = False

        async def tracking_send(message: Message) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await handler(scope, receive, tracking_send)
        except Exception as exc:
            logger.exception(f"Unhandled MCP {request.method} error")
            log_transport(f"HTTP ERR [server:{tag_host}]", {"type": "error", "message": str(exc)})
            if not started:
                response = JSONResponse(status_code=500, content={"error": str(exc)})
                await response(scope, receive, send)


def build_router(http_path: str) -> APIRouter:
    router = APIRouter()
    router.add_route(http_path, McpEndpoint(), methods=MCP_METHODS, include_in_schema=False)
    return router
