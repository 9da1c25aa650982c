"""
Per-session MCP protocol server.

Built on the SDK's low-level Server: the SDK answers initialize and ping,
this module supplies tools/list and tools/call. Tool execution is delegated
to a callback supplied by the session router.
"""
import json
import logging
from typing import Awaitable, Callable, Optional

from mcp import types
from mcp.server import Server, ServerRequestContext
from mcp.shared.exceptions import MCPError

from actual_mcp.exceptions import INTERNAL_ERROR, BridgeError
from actual_mcp.mcp.registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "actual-mcp-server"
SERVER_VERSION = "1.0.0"
SERVER_INSTRUCTIONS = """
Actual MCP Server - read accounts and record transactions in an Actual Budget file.

## Available tools
- `actual.accounts.list`: List all accounts (id, name, offbudget, closed)
- `actual.transactions.create`: Create a transaction in an account

Amounts are in currency units; use negative amounts for outflows.
Accounts and categories may be referenced by ID or by name.
"""

ToolCallback = Callable[[str, Optional[dict]], Awaitable[dict]]


def build_server(registry: ToolRegistry, call_tool: ToolCallback) -> Server:
    """
    Create the protocol server for one session.

    Args:
        registry: Tools published through tools/list
        call_tool: Executes a tool by name and returns its result envelope

    Returns:
        A low-level SDK server with the tools capability
    """

    async def list_tools(ctx: ServerRequestContext, params: Optional[types.PaginatedRequestParams]) -> types.ListToolsResult:
        logger.debug("Listing available tools")
        return types.ListToolsResult(tools=registry.list_tools())

    async def handle_call_tool(ctx: ServerRequestContext, params: types.CallToolRequestParams) -> types.CallToolResult:
        logger.debug(f"Tool call: {params.name} {params.arguments}")
        # Progress only reaches clients that asked for it and read SSE responses
        await ctx.session.report_progress(0, 1)
        try:
            envelope = await call_tool(params.name, params.arguments)
        except BridgeError as exc:
            raise exc.to_mcp_error() from exc
        except Exception as exc:
            raise MCPError(INTERNAL_ERROR, str(exc)) from exc
        await ctx.session.report_progress(1, 1)

        return types.CallToolResult(
            content=[types.TextContent(text=json.dumps(envelope, default=str))],
            structured_content=envelope,
        )

    return Server(
        SERVER_NAME,
        version=SERVER_VERSION,
        instructions=SERVER_INSTRUCTIONS.strip(),
        on_list_tools=list_tools,
        on_call_tool=handle_call_tool,
    )
