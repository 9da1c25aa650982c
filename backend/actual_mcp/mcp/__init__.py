"""
MCP (Model Context Protocol) layer: session routing, transport and tools.

Usage:
    from actual_mcp.mcp.router import SessionRouter
"""
