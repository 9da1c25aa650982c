"""
Actual MCP bridge: exposes an Actual Budget file as MCP tools over streamable HTTP.

Tools available:
    Accounts:
        - actual.accounts.list

    Transactions:
        - actual.transactions.create (WRITE)
"""
