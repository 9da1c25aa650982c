"""
Account tools for the MCP server.
"""
from pydantic import BaseModel, ConfigDict
from starlette.concurrency import run_in_threadpool

from actual_mcp.integrations.base import BudgetClient
from actual_mcp.mcp.registry import ToolDefinition


class ListAccountsInput(BaseModel):
    """actual.accounts.list takes no arguments."""
    model_config = ConfigDict(extra="forbid")


async def list_accounts(params: ListAccountsInput, client: BudgetClient) -> dict:
    """
    List all accounts of the loaded budget.

    Returns:
        {"result": [...]} with id, name, offbudget and closed per account
    """
    accounts = await run_in_threadpool(client.list_accounts)
    return {"result": [account.model_dump(mode="json") for account in accounts]}


LIST_ACCOUNTS = ToolDefinition(
    name="actual.accounts.list",
    description="List all accounts",
    input_model=ListAccountsInput,
    handler=list_accounts,
)
