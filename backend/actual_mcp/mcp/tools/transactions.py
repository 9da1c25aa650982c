"""
Transaction tools for the MCP server.
"""
from pydantic import ConfigDict
from starlette.concurrency import run_in_threadpool

from actual_mcp.integrations.base import BudgetClient, NewTransaction
from actual_mcp.mcp.registry import ToolDefinition


class CreateTransactionInput(NewTransaction):
    model_config = ConfigDict(extra="forbid")


async def create_transaction(params: CreateTransactionInput, client: BudgetClient) -> dict:
    """
    Create a single transaction (WRITE).

    Args:
        params: Validated transaction fields
        client: Connected budget client

    Returns:
        {"result": {...}} describing the created transaction
    """
    transaction = await run_in_threadpool(client.add_transaction, params)
    return {"result": transaction.model_dump(mode="json")}


CREATE_TRANSACTION = ToolDefinition(
    name="actual.transactions.create",
    description="Create a transaction",
    input_model=CreateTransactionInput,
    handler=create_transaction,
)
