from actual_mcp.integrations.base import (
    AccountData,
    BudgetClient,
    NewTransaction,
    TransactionData,
)

__all__ = ["AccountData", "BudgetClient", "NewTransaction", "TransactionData"]
