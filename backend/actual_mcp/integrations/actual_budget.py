"""
Actual Budget client backed by the actualpy library.
"""
import logging
from contextlib import ExitStack
from pathlib import Path
from typing import List, Optional

from actual import Actual
from actual.queries import create_transaction, get_accounts

from actual_mcp.config import Settings, require_backend_settings
from actual_mcp.integrations.base import (
    AccountData,
    BudgetClient,
    NewTransaction,
    TransactionData,
)

logger = logging.getLogger(__name__)


class ActualBudgetClient(BudgetClient):
    """
    Talks to an Actual server through a locally downloaded budget file.

    connect() must succeed before any other call.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._actual: Optional[Actual] = None
        self._stack = ExitStack()

    @property
    def actual(self) -> Actual:
        if self._actual is None:
            raise RuntimeError("Actual budget is not loaded; call connect() first")
        return self._actual

    def connect(self) -> None:
        server_url, password, sync_id = require_backend_settings(self.settings)
        encryption_password = self.settings.actual_budget_encryption_password

        data_dir = Path(self.settings.mcp_bridge_data_dir).expanduser()
        data_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Initializing Actual API with data_dir={data_dir}")
        # Entering the context downloads the budget and opens the database session.
        self._actual = self._stack.enter_context(Actual(
            base_url=server_url,
            password=password,
            file=sync_id,
            encryption_password=encryption_password,
            data_dir=data_dir,
        ))

    def close(self) -> None:
        self._actual = None
        self._stack.close()

    def list_accounts(self) -> List[AccountData]:
        accounts = get_accounts(self.actual.session)
        return [
            AccountData(
                id=str(account.id),
                name=account.name,
                offbudget=bool(account.offbudget),
                closed=bool(account.closed),
            )
            for account in accounts
        ]

    def add_transaction(self, transaction: NewTransaction) -> TransactionData:
        created = create_transaction(
            self.actual.session,
            transaction.date,
            transaction.account,
            transaction.payee or "",
            notes=transaction.notes or "",
            category=transaction.category,
            amount=transaction.amount,
            imported_id=transaction.imported_id,
            cleared=transaction.cleared,
        )
        self.actual.commit()

        return TransactionData(
            id=str(created.id),
            account=transaction.account,
            date=transaction.date,
            amount=transaction.amount,
            payee=transaction.payee,
            notes=transaction.notes,
            cleared=transaction.cleared,
        )
