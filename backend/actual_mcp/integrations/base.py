"""
Base client interface for the budgeting backend.
"""
from abc import ABC, abstractmethod
import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class AccountData(BaseModel):
    """Account as exposed to tool callers."""
    id: str
    name: str
    offbudget: bool = False
    closed: bool = False


class NewTransaction(BaseModel):
    """Fields accepted when creating a transaction."""
    account: str = Field(description="Account ID or account name")
    date: dt.date = Field(description="Booking date (YYYY-MM-DD)")
    amount: Decimal = Field(description="Amount in currency units; negative for outflows")
    payee: Optional[str] = Field(default=None, description="Payee name")
    notes: Optional[str] = Field(default=None, description="Free-form notes")
    category: Optional[str] = Field(default=None, description="Category ID or name")
    cleared: bool = Field(default=False, description="Mark the transaction as cleared")
    imported_id: Optional[str] = Field(default=None, description="External ID used for de-duplication")


class TransactionData(BaseModel):
    """Transaction returned after creation."""
    id: str
    account: str
    date: dt.date
    amount: Decimal
    payee: Optional[str] = None
    notes: Optional[str] = None
    cleared: bool = False


class BudgetClient(ABC):
    """
    Abstract base class for budget backends.

    Methods are blocking; callers run them off the event loop.
    """

    @abstractmethod
    def connect(self) -> None:
        """Authenticate against the server and download the budget snapshot."""
        pass

    def close(self) -> None:
        """Release the loaded budget. Safe to call when never connected."""
        pass

    @abstractmethod
    def list_accounts(self) -> List[AccountData]:
        """Fetch all accounts of the loaded budget."""
        pass

    @abstractmethod
    def add_transaction(self, transaction: NewTransaction) -> TransactionData:
        """Create one transaction and persist it to the server."""
        pass
