"""Account records kept by the bot."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TransactionKind(str, Enum):
    PAYMENT = "payment"
    DEPOSIT = "deposit"
    REFUND = "refund"


class RecordedTransaction(BaseModel):
    """One entry of an account's append-only history"""
    kind: TransactionKind
    amount: Decimal
    tx_hash: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    description: Optional[str] = None


class Account(BaseModel):
    """A chat user with a custodial wallet.

    ``public_key`` and ``encrypted_secret`` never change after creation.
    ``balance`` is only a cache of the last oracle read.
    """
    user_id: str
    display_name: str = "Unknown"
    public_key: str
    encrypted_secret: str = Field(repr=False)
    balance: Decimal = Decimal("0")
    total_requests: int = 0
    total_spent: Decimal = Decimal("0")
    transactions: List[RecordedTransaction] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    last_active: datetime = Field(default_factory=utc_now)

    def apply(self, transaction: RecordedTransaction) -> None:
        """Append a transaction; payments bump the usage counters."""
        self.transactions.append(transaction)
        if transaction.kind == TransactionKind.PAYMENT:
            self.total_requests += 1
            self.total_spent += transaction.amount
        self.last_active = transaction.timestamp


class AccountStats(BaseModel):
    total_requests: int
    total_spent: Decimal
    balance: Decimal
    wallet_address: str
    member_since: datetime
