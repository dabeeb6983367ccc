"""Convex-backed account store (``accounts:*`` functions)."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from ..core.wallet import SecretCipher
from ..providers.base import BalanceProvider
from .accounts import AccountStore, AccountStoreError
from .convex_client import ConvexClient, ConvexError
from .models import Account, RecordedTransaction

logger = logging.getLogger(__name__)


def _to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _from_millis(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


class ConvexAccountStore(AccountStore):
    """Accounts persisted in Convex.

    Amounts travel as decimal strings and timestamps as epoch milliseconds,
    which is how the Convex functions store them.
    """

    def __init__(self, convex: ConvexClient, oracle: BalanceProvider, cipher: SecretCipher):
        super().__init__(oracle, cipher)
        self.convex = convex

    @staticmethod
    def _from_document(doc: Dict[str, Any]) -> Account:
        return Account(
            user_id=doc["userId"],
            display_name=doc.get("displayName") or "Unknown",
            public_key=doc["publicKey"],
            encrypted_secret=doc["encryptedSecret"],
            balance=Decimal(str(doc.get("balance", "0"))),
            total_requests=int(doc.get("totalRequests", 0)),
            total_spent=Decimal(str(doc.get("totalSpent", "0"))),
            transactions=[
                RecordedTransaction(
                    kind=tx["kind"],
                    amount=Decimal(str(tx["amount"])),
                    tx_hash=tx.get("txHash"),
                    timestamp=_from_millis(tx["timestamp"]),
                    description=tx.get("description"),
                )
                for tx in doc.get("transactions", [])
            ],
            created_at=_from_millis(doc["createdAt"]),
            last_active=_from_millis(doc.get("lastActive", doc["createdAt"])),
        )

    async def get(self, user_id: str) -> Optional[Account]:
        try:
            doc = await self.convex.query("accounts:getByUserId", {"userId": user_id})
        except ConvexError as e:
            raise AccountStoreError(f"Failed to load account {user_id}: {e}") from e
        return self._from_document(doc) if doc else None

    async def _insert(self, account: Account) -> Account:
        try:
            doc = await self.convex.mutation(
                "accounts:create",
                {
                    "userId": account.user_id,
                    "displayName": account.display_name,
                    "publicKey": account.public_key,
                    "encryptedSecret": account.encrypted_secret,
                    "balance": str(account.balance),
                    "createdAt": _to_millis(account.created_at),
                },
            )
        except ConvexError as e:
            raise AccountStoreError(f"Failed to create account {account.user_id}: {e}") from e
        # accounts:create returns the existing document when the user already exists
        return self._from_document(doc) if doc else account

    async def _set_balance(self, user_id: str, balance: Decimal) -> None:
        try:
            await self.convex.mutation(
                "accounts:setBalance",
                {"userId": user_id, "balance": str(balance)},
            )
        except ConvexError as e:
            raise AccountStoreError(f"Failed to update balance for {user_id}: {e}") from e

    async def _append_transaction(self, user_id: str, transaction: RecordedTransaction) -> None:
        try:
            await self.convex.mutation(
                "accounts:recordTransaction",
                {
                    "userId": user_id,
                    "kind": transaction.kind.value,
                    "amount": str(transaction.amount),
                    "txHash": transaction.tx_hash,
                    "timestamp": _to_millis(transaction.timestamp),
                    "description": transaction.description,
                },
            )
        except ConvexError as e:
            raise AccountStoreError(f"Failed to record transaction for {user_id}: {e}") from e
