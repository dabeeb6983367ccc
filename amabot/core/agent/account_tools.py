"""
Local tools backed by the account store and the transaction executor.

Every tool takes ``user_id``; the registry overwrites it with the identity of
the request before the handler runs.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ...db.accounts import AccountStore, AccountStoreError
from ...db.models import TransactionKind
from ...providers.base import BalanceProvider
from ...providers.protocol import ProtocolClient
from ..execution import PartialBatchError, TransactionExecutor, TransactionLeg
from ..units import TOKEN_SYMBOL, balance_to_decimal, format_amount, parse_amount
from .tools import LocalToolFunction, ToolDescriptor

logger = logging.getLogger(__name__)


def _schema(properties: Dict[str, Dict[str, Any]], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "user_id": {"type": "string", "description": "ID of the requesting user"},
            **properties,
        },
        "required": ["user_id", *required],
    }


RECIPIENT_PROPERTY = {"type": "string", "description": "Wallet address of the recipient"}
AMOUNT_PROPERTY = {"type": "string", "description": 'Amount of AMA to send (e.g., "10")'}


GET_USER_INFO = ToolDescriptor(
    name="get_user_info",
    description=(
        "Get current user information including wallet address, balance, and usage statistics. "
        'Use this when user asks about "my account", "my info", or "who am I".'
    ),
    input_schema=_schema({}, []),
)

GET_USER_BALANCE = ToolDescriptor(
    name="get_user_balance",
    description=(
        "Get user AMA balance from blockchain in real-time. Use this when user asks about "
        '"my balance", "how much AMA do I have", or "check my wallet".'
    ),
    input_schema=_schema({}, []),
)

GET_USER_STATS = ToolDescriptor(
    name="get_user_stats",
    description=(
        "Get user usage statistics including total requests, total spent, and account history. "
        'Use when user asks about "my stats", "my usage", "how much have I spent".'
    ),
    input_schema=_schema({}, []),
)

VALIDATE_BALANCE_FOR_TRANSFER = ToolDescriptor(
    name="validate_balance_for_transfer",
    description=(
        "Check whether the user can pay the service fee plus a transfer amount. "
        "ALWAYS call this before transfer_with_fee."
    ),
    input_schema=_schema({"amount": AMOUNT_PROPERTY}, ["amount"]),
)

TRANSFER_AMA = ToolDescriptor(
    name="transfer_ama",
    description=(
        "Send AMA tokens from the user wallet to another address without a service fee. "
        "THIS TOOL AUTOMATICALLY SIGNS AND SUBMITS the transaction. Prefer transfer_with_fee."
    ),
    input_schema=_schema({"recipient": RECIPIENT_PROPERTY, "amount": AMOUNT_PROPERTY}, ["recipient", "amount"]),
)

TRANSFER_WITH_FEE = ToolDescriptor(
    name="transfer_with_fee",
    description=(
        "Pay the service fee and send AMA to a recipient in ONE BATCH. Signs and submits both "
        "transactions. Only call after validate_balance_for_transfer reports sufficient funds."
    ),
    input_schema=_schema({"recipient": RECIPIENT_PROPERTY, "amount": AMOUNT_PROPERTY}, ["recipient", "amount"]),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AccountTools:
    """Handlers for the account and payment tools."""

    def __init__(
        self,
        store: AccountStore,
        oracle: BalanceProvider,
        executor: TransactionExecutor,
        fee: Decimal,
        symbol: str = TOKEN_SYMBOL,
    ):
        self.store = store
        self.oracle = oracle
        self.executor = executor
        self.fee = Decimal(fee)
        self.symbol = symbol

    def definitions(self) -> List[Tuple[ToolDescriptor, LocalToolFunction]]:
        return [
            (GET_USER_INFO, self.get_user_info),
            (GET_USER_BALANCE, self.get_user_balance),
            (GET_USER_STATS, self.get_user_stats),
            (VALIDATE_BALANCE_FOR_TRANSFER, self.validate_balance_for_transfer),
            (TRANSFER_AMA, self.transfer_ama),
            (TRANSFER_WITH_FEE, self.transfer_with_fee),
        ]

    async def get_user_info(self, args: Dict[str, Any], protocol: Optional[ProtocolClient] = None) -> Dict[str, Any]:
        account = await self.store.get_or_create(args["user_id"])
        balance = await self.oracle.get_balance(account.public_key, self.symbol)

        return {
            "user_id": account.user_id,
            "display_name": account.display_name,
            "wallet_address": account.public_key,
            "balance_ama": balance,
            "total_requests": account.total_requests,
            "total_spent_ama": account.total_spent,
            "member_since": account.created_at.isoformat(),
        }

    async def get_user_balance(self, args: Dict[str, Any], protocol: Optional[ProtocolClient] = None) -> Dict[str, Any]:
        account = await self.store.get_or_create(args["user_id"])
        balance = await self.store.refresh_balance(account.user_id)

        return {
            "wallet_address": account.public_key,
            "balance_ama": format_amount(balance),
            "last_updated": _now_iso(),
        }

    async def get_user_stats(self, args: Dict[str, Any], protocol: Optional[ProtocolClient] = None) -> Dict[str, Any]:
        stats = await self.store.get_stats(args["user_id"])
        balance = await self.oracle.get_balance(stats.wallet_address, self.symbol)

        return {
            "total_requests": stats.total_requests,
            "total_spent": stats.total_spent,
            "wallet_address": stats.wallet_address,
            "member_since": stats.member_since.isoformat(),
            "current_balance_ama": balance,
        }

    async def validate_balance_for_transfer(
        self, args: Dict[str, Any], protocol: Optional[ProtocolClient] = None
    ) -> Dict[str, Any]:
        """Report whether fee + amount is covered. Insufficient funds are a result, not an error."""
        amount = parse_amount(args["amount"])
        account = await self.store.get_or_create(args["user_id"])
        balance = balance_to_decimal(await self.oracle.get_balance(account.public_key, self.symbol))

        required = self.fee + amount
        sufficient = balance >= required

        result: Dict[str, Any] = {
            "sufficient": sufficient,
            "current_balance": balance,
            "fee": self.fee,
            "transfer_amount": amount,
            "required_total": required,
        }
        if sufficient:
            result["message"] = (
                f"Sufficient balance: {balance} {self.symbol} covers {amount} {self.symbol} "
                f"plus {self.fee} {self.symbol} fee."
            )
        else:
            shortfall = required - balance
            result["shortfall"] = shortfall
            result["message"] = (
                f"Insufficient balance. Need {required} {self.symbol}, have {balance} {self.symbol}."
            )
        return result

    async def transfer_ama(self, args: Dict[str, Any], protocol: Optional[ProtocolClient] = None) -> Dict[str, Any]:
        account = await self.store.get_or_create(args["user_id"])
        result = await self.executor.transfer(account, args["recipient"], args["amount"])

        return {
            "success": True,
            "tx_hash": result.tx_hash,
            "from": result.sender,
            "to": result.recipient,
            "amount_ama": result.amount,
            "status": "submitted",
        }

    async def _record_fee(self, user_id: str, amount: Decimal, tx_hash: str, description: str) -> None:
        """Record a landed fee payment; a store failure is logged, not raised."""
        try:
            await self.store.record_transaction(user_id, TransactionKind.PAYMENT, amount, tx_hash, description)
        except AccountStoreError as e:
            logger.error(f"Failed to record fee payment {tx_hash} for {user_id}: {e}")

    async def transfer_with_fee(self, args: Dict[str, Any], protocol: Optional[ProtocolClient] = None) -> Dict[str, Any]:
        account = await self.store.get_or_create(args["user_id"])
        recipient = args["recipient"]

        try:
            batch = await self.executor.execute_batch(account, recipient, args["amount"])
        except PartialBatchError as e:
            if e.landed_leg == TransactionLeg.FEE:
                # The fee reached the chain even though the transfer did not
                await self._record_fee(
                    account.user_id,
                    self.fee,
                    e.landed_tx_hash,
                    f"Service fee; transfer to {recipient} failed",
                )
            raise

        # Both legs are on chain from here
        await self._record_fee(
            account.user_id,
            batch.fee,
            batch.fee_tx_hash,
            f"Service fee for transfer of {batch.amount} {self.symbol} to {recipient} "
            f"(transfer tx {batch.transfer_tx_hash})",
        )
        try:
            await self.store.refresh_balance(account.user_id)
        except AccountStoreError as e:
            logger.error(f"Balance refresh failed for {account.user_id} after batch: {e}")

        return {
            "success": True,
            "fee_tx_hash": batch.fee_tx_hash,
            "transfer_tx_hash": batch.transfer_tx_hash,
            "from": batch.sender,
            "to": batch.recipient,
            "amount_ama": batch.amount,
            "fee_ama": batch.fee,
            "total_cost_ama": batch.total_cost,
            "status": "submitted",
        }
