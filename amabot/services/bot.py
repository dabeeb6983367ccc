"""
Bot service: the request-level entry point used by the HTTP API and the CLI.

Routes free commands, provisions accounts on first contact, optionally
charges the per-query fee, and runs the agent under a time limit.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from ..core.agent import AccountContext, AgentLoop
from ..core.execution import InsufficientBalanceError, PaymentError, TransactionExecutor
from ..db.accounts import AccountStore
from ..db.models import TransactionKind
from ..providers.base import BalanceProvider
from ..providers.protocol import ProtocolClient
from .commands import handle_balance, handle_deposit, handle_faucet, handle_stats, match_free_command

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Sorry, something went wrong! Please try again."


class BotService:
    """Turns one incoming message into one reply."""

    def __init__(
        self,
        store: AccountStore,
        oracle: BalanceProvider,
        protocol: ProtocolClient,
        agent: AgentLoop,
        executor: Optional[TransactionExecutor] = None,
        charge_per_query: bool = False,
        faucet_amount: Decimal = Decimal("100"),
        request_timeout_seconds: Optional[float] = 120.0,
    ):
        if charge_per_query and executor is None:
            raise ValueError("charge_per_query requires a TransactionExecutor")
        self.store = store
        self.oracle = oracle
        self.protocol = protocol
        self.agent = agent
        self.executor = executor
        self.charge_per_query = charge_per_query
        self.faucet_amount = faucet_amount
        self.request_timeout_seconds = request_timeout_seconds

    async def handle_message(self, user_id: str, display_name: str, message: str) -> str:
        query = (message or "").strip()
        if not query:
            return "Please send a question or a command."

        try:
            account = await self.store.get_or_create(user_id, display_name)

            command = match_free_command(query)
            if command == "balance":
                return await handle_balance(account, self.store)
            if command == "deposit":
                return await handle_deposit(account)
            if command == "stats":
                return await handle_stats(account, self.store, self.oracle)
            if command == "faucet":
                return await handle_faucet(account, self.store, self.protocol, self.faucet_amount)

            if self.charge_per_query:
                try:
                    charge = await self.executor.charge(account)
                except InsufficientBalanceError as e:
                    return f"❌ {e}. Use /deposit to add funds."
                except PaymentError as e:
                    logger.error(f"Per-query charge failed for {user_id}: {e}")
                    return f"❌ {e}"
                await self.store.record_transaction(
                    account.user_id,
                    TransactionKind.PAYMENT,
                    charge.amount,
                    charge.tx_hash,
                    "Service fee for agent query",
                )

            context = AccountContext(
                user_id=account.user_id,
                wallet_address=account.public_key,
                balance=account.balance,
                display_name=account.display_name,
            )
            logger.info(f"Processing query for {user_id}")
            reply = await asyncio.wait_for(
                self.agent.run(query, context),
                timeout=self.request_timeout_seconds,
            )
            logger.info(f"Sending response: {reply[:100]!r}")
            return reply

        except asyncio.TimeoutError:
            logger.error(f"Agent run timed out after {self.request_timeout_seconds}s for {user_id}")
            return GENERIC_ERROR_MESSAGE
        except Exception as e:
            logger.error(f"Error handling message from {user_id}: {e}", exc_info=True)
            return GENERIC_ERROR_MESSAGE
