"""
Free commands: answered without the agent and without a fee.
"""

import logging
from decimal import Decimal
from typing import Optional

from ..core.units import format_amount
from ..db.accounts import AccountStore, AccountStoreError
from ..db.models import Account
from ..providers.base import BalanceProvider
from ..providers.protocol import ProtocolClient, ProtocolError

logger = logging.getLogger(__name__)


def match_free_command(query: str) -> Optional[str]:
    """Return the free command a message asks for, if any."""
    normalized = query.strip().lower()
    for name in ("balance", "deposit", "stats"):
        if normalized in (name, f"/{name}"):
            return name
    if "faucet" in normalized or "claim" in normalized:
        return "faucet"
    return None


async def handle_balance(account: Account, store: AccountStore) -> str:
    balance = await store.refresh_balance(account.user_id)

    return f"Balance for your wallet - `{account.public_key}` is **{format_amount(balance)}** AMA"


async def handle_deposit(account: Account) -> str:
    return (
        f"Send AMA from any wallet or faucet to:\n"
        f"`{account.public_key}`\n\n"
        f"Use `/balance` to check your balance."
    )


async def handle_stats(account: Account, store: AccountStore, oracle: BalanceProvider) -> str:
    stats = await store.get_stats(account.user_id)
    balance = await oracle.get_balance(stats.wallet_address)

    return (
        f"Current Balance: **{balance}** AMA\n"
        f"Total Requests: **{stats.total_requests}**\n"
        f"Total Spent: **{stats.total_spent}** AMA\n"
        f"Member Since: {stats.member_since.date().isoformat()}"
    )


async def handle_faucet(
    account: Account,
    store: AccountStore,
    protocol: ProtocolClient,
    faucet_amount: Decimal,
) -> str:
    """Claim testnet AMA. Failures are reported in the reply, never raised."""
    logger.info(f"Faucet claim requested by {account.public_key}")
    try:
        result = await protocol.call_tool_json("claim_testnet_ama", {"address": account.public_key})
        logger.info(f"Faucet claim result: {result}")

        await store.refresh_balance(account.user_id)
    except (ProtocolError, AccountStoreError) as e:
        logger.error(f"Faucet claim failed: {e}")
        return (
            f"❌ **Error claiming from faucet**\n\n"
            f"{e}\n\n"
            f"Please try again later or contact support."
        )

    if result.get("status") == "success":
        return (
            f"✅ **Claim Successful!**\n\n"
            f"Received: **{faucet_amount} AMA**\n"
            f"TX Hash: `{result.get('tx_hash')}`\n\n"
            f"Use `/balance` to check your updated balance."
        )
    return (
        f"❌ **Claim Failed**\n\n"
        f"{result.get('message') or 'You may have already claimed from this wallet.'}\n\n"
        f"Note: Faucet is limited to once per day."
    )
