"""
Process-wide wiring of the bot's collaborators.

Shared by the FastAPI lifespan and the CLI so both run the same stack.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..config import Settings
from ..core.agent import AccountTools, AgentLoop, ToolRegistry
from ..core.execution import TransactionExecutor
from ..core.recovery import RetryPolicy
from ..core.wallet import SecretCipher
from ..db.accounts import AccountStore, InMemoryAccountStore
from ..db.convex_client import ConvexClient
from ..db.convex_store import ConvexAccountStore
from ..providers.amadeus import AmadeusProvider
from ..providers.llm import get_llm_provider, is_overloaded_error
from ..providers.protocol import McpProtocolClient
from .bot import BotService

logger = logging.getLogger(__name__)


@dataclass
class BotRuntime:
    service: BotService
    protocol: McpProtocolClient
    oracle: AmadeusProvider
    store: AccountStore
    registry: ToolRegistry
    convex: Optional[ConvexClient] = None
    health_providers: Dict[str, Any] = field(default_factory=dict)

    async def close(self) -> None:
        await self.protocol.close()
        if self.convex is not None:
            await self.convex.close()


def build_store(settings: Settings, oracle: AmadeusProvider, cipher: SecretCipher):
    backend = settings.account_store_backend.lower()
    if backend == "convex":
        convex = ConvexClient(settings.convex_url, settings.convex_deploy_key)
        return ConvexAccountStore(convex, oracle, cipher), convex
    if backend == "memory":
        logger.warning("Using in-memory account store; accounts are lost on restart")
        return InMemoryAccountStore(oracle, cipher), None
    raise ValueError(f"Unsupported account store backend: {settings.account_store_backend}")


async def create_runtime(settings: Settings) -> BotRuntime:
    """Validate configuration, connect to the protocol service and build the bot."""
    settings.ensure_required()

    cipher = SecretCipher(settings.encryption_key)
    if not cipher.self_test():
        raise RuntimeError("Encryption test failed! Check ENCRYPTION_KEY")

    oracle = AmadeusProvider(settings.rpc_url, settings.request_timeout_seconds)
    store, convex = build_store(settings, oracle, cipher)

    protocol = McpProtocolClient(settings.mcp_server_url)
    await protocol.connect()

    executor = TransactionExecutor(
        protocol=protocol,
        oracle=oracle,
        cipher=cipher,
        system_wallet=settings.system_wallet_address,
        fee=settings.payment_amount,
        network=settings.amadeus_network,
    )
    account_tools = AccountTools(store, oracle, executor, settings.payment_amount)

    try:
        registry = await ToolRegistry.build(
            protocol,
            account_tools.definitions(),
            max_description_chars=settings.tool_description_max_chars,
        )
    except Exception:
        await protocol.close()
        raise

    agent = AgentLoop(
        llm_provider=get_llm_provider(),
        registry=registry,
        retry_policy=RetryPolicy(
            max_retries=settings.llm_retry_max_retries,
            base_delay_seconds=settings.llm_retry_base_delay_seconds,
            multiplier=settings.llm_retry_multiplier,
            retryable=is_overloaded_error,
        ),
        max_turns=settings.max_agent_turns,
        max_tokens=settings.max_tokens,
        max_tool_output_chars=settings.max_tool_output_chars,
    )

    service = BotService(
        store=store,
        oracle=oracle,
        protocol=protocol,
        agent=agent,
        executor=executor,
        charge_per_query=settings.charge_per_query,
        faucet_amount=settings.faucet_amount,
        request_timeout_seconds=settings.agent_request_timeout_seconds,
    )

    logger.info(
        f"Bot ready: {len(registry.tools)} tools, network {settings.amadeus_network}, "
        f"store {settings.account_store_backend}"
    )
    return BotRuntime(
        service=service,
        protocol=protocol,
        oracle=oracle,
        store=store,
        registry=registry,
        convex=convex,
        health_providers={"amadeus": oracle, "mcp": protocol},
    )
