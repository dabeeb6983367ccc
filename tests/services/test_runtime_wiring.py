"""
Tests for process wiring: configuration checks, store selection and the
registry built at startup.
"""

import pytest

from amabot.config import Settings
from amabot.db import convex_client as convex_client_module
from amabot.db.accounts import InMemoryAccountStore
from amabot.db.convex_store import ConvexAccountStore
from amabot.services import runtime as runtime_module
from amabot.services.runtime import build_store, create_runtime
from amabot.core.wallet import SecretCipher
from amabot.providers.protocol import RemoteTool

from tests.fakes import TEST_KEY, FakeOracle, FakeProtocol, ScriptedLLM, text_response


def make_settings(**overrides) -> Settings:
    values = dict(
        anthropic_api_key="sk-test",
        encryption_key=TEST_KEY,
        system_wallet_address="SystemWallet",
        testnet_rpc="https://testnet.example",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class ConnectableProtocol(FakeProtocol):
    def __init__(self, server_url):
        super().__init__(tools=[
            RemoteTool(name="create_transaction", description="Build a transaction"),
            RemoteTool(name="transfer_ama", description="Remote transfer"),
        ])
        self.server_url = server_url
        self.connected = False
        self.closed = False

    async def connect(self):
        self.connected = True

    async def close(self):
        self.closed = True

    async def health_check(self):
        return {"status": "healthy"}


@pytest.fixture
def patched(monkeypatch):
    llm = ScriptedLLM([text_response("hello from the agent")])
    monkeypatch.setattr(runtime_module, "McpProtocolClient", ConnectableProtocol)
    monkeypatch.setattr(runtime_module, "get_llm_provider", lambda: llm)
    monkeypatch.setattr(runtime_module, "AmadeusProvider", lambda rpc_url, timeout_s: FakeOracle())
    return llm


class TestBuildStore:

    def test_memory_backend(self):
        store, convex = build_store(make_settings(), FakeOracle(), SecretCipher(TEST_KEY))
        assert isinstance(store, InMemoryAccountStore)
        assert convex is None

    def test_convex_backend(self):
        settings = make_settings(account_store_backend="convex", convex_url="https://x.convex.cloud")
        store, convex = build_store(settings, FakeOracle(), SecretCipher(TEST_KEY))
        assert isinstance(store, ConvexAccountStore)
        assert convex.deployment_url == "https://x.convex.cloud"

    def test_each_convex_store_gets_its_own_client(self):
        first, first_client = build_store(
            make_settings(account_store_backend="convex", convex_url="https://a.convex.cloud"),
            FakeOracle(),
            SecretCipher(TEST_KEY),
        )
        second, second_client = build_store(
            make_settings(account_store_backend="convex", convex_url="https://b.convex.cloud"),
            FakeOracle(),
            SecretCipher(TEST_KEY),
        )

        assert first_client is not second_client
        assert second_client.deployment_url == "https://b.convex.cloud"
        assert not hasattr(convex_client_module, "get_convex_client")

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unsupported account store backend"):
            build_store(make_settings(account_store_backend="redis"), FakeOracle(), SecretCipher(TEST_KEY))


class TestCreateRuntime:

    @pytest.mark.asyncio
    async def test_missing_configuration_fails_fast(self, patched):
        with pytest.raises(ValueError, match="ENCRYPTION_KEY"):
            await create_runtime(make_settings(encryption_key=""))

    @pytest.mark.asyncio
    async def test_runtime_serves_messages(self, patched):
        runtime = await create_runtime(make_settings())

        assert runtime.protocol.connected
        names = [t.name for t in runtime.registry.tools]
        assert names.count("transfer_ama") == 1
        assert runtime.registry.get_tool("transfer_ama").is_local
        assert "transfer_with_fee" in names
        assert set(runtime.health_providers) == {"amadeus", "mcp"}

        reply = await runtime.service.handle_message("user-1", "Alice", "hi")
        assert reply == "hello from the agent"

        await runtime.close()
        assert runtime.protocol.closed
