from decimal import Decimal

import pytest

from amabot.config import Settings


REQUIRED_ENV = {
    "ANTHROPIC_API_KEY": "sk-test",
    "ENCRYPTION_KEY": "ab" * 32,
    "SYSTEM_WALLET_ADDRESS": "SystemWallet",
    "TESTNET_RPC": "https://testnet.example",
}


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        *REQUIRED_ENV,
        "SYSTEM_WALLET",
        "MAINNET_RPC",
        "AMADEUS_NETWORK",
        "ACCOUNT_STORE_BACKEND",
        "CONVEX_URL",
        "MAX_AGENTIC_LOOPS",
        "MAX_AGENT_TURNS",
        "EXPRESS_PORT",
        "PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_match_bot_constants(clean_env):
    settings = Settings(_env_file=None)

    assert settings.llm_model == "claude-haiku-4-5-20251001"
    assert settings.max_tokens == 4096
    assert settings.max_agent_turns == 5
    assert settings.tool_description_max_chars == 200
    assert settings.max_tool_output_chars == 30000
    assert settings.payment_amount == Decimal("1")
    assert settings.faucet_amount == Decimal("100")
    assert settings.mcp_server_url == "https://mcp.ama.one"
    assert settings.charge_per_query is False


def test_legacy_env_aliases(clean_env):
    """Bot-era variable names still configure the new fields."""

    clean_env.setenv("MAX_AGENTIC_LOOPS", "7")
    clean_env.setenv("EXPRESS_PORT", "4000")
    clean_env.setenv("SYSTEM_WALLET", "LegacyWallet")

    settings = Settings(_env_file=None)

    assert settings.max_agent_turns == 7
    assert settings.port == 4000
    assert settings.system_wallet_address == "LegacyWallet"


def test_missing_required_lists_unset_variables(clean_env):
    settings = Settings(_env_file=None)

    assert settings.missing_required() == [
        "ANTHROPIC_API_KEY",
        "ENCRYPTION_KEY",
        "SYSTEM_WALLET_ADDRESS",
        "TESTNET_RPC",
    ]
    with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
        settings.ensure_required()


def test_mainnet_and_convex_requirements(clean_env):
    for name, value in REQUIRED_ENV.items():
        clean_env.setenv(name, value)
    clean_env.setenv("AMADEUS_NETWORK", "mainnet")
    clean_env.setenv("ACCOUNT_STORE_BACKEND", "convex")

    settings = Settings(_env_file=None)

    assert settings.missing_required() == ["MAINNET_RPC", "CONVEX_URL"]

    clean_env.setenv("MAINNET_RPC", "https://mainnet.example")
    clean_env.setenv("CONVEX_URL", "https://convex.example")
    settings = Settings(_env_file=None)

    settings.ensure_required()
    assert settings.rpc_url == "https://mainnet.example"


def test_blank_anthropic_key_is_reported_as_missing(clean_env):
    for name, value in REQUIRED_ENV.items():
        clean_env.setenv(name, value)
    clean_env.setenv("ANTHROPIC_API_KEY", "")

    settings = Settings(_env_file=None)

    assert settings.missing_required() == ["ANTHROPIC_API_KEY"]
    assert not hasattr(settings, "has_anthropic_key")
