import os

from decimal import Decimal
from pathlib import Path
from typing import Any, List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up the bot-era environment variable names when the new ones are unset."""

        super().model_post_init(__context)

        if not self.system_wallet_address:
            fallback = os.getenv("SYSTEM_WALLET")
            if fallback:
                object.__setattr__(self, "system_wallet_address", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=3000, description="Server port", validation_alias=AliasChoices("port", "express_port"))
    log_level: str = Field(default="INFO", description="Logging level")

    # LLM Provider Settings
    llm_provider: str = Field(default="anthropic", description="Default LLM provider")
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    llm_model: str = Field(
        default="claude-haiku-4-5-20251001",
        description="Model used by the agent loop",
        validation_alias=AliasChoices("llm_model", "anthropic_model"),
    )
    max_tokens: int = Field(default=4096, description="Maximum tokens for LLM response")

    # Agent Loop
    max_agent_turns: int = Field(
        default=5,
        ge=1,
        description="Maximum model calls per query before giving up",
        validation_alias=AliasChoices("max_agent_turns", "max_agentic_loops"),
    )
    tool_description_max_chars: int = Field(default=200, ge=1, description="Tool description cap in the manifest")
    max_tool_output_chars: int = Field(default=30000, ge=1, description="Tool output cap (~7.5k tokens)")

    # Retry policy for overloaded model calls
    llm_retry_max_retries: int = Field(default=3, ge=0, description="Retries after an overloaded response")
    llm_retry_base_delay_seconds: float = Field(default=4.0, ge=0, description="First backoff delay")
    llm_retry_multiplier: float = Field(default=2.0, ge=1, description="Backoff multiplier")

    # Payments
    payment_amount: Decimal = Field(default=Decimal("1"), gt=0, description="Service fee per request in AMA")
    faucet_amount: Decimal = Field(default=Decimal("100"), description="AMA granted by the testnet faucet")
    system_wallet_address: str = Field(default="", description="Wallet that receives service fees")
    charge_per_query: bool = Field(default=False, description="Charge the service fee before every agent query")

    # Amadeus network
    amadeus_network: str = Field(default="testnet", description="Network used for balances and submissions")
    testnet_rpc: str = Field(default="", description="Amadeus testnet node URL")
    mainnet_rpc: str = Field(default="", description="Amadeus mainnet node URL")
    mcp_server_url: str = Field(default="https://mcp.ama.one", description="Amadeus MCP server")
    request_timeout_seconds: int = Field(default=30, description="Timeout for node HTTP calls")

    # Secrets
    encryption_key: str = Field(default="", description="32-byte hex key for wallet secrets")

    # Request handling
    agent_request_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound on a single agent run",
    )

    # Account storage
    account_store_backend: str = Field(default="memory", description="Account store backend: memory or convex")
    convex_url: str = Field(default="", description="Convex deployment URL")
    convex_deploy_key: str = Field(default="", description="Convex deploy key")

    @property
    def rpc_url(self) -> str:
        """Node URL for the selected network."""
        if self.amadeus_network.lower() == "mainnet":
            return self.mainnet_rpc
        return self.testnet_rpc

    def missing_required(self) -> List[str]:
        required = {
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
            "ENCRYPTION_KEY": self.encryption_key,
            "SYSTEM_WALLET_ADDRESS": self.system_wallet_address,
        }
        if self.amadeus_network.lower() == "mainnet":
            required["MAINNET_RPC"] = self.mainnet_rpc
        else:
            required["TESTNET_RPC"] = self.testnet_rpc
        if self.account_store_backend.lower() == "convex":
            required["CONVEX_URL"] = self.convex_url
        return [name for name, value in required.items() if not value]

    def ensure_required(self) -> None:
        missing = self.missing_required()
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


# Global settings instance
settings = Settings()
