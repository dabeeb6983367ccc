"""
Tests for the Amadeus balance oracle and protocol result decoding.
"""

import httpx
import pytest

from amabot.providers.amadeus import AmadeusProvider
from amabot.providers.protocol import (
    ContentItem,
    InvalidResponseError,
    RemoteToolError,
    ToolCallOutput,
)

from tests.fakes import FakeProtocol, text_output

RPC = "https://nodes.amadeus.bot"


def oracle_with(handler) -> AmadeusProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AmadeusProvider(rpc_url=RPC + "/", timeout_s=5, client=client)


class TestBalanceOracle:

    @pytest.mark.asyncio
    async def test_balance_is_converted_from_atomic_units(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"balance": {"flat": 12_345_678_901}})

        balance = await oracle_with(handler).get_balance("Addr1")

        assert balance == "12.3457"
        assert seen == ["/api/wallet/balance/Addr1/AMA"]

    @pytest.mark.asyncio
    async def test_http_error_reads_as_zero(self):
        balance = await oracle_with(lambda request: httpx.Response(500)).get_balance("Addr1")
        assert balance == "0.0000"

    @pytest.mark.asyncio
    async def test_malformed_body_reads_as_zero(self):
        balance = await oracle_with(lambda request: httpx.Response(200, json={"unexpected": True})).get_balance("Addr1")
        assert balance == "0.0000"

    @pytest.mark.asyncio
    async def test_unconfigured_oracle(self):
        oracle = AmadeusProvider(rpc_url="")

        assert await oracle.ready() is False
        assert await oracle.get_balance("Addr1") == "0.0000"
        assert (await oracle.health_check())["status"] == "unavailable"


class TestToolCallOutput:

    def test_first_text_block_decoded_as_object(self):
        output = text_output({"tx_hash": "abc"})
        assert output.first_text_json("submit_transaction") == {"tx_hash": "abc"}

    @pytest.mark.parametrize(
        "content",
        [
            [],
            [ContentItem(type="image")],
            [ContentItem(type="text", text="not json")],
            [ContentItem(type="text", text="[1, 2]")],
        ],
    )
    def test_unexpected_shapes_are_rejected(self, content):
        with pytest.raises(InvalidResponseError):
            ToolCallOutput(content=content).first_text_json("create_transaction")

    @pytest.mark.asyncio
    async def test_call_tool_json_raises_on_error_flag(self):
        protocol = FakeProtocol()
        protocol.handlers["claim_testnet_ama"] = lambda args: text_output("rate limited", is_error=True)

        with pytest.raises(RemoteToolError, match="claim_testnet_ama failed: rate limited"):
            await protocol.call_tool_json("claim_testnet_ama", {"address": "A"})
