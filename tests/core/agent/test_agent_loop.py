"""
Tests for the bounded tool-calling agent loop.
"""

import json
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock

from amabot.core.agent import (
    LIMIT_MESSAGE,
    AccountContext,
    AgentLoop,
    ToolDescriptor,
    ToolRegistry,
)
from amabot.core.recovery import RetryPolicy
from amabot.providers.llm.base import (
    LLMProviderAPIError,
    LLMProviderOverloadedError,
    is_overloaded_error,
)
from amabot.providers.protocol import RemoteTool

from tests.fakes import FakeProtocol, ScriptedLLM, text_response, tool_response

CONTEXT = AccountContext(user_id="user-1", wallet_address="WalletAddr", balance=Decimal("50"))

ECHO = ToolDescriptor(
    name="echo",
    description="Echo arguments back",
    input_schema={
        "type": "object",
        "properties": {"user_id": {"type": "string"}, "value": {"type": "string"}},
        "required": ["user_id"],
    },
)


async def echo(args, protocol):
    return {"echo": args}


async def explode(args, protocol):
    raise RuntimeError("boom")


def make_loop(llm, registry, max_turns=5, sleep=None, max_tool_output_chars=30000):
    return AgentLoop(
        llm_provider=llm,
        registry=registry,
        retry_policy=RetryPolicy(retryable=is_overloaded_error, sleep=sleep or AsyncMock()),
        max_turns=max_turns,
        max_tool_output_chars=max_tool_output_chars,
    )


async def make_registry(protocol=None, local=None):
    return await ToolRegistry.build(protocol, local if local is not None else [(ECHO, echo)])


# =============================================================================
# Termination
# =============================================================================

class TestTermination:

    @pytest.mark.asyncio
    async def test_text_only_response_returns_after_one_call(self):
        llm = ScriptedLLM([text_response("Hello there")])
        loop = make_loop(llm, await make_registry())

        result = await loop.execute("hi", CONTEXT)

        assert result.text == "Hello there"
        assert result.turns == 1
        assert result.hit_limit is False
        assert len(result.messages) == 2
        assert [m.role for m in result.messages] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_multiple_text_blocks_are_joined_with_newlines(self):
        llm = ScriptedLLM([tool_response(text="first")])
        llm.responses[0].blocks.append(llm.responses[0].blocks[0].model_copy(update={"text": "second"}))
        loop = make_loop(llm, await make_registry())

        assert await loop.run("hi", CONTEXT) == "first\nsecond"

    @pytest.mark.asyncio
    async def test_turn_budget_returns_limit_message_after_exactly_max_turns(self):
        responses = [tool_response((f"call-{i}", "echo", {"value": str(i)})) for i in range(3)]
        llm = ScriptedLLM(responses)
        loop = make_loop(llm, await make_registry(), max_turns=3)

        result = await loop.execute("loop forever", CONTEXT)

        assert result.text == LIMIT_MESSAGE
        assert result.hit_limit is True
        assert result.turns == 3
        assert len(llm.requests) == 3


# =============================================================================
# Tool calls
# =============================================================================

class TestToolCalls:

    @pytest.mark.asyncio
    async def test_each_call_gets_one_result_in_request_order(self):
        llm = ScriptedLLM([
            tool_response(
                ("a", "echo", {"value": "1"}),
                ("b", "echo", {"value": "2"}),
                ("c", "echo", {"value": "3"}),
            ),
            text_response("done"),
        ])
        loop = make_loop(llm, await make_registry())

        result = await loop.execute("three please", CONTEXT)

        assert [m.role for m in result.messages] == [
            "user", "assistant", "tool_result", "tool_result", "tool_result", "assistant",
        ]
        assert [m.tool_result.tool_call_id for m in result.messages[2:5]] == ["a", "b", "c"]
        # The whole first response is stored as one assistant turn
        assert len(result.messages[1].blocks) == 3
        # The second model call saw all three results
        assert len(llm.requests[1]["messages"]) == 5

    @pytest.mark.asyncio
    async def test_local_results_are_json_with_context_identity(self):
        llm = ScriptedLLM([
            tool_response(("a", "echo", {"user_id": "someone-else", "value": "x"})),
            text_response("ok"),
        ])
        loop = make_loop(llm, await make_registry())

        result = await loop.execute("q", CONTEXT)

        tool_result = result.messages[2].tool_result
        payload = json.loads(tool_result.content_text())
        assert payload == {"echo": {"user_id": "user-1", "value": "x"}}

    @pytest.mark.asyncio
    async def test_failing_tool_becomes_error_result_and_loop_continues(self):
        boom = ToolDescriptor(name="boom", input_schema={"type": "object", "properties": {}})
        llm = ScriptedLLM([
            tool_response(("a", "boom", {})),
            text_response("recovered"),
        ])
        loop = make_loop(llm, await make_registry(local=[(boom, explode)]))

        result = await loop.execute("q", CONTEXT)

        tool_result = result.messages[2].tool_result
        assert tool_result.is_error
        assert tool_result.content_text() == "Error calling tool: boom"
        assert tool_result.to_anthropic_format()["is_error"] is True
        assert result.text == "recovered"

    @pytest.mark.asyncio
    async def test_unknown_tool_becomes_error_result(self):
        llm = ScriptedLLM([
            tool_response(("a", "does_not_exist", {})),
            text_response("sorry"),
        ])
        loop = make_loop(llm, await make_registry())

        result = await loop.execute("q", CONTEXT)

        assert result.messages[2].tool_result.error == "Unknown tool: does_not_exist"
        assert result.text == "sorry"

    @pytest.mark.asyncio
    async def test_remote_tool_output_keeps_text_only(self):
        protocol = FakeProtocol(tools=[RemoteTool(name="get_chain_stats", description="stats")])
        llm = ScriptedLLM([
            tool_response(("a", "get_chain_stats", {"network": "testnet"})),
            text_response("stats shown"),
        ])
        loop = make_loop(llm, await make_registry(protocol=protocol))

        result = await loop.execute("q", CONTEXT)

        assert protocol.calls == [{"name": "get_chain_stats", "arguments": {"network": "testnet"}}]
        assert result.messages[2].tool_result.content_text() == "get_chain_stats called"

    @pytest.mark.asyncio
    async def test_long_tool_output_is_truncated(self):
        async def verbose(args, protocol):
            return "x" * 500

        tool = ToolDescriptor(name="verbose")
        llm = ScriptedLLM([tool_response(("a", "verbose", {})), text_response("ok")])
        loop = make_loop(llm, await make_registry(local=[(tool, verbose)]), max_tool_output_chars=100)

        result = await loop.execute("q", CONTEXT)

        content = result.messages[2].tool_result.content_text()
        assert content.startswith("x" * 100)
        assert "[Output truncated]" in content
        assert len(content) < 200


# =============================================================================
# Model calls
# =============================================================================

class TestModelCalls:

    @pytest.mark.asyncio
    async def test_system_prompt_carries_account_context_and_manifest(self):
        llm = ScriptedLLM([text_response("hi")])
        loop = make_loop(llm, await make_registry())

        await loop.run("hi", CONTEXT)

        request = llm.requests[0]
        assert "User ID: user-1" in request["system"]
        assert "Wallet Address: WalletAddr" in request["system"]
        assert "Current Balance: 50 AMA" in request["system"]
        assert [t.name for t in request["tools"]] == ["echo"]

    @pytest.mark.asyncio
    async def test_overloaded_model_is_retried(self):
        sleep = AsyncMock()
        llm = ScriptedLLM([
            LLMProviderOverloadedError("busy", status_code=529),
            LLMProviderOverloadedError("busy", status_code=529),
            LLMProviderOverloadedError("busy", status_code=529),
            text_response("finally"),
        ])
        loop = make_loop(llm, await make_registry(), sleep=sleep)

        assert await loop.run("hi", CONTEXT) == "finally"
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_other_model_errors_propagate(self):
        llm = ScriptedLLM([LLMProviderAPIError("bad request", status_code=400)])
        loop = make_loop(llm, await make_registry())

        with pytest.raises(LLMProviderAPIError):
            await loop.run("hi", CONTEXT)

    def test_rejects_zero_turn_budget(self):
        with pytest.raises(ValueError):
            AgentLoop(llm_provider=ScriptedLLM([]), registry=ToolRegistry(), max_turns=0)
