"""
Tests for tool registration, manifest building and dispatch.
"""

import pytest

from amabot.core.agent.tools import (
    ToolArgumentError,
    ToolContext,
    ToolDescriptor,
    ToolRegistry,
    UnknownToolError,
    build_arguments_model,
    resolve_identity,
    truncate_tool_output,
    validate_arguments,
)
from amabot.providers.llm.base import ToolCall
from amabot.providers.protocol import ContentItem, RemoteTool, ToolCallOutput

from tests.fakes import FakeProtocol, text_output

CONTEXT = ToolContext(user_id="user-1", display_name="Alice")

TRANSFER_SCHEMA = {
    "type": "object",
    "properties": {
        "user_id": {"type": "string"},
        "recipient": {"type": "string"},
        "amount": {"type": "string"},
    },
    "required": ["user_id", "recipient", "amount"],
}


async def record(args, protocol):
    return {"args": args}


# =============================================================================
# Registration and manifest
# =============================================================================

class TestManifest:

    @pytest.mark.asyncio
    async def test_build_registers_remote_then_local(self):
        protocol = FakeProtocol(tools=[
            RemoteTool(name="get_chain_stats", description="Chain stats"),
            RemoteTool(name="create_transaction", description="Build a tx"),
        ])
        local = ToolDescriptor(name="get_user_balance", description="Balance")

        registry = await ToolRegistry.build(protocol, [(local, record)])

        assert [d.name for d in registry.manifest()] == [
            "get_chain_stats", "create_transaction", "get_user_balance",
        ]
        assert registry.has_tool("get_chain_stats")
        assert not registry.has_tool("nope")

    @pytest.mark.asyncio
    async def test_local_tool_shadows_remote_with_same_name(self):
        protocol = FakeProtocol(tools=[
            RemoteTool(name="get_chain_stats", description="Chain stats"),
            RemoteTool(name="transfer_ama", description="remote version"),
        ])
        local = [
            (ToolDescriptor(name="transfer_ama", description="local version", input_schema=TRANSFER_SCHEMA), record),
            (ToolDescriptor(name="get_user_balance", description="Balance"), record),
            (ToolDescriptor(name="get_user_info", description="Info"), record),
            (ToolDescriptor(name="validate_balance_for_transfer", description="Validate"), record),
        ]

        registry = await ToolRegistry.build(protocol, local)

        manifest = registry.manifest()
        names = [d.name for d in manifest]
        assert len(manifest) == 5
        assert names.count("transfer_ama") == 1
        assert set(names) == {
            "get_chain_stats", "transfer_ama", "get_user_balance", "get_user_info", "validate_balance_for_transfer",
        }
        shadowing = next(d for d in manifest if d.name == "transfer_ama")
        assert shadowing.description == "local version"

        result = await registry.dispatch(
            ToolCall(id="t1", name="transfer_ama", arguments={"recipient": "R", "amount": "1"}),
            CONTEXT,
        )
        assert not result.is_error
        assert result.result["args"]["recipient"] == "R"
        assert protocol.calls == []

    @pytest.mark.asyncio
    async def test_descriptions_truncated_in_manifest(self):
        protocol = FakeProtocol(tools=[RemoteTool(name="verbose", description="d" * 500)])

        registry = await ToolRegistry.build(protocol)

        assert len(registry.manifest()[0].description) == 200
        assert registry.manifest()[0].to_anthropic_format()["input_schema"]["type"] == "object"

    def test_require_unknown_tool_raises(self):
        with pytest.raises(UnknownToolError, match="Unknown tool: missing"):
            ToolRegistry().require("missing")


# =============================================================================
# Argument handling
# =============================================================================

class TestArguments:

    def test_numbers_are_accepted_for_string_fields(self):
        model = build_arguments_model("transfer", TRANSFER_SCHEMA)
        validated = validate_arguments("transfer", model, {"user_id": "u", "recipient": "R", "amount": 10})
        assert validated["amount"] == "10"

    def test_missing_required_argument_is_rejected(self):
        model = build_arguments_model("transfer", TRANSFER_SCHEMA)
        with pytest.raises(ToolArgumentError, match="Invalid arguments for transfer: recipient"):
            validate_arguments("transfer", model, {"user_id": "u", "amount": "1"})

    def test_unset_optional_fields_are_not_injected(self):
        schema = {"type": "object", "properties": {"limit": {"type": "integer"}}}
        model = build_arguments_model("list", schema)
        assert validate_arguments("list", model, {}) == {}

    def test_identity_always_comes_from_context(self):
        assert resolve_identity({"user_id": "mallory", "x": 1}, CONTEXT) == {"user_id": "user-1", "x": 1}
        assert resolve_identity({}, CONTEXT) == {"user_id": "user-1"}
        assert resolve_identity({"user_id": "kept"}, ToolContext()) == {"user_id": "kept"}

    def test_truncate_tool_output(self):
        assert truncate_tool_output("short", 10) == "short"
        assert truncate_tool_output("a" * 20, 10) == "a" * 10 + "\n\n[Output truncated]"
        assert truncate_tool_output("a" * 20, None) == "a" * 20

    @pytest.mark.asyncio
    async def test_invalid_arguments_become_error_result(self):
        registry = ToolRegistry()
        registry.register_local(
            ToolDescriptor(name="transfer", input_schema=TRANSFER_SCHEMA), record
        )

        result = await registry.dispatch(ToolCall(id="t1", name="transfer", arguments={}), CONTEXT)

        assert result.is_error
        assert result.error.startswith("Error calling tool: Invalid arguments for transfer")


# =============================================================================
# Remote dispatch
# =============================================================================

class TestRemoteDispatch:

    @pytest.mark.asyncio
    async def test_remote_arguments_are_forwarded_verbatim(self):
        protocol = FakeProtocol(tools=[RemoteTool(name="get_account")])
        registry = await ToolRegistry.build(protocol)

        await registry.dispatch(
            ToolCall(id="t1", name="get_account", arguments={"address": "A", "user_id": "other"}),
            CONTEXT,
        )

        assert protocol.calls == [{"name": "get_account", "arguments": {"address": "A", "user_id": "other"}}]

    @pytest.mark.asyncio
    async def test_text_blocks_joined_and_others_dropped(self):
        protocol = FakeProtocol(tools=[RemoteTool(name="multi")])
        protocol.handlers["multi"] = lambda args: ToolCallOutput(content=[
            ContentItem(type="text", text="line one"),
            ContentItem(type="image"),
            ContentItem(type="text", text="line two"),
        ])
        registry = await ToolRegistry.build(protocol)

        result = await registry.dispatch(ToolCall(id="t1", name="multi", arguments={}), CONTEXT)

        assert result.result == "line one\nline two"

    @pytest.mark.asyncio
    async def test_remote_error_flag_becomes_error_result(self):
        protocol = FakeProtocol(tools=[RemoteTool(name="flaky")])
        protocol.handlers["flaky"] = lambda args: text_output("node unreachable", is_error=True)
        registry = await ToolRegistry.build(protocol)

        result = await registry.dispatch(ToolCall(id="t1", name="flaky", arguments={}), CONTEXT)

        assert result.is_error
        assert result.error == "Error calling tool: flaky failed: node unreachable"

    @pytest.mark.asyncio
    async def test_remote_tool_without_protocol_is_error_result(self):
        registry = ToolRegistry()
        registry.register_remote(RemoteTool(name="orphan"))

        result = await registry.dispatch(ToolCall(id="t1", name="orphan", arguments={}), CONTEXT)

        assert result.is_error
        assert "No protocol client" in result.error
