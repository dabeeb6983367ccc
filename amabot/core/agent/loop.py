"""
Agent loop

Runs a bounded multi-turn conversation with a tool-capable model:

1. Send the system prompt, the conversation so far and the tool manifest
2. If the model answers with text only, return it
3. Otherwise run every requested tool in order, append one result per call,
   and go back to 1

The loop gives up with a fixed message after ``max_turns`` model calls.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from ...providers.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    ToolResult,
    is_overloaded_error,
)
from ..recovery import RetryPolicy
from .prompt import AccountContext, build_system_prompt
from .tools import ToolContext, ToolRegistry, truncate_tool_output

LIMIT_MESSAGE = "I've reached my processing limit. Please try asking your question differently."


class AgentRunResult(BaseModel):
    """Outcome of one agent run"""

    text: str
    messages: List[LLMMessage] = Field(default_factory=list)
    turns: int = 0
    hit_limit: bool = False
    tokens_used: int = 0


def default_retry_policy() -> RetryPolicy:
    """Three retries on overloaded responses, waiting 4s, 8s, then 16s."""
    return RetryPolicy(
        max_retries=3,
        base_delay_seconds=4.0,
        multiplier=2.0,
        retryable=is_overloaded_error,
    )


class AgentLoop:
    """
    Drives the model and the tool registry for a single query at a time.

    The loop holds no per-request state, so one instance can serve concurrent
    requests; each run keeps its own message list.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        registry: ToolRegistry,
        retry_policy: Optional[RetryPolicy] = None,
        max_turns: int = 5,
        max_tokens: int = 4096,
        max_tool_output_chars: Optional[int] = 30000,
        logger: Optional[logging.Logger] = None,
    ):
        if max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        self.llm_provider = llm_provider
        self.registry = registry
        self.retry_policy = retry_policy or default_retry_policy()
        self.max_turns = max_turns
        self.max_tokens = max_tokens
        self.max_tool_output_chars = max_tool_output_chars
        self.logger = logger or logging.getLogger(__name__)

    async def run(self, query: str, context: AccountContext) -> str:
        """Answer ``query`` for the given account and return the final text."""
        result = await self.execute(query, context)
        return result.text

    async def execute(self, query: str, context: AccountContext) -> AgentRunResult:
        messages: List[LLMMessage] = [LLMMessage(role="user", content=query)]
        tool_context = ToolContext(user_id=context.user_id, display_name=context.display_name)
        tokens_used = 0

        for turn in range(1, self.max_turns + 1):
            manifest = self.registry.manifest()
            system_prompt = build_system_prompt(context, manifest)

            self.logger.info(
                f"Agent turn {turn}/{self.max_turns}: {len(messages)} messages, {len(manifest)} tools"
            )
            response = await self._call_model(messages, manifest, system_prompt)
            tokens_used += response.tokens_used or 0

            messages.append(LLMMessage(role="assistant", blocks=response.blocks))

            tool_calls = response.tool_calls
            if not tool_calls:
                self.logger.info(f"Final response ready after {turn} turn(s)")
                return AgentRunResult(
                    text=response.text,
                    messages=messages,
                    turns=turn,
                    tokens_used=tokens_used,
                )

            self.logger.info(f"Tools requested: {', '.join(tc.name for tc in tool_calls)}")
            for tool_call in tool_calls:
                result = await self.registry.dispatch(tool_call, tool_context)
                messages.append(
                    LLMMessage(role="tool_result", tool_result=self._bounded(result))
                )

        self.logger.warning(f"Max agent turns reached ({self.max_turns})")
        return AgentRunResult(
            text=LIMIT_MESSAGE,
            messages=messages,
            turns=self.max_turns,
            hit_limit=True,
            tokens_used=tokens_used,
        )

    async def _call_model(self, messages, manifest, system_prompt) -> LLMResponse:
        async def call() -> LLMResponse:
            return await self.llm_provider.generate_response(
                messages=messages,
                max_tokens=self.max_tokens,
                tools=manifest,
                system=system_prompt,
            )

        return await self.retry_policy.run(call, operation_name="LLM call")

    def _bounded(self, result: ToolResult) -> ToolResult:
        text = result.content_text()
        bounded = truncate_tool_output(text, self.max_tool_output_chars)
        if bounded is text:
            return result
        self.logger.info(f"Tool output truncated from {len(text)} to {self.max_tool_output_chars} chars")
        if result.is_error:
            return ToolResult(tool_call_id=result.tool_call_id, error=bounded)
        return ToolResult(tool_call_id=result.tool_call_id, result=bounded)
