from typing import List, Dict, Any, Optional
import time

import anthropic
from anthropic import AsyncAnthropic

from .base import (
    LLMProvider, LLMMessage, LLMResponse, ContentBlock,
    LLMProviderError, LLMProviderAPIError, LLMProviderAuthError,
    LLMProviderOverloadedError, LLMProviderRateLimitError,
    OVERLOADED_STATUS, ToolDefinition,
)


def _is_overloaded_api_error(error: "anthropic.APIStatusError") -> bool:
    if getattr(error, "status_code", None) == OVERLOADED_STATUS:
        return True
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error") if isinstance(body.get("error"), dict) else body
        return inner.get("type") == "overloaded_error"
    return False


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM Provider implementation with native tool calling support"""

    supports_tools: bool = True

    def __init__(self, api_key: str, model: Optional[str] = None, **kwargs):
        if not model:
            raise ValueError("AnthropicProvider requires a model to be specified")

        super().__init__(api_key, model, **kwargs)

    def _setup_client(self, **kwargs) -> None:
        """Initialize the Anthropic client"""
        client = kwargs.get("client")
        if client is not None:
            self.client = client
            return
        try:
            # Retries for overloaded responses are owned by the agent's RetryPolicy
            self.client = AsyncAnthropic(api_key=self.api_key, max_retries=0)
        except Exception as e:
            self.logger.error(f"Failed to initialize Anthropic client: {e}")
            raise LLMProviderAuthError(f"Failed to initialize Anthropic client: {e}")

    def _convert_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert conversation state to Anthropic messages.

        Tool results that follow each other are folded into one user message,
        since the API expects every result of an assistant turn in the next
        user turn.
        """
        converted: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                continue

            if msg.role == "tool_result" and msg.tool_result:
                block = msg.tool_result.to_anthropic_format()
                previous = converted[-1] if converted else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    converted.append({"role": "user", "content": [block]})
                continue

            if msg.role == "assistant" and msg.blocks:
                converted.append({
                    "role": "assistant",
                    "content": [b.to_anthropic_format() for b in msg.blocks],
                })
                continue

            # Regular text message
            converted.append({"role": msg.role, "content": msg.content or ""})

        return converted

    async def generate_response(
        self,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        tools: Optional[List[ToolDefinition]] = None,
        system: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """Generate a response from Claude with optional tool calling"""
        start_time = time.time()

        system_message = system
        if system_message is None:
            system_message = next((m.content for m in messages if m.role == "system"), None)

        request_params: Dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "max_tokens": max_tokens or 4096,
        }

        if system_message:
            request_params["system"] = system_message

        if temperature is not None:
            request_params["temperature"] = temperature

        max_description_chars = kwargs.pop("max_description_chars", None)
        if tools:
            request_params["tools"] = [t.to_anthropic_format(max_description_chars) for t in tools]

        request_params.update(kwargs)

        try:
            response = await self.client.messages.create(**request_params)
        except anthropic.AuthenticationError as e:
            await self._handle_error(
                LLMProviderAuthError(f"Authentication failed: {e}", status_code=401), "generate_response"
            )
        except anthropic.RateLimitError as e:
            await self._handle_error(
                LLMProviderRateLimitError(f"Rate limit exceeded: {e}", status_code=429), "generate_response"
            )
        except anthropic.APIStatusError as e:
            if _is_overloaded_api_error(e):
                self.logger.warning(f"Anthropic API overloaded: {e}")
                raise LLMProviderOverloadedError(f"API overloaded: {e}", status_code=OVERLOADED_STATUS) from e
            await self._handle_error(
                LLMProviderAPIError(f"API error: {e}", status_code=e.status_code), "generate_response"
            )
        except anthropic.APIError as e:
            await self._handle_error(LLMProviderAPIError(f"API error: {e}"), "generate_response")

        blocks: List[ContentBlock] = []
        for block in response.content or []:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                blocks.append(ContentBlock.text_block(block.text))
            elif block_type == "tool_use":
                blocks.append(ContentBlock.tool_use_block(block.id, block.name, dict(block.input or {})))

        usage = getattr(response, "usage", None)
        return LLMResponse(
            blocks=blocks,
            tokens_used=getattr(usage, "output_tokens", None),
            model=self.model,
            finish_reason=getattr(response, "stop_reason", None),
            response_time_ms=self._measure_time(start_time),
        )

    async def health_check(self) -> Dict[str, Any]:
        """Check if Anthropic API is healthy"""
        try:
            start_time = time.time()

            response = await self.generate_response(
                messages=[LLMMessage(role="user", content="Hello")],
                max_tokens=10,
                temperature=0,
            )

            return {
                "status": "healthy",
                "provider": "anthropic",
                "model": self.model,
                "response_time_ms": self._measure_time(start_time),
                "test_response_length": len(response.text),
            }

        except LLMProviderAuthError:
            return {
                "status": "error",
                "provider": "anthropic",
                "model": self.model,
                "error": "Authentication failed"
            }
        except LLMProviderError as e:
            return {
                "status": "error",
                "provider": "anthropic",
                "model": self.model,
                "error": str(e)
            }
