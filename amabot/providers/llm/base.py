from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field
import json
import time
import logging


# =============================================================================
# Tool Calling Models
# =============================================================================

class ToolDefinition(BaseModel):
    """A tool as presented to the LLM: name, description and JSON input schema"""
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_anthropic_format(self, max_description_chars: Optional[int] = None) -> Dict[str, Any]:
        """Convert to Anthropic's tool schema format"""
        description = self.description or ""
        if max_description_chars is not None:
            description = description[:max_description_chars]
        return {
            "name": self.name,
            "description": description,
            "input_schema": self.input_schema,
        }


class ToolCall(BaseModel):
    """A tool call requested by the LLM"""
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Result of executing a tool"""
    tool_call_id: str
    result: Any = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def content_text(self) -> str:
        content = self.error if self.error is not None else self.result
        if content is None:
            return ""
        if not isinstance(content, str):
            content = json.dumps(content, indent=2, default=str)
        return content

    def to_anthropic_format(self) -> Dict[str, Any]:
        """Convert to Anthropic's tool_result format"""
        block = {
            "type": "tool_result",
            "tool_use_id": self.tool_call_id,
            "content": self.content_text(),
        }
        if self.is_error:
            block["is_error"] = True
        return block


# =============================================================================
# Message Models
# =============================================================================

class ContentBlock(BaseModel):
    """One block of a model response: either text or a tool call"""
    type: str  # "text" or "tool_use"
    text: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    input: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def text_block(cls, text: str) -> "ContentBlock":
        return cls(type="text", text=text)

    @classmethod
    def tool_use_block(cls, id: str, name: str, input: Optional[Dict[str, Any]] = None) -> "ContentBlock":
        return cls(type="tool_use", id=id, name=name, input=input or {})

    def to_anthropic_format(self) -> Dict[str, Any]:
        if self.type == "tool_use":
            return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}
        return {"type": "text", "text": self.text or ""}


class LLMMessage(BaseModel):
    """One turn of conversation state"""
    role: str  # "system", "user", "assistant", "tool_result"
    content: Optional[str] = None
    blocks: Optional[List[ContentBlock]] = None  # Raw assistant response, kept whole
    tool_result: Optional[ToolResult] = None      # For tool result turns


class LLMResponse(BaseModel):
    """Standardized response from LLM providers"""
    blocks: List[ContentBlock] = Field(default_factory=list)
    tokens_used: Optional[int] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None  # "end_turn", "tool_use", "max_tokens"
    response_time_ms: Optional[float] = None

    @property
    def tool_calls(self) -> List[ToolCall]:
        return [
            ToolCall(id=block.id or "", name=block.name or "", arguments=block.input or {})
            for block in self.blocks
            if block.type == "tool_use"
        ]

    @property
    def text(self) -> str:
        """All text blocks joined by newlines"""
        return "\n".join(block.text or "" for block in self.blocks if block.type == "text")


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    # Class attribute indicating if provider supports native tool calling
    supports_tools: bool = False

    def __init__(self, api_key: str, model: str, **kwargs):
        self.api_key = api_key
        self.model = model
        self.logger = logging.getLogger(f"{self.__class__.__name__}")
        self._setup_client(**kwargs)

    @abstractmethod
    def _setup_client(self, **kwargs) -> None:
        """Initialize the provider-specific client"""
        pass

    @abstractmethod
    async def generate_response(
        self,
        messages: List[LLMMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        tools: Optional[List[ToolDefinition]] = None,
        system: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """Generate a response from the LLM

        Args:
            messages: Conversation state, oldest first
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            tools: Optional list of tool definitions for function calling
            system: Optional system prompt
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with the ordered content blocks
        """
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Check if the provider is healthy and responding"""
        pass

    def _measure_time(self, start_time: float) -> float:
        """Helper to measure response time in milliseconds"""
        return (time.time() - start_time) * 1000

    async def _handle_error(self, error: Exception, context: str = "") -> None:
        """Standardized error handling and logging"""
        self.logger.error(f"LLM Provider error in {context}: {str(error)}")
        raise error


class LLMProviderError(Exception):
    """Base exception for LLM provider errors"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLMProviderOverloadedError(LLMProviderError):
    """Raised when the provider reports it is overloaded (HTTP 529)"""
    pass


class LLMProviderRateLimitError(LLMProviderError):
    """Raised when hitting rate limits"""
    pass


class LLMProviderAuthError(LLMProviderError):
    """Raised when authentication fails"""
    pass


class LLMProviderAPIError(LLMProviderError):
    """Raised when API request fails"""
    pass


OVERLOADED_STATUS = 529


def is_overloaded_error(error: BaseException) -> bool:
    """True for the transient 'overloaded' condition that is worth retrying"""
    if isinstance(error, LLMProviderOverloadedError):
        return True
    return getattr(error, "status_code", None) == OVERLOADED_STATUS
