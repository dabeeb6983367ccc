"""
Remote protocol service client.

The Amadeus MCP server exposes chain operations (``create_transaction``,
``submit_transaction``, ``claim_testnet_ama`` and read-only explorers) as
tools. ``ProtocolClient`` is the narrow contract the rest of the bot depends
on; ``McpProtocolClient`` implements it over streamable HTTP with the official
``mcp`` SDK.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """Base exception for remote protocol failures"""
    pass


class ProtocolConnectionError(ProtocolError):
    """Raised when the protocol service cannot be reached"""
    pass


class RemoteToolError(ProtocolError):
    """Raised when the protocol service reports a failed tool call"""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name} failed: {message}")
        self.tool_name = tool_name


class InvalidResponseError(ProtocolError):
    """Raised when a tool call result does not have the expected shape"""
    pass


@dataclass
class RemoteTool:
    """A tool advertised by the protocol service"""
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass
class ContentItem:
    """One content block of a tool call result"""
    type: str
    text: Optional[str] = None


@dataclass
class ToolCallOutput:
    """Ordered content blocks returned by a remote tool call"""
    content: List[ContentItem] = field(default_factory=list)
    is_error: bool = False

    def text(self) -> str:
        """Text blocks joined by newlines; non-text blocks are dropped"""
        return "\n".join(item.text or "" for item in self.content if item.type == "text")

    def first_text_json(self, tool_name: str) -> Dict[str, Any]:
        """Decode the first content block as a JSON object."""
        if not self.content:
            raise InvalidResponseError(f"{tool_name} returned no content")
        first = self.content[0]
        if first.type != "text":
            raise InvalidResponseError(f"Expected text response from {tool_name}")
        try:
            payload = json.loads(first.text or "")
        except json.JSONDecodeError as e:
            raise InvalidResponseError(f"{tool_name} returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise InvalidResponseError(f"{tool_name} returned {type(payload).__name__}, expected object")
        return payload


class ProtocolClient(ABC):
    """Contract for the remote protocol service"""

    @abstractmethod
    async def list_tools(self) -> List[RemoteTool]:
        """Enumerate the tools the service offers"""
        pass

    @abstractmethod
    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> ToolCallOutput:
        """Invoke a tool by name"""
        pass

    async def call_tool_json(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Call a tool that answers with a JSON object in its first text block.

        Raises ``RemoteToolError`` when the service flags the call as failed.
        """
        output = await self.call_tool(name, arguments)
        if output.is_error:
            raise RemoteToolError(name, output.text() or "remote tool reported an error")
        return output.first_text_json(name)


class McpProtocolClient(ProtocolClient):
    """MCP client over streamable HTTP"""

    name = "mcp"

    def __init__(self, server_url: str, client_name: str = "amabot"):
        self.server_url = server_url
        self.client_name = client_name
        self._exit_stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        if self._session is not None:
            return

        stack = AsyncExitStack()
        try:
            read_stream, write_stream, _ = await stack.enter_async_context(
                streamablehttp_client(self.server_url)
            )
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await session.initialize()
        except Exception as e:
            await stack.aclose()
            logger.error(f"Failed to connect to MCP server {self.server_url}: {e}")
            raise ProtocolConnectionError(f"Failed to connect to {self.server_url}: {e}") from e

        self._exit_stack = stack
        self._session = session
        logger.info(f"Connected to MCP server {self.server_url}")

    async def close(self) -> None:
        stack, self._exit_stack, self._session = self._exit_stack, None, None
        if stack is not None:
            await stack.aclose()
            logger.info("MCP session closed")

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise ProtocolConnectionError("MCP client is not connected")
        return self._session

    async def list_tools(self) -> List[RemoteTool]:
        session = self._require_session()
        try:
            result = await session.list_tools()
        except Exception as e:
            raise ProtocolError(f"tools/list failed: {e}") from e

        return [
            RemoteTool(
                name=tool.name,
                description=tool.description or "",
                input_schema=dict(tool.inputSchema or {"type": "object", "properties": {}}),
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> ToolCallOutput:
        session = self._require_session()
        try:
            result = await session.call_tool(name, arguments)
        except Exception as e:
            raise ProtocolError(f"tools/call {name} failed: {e}") from e

        return ToolCallOutput(
            content=[
                ContentItem(type=block.type, text=getattr(block, "text", None))
                for block in result.content
            ],
            is_error=bool(result.isError),
        )

    async def health_check(self) -> Dict[str, Any]:
        if self._session is None:
            return {"status": "unavailable", "reason": "not connected"}
        try:
            start = time.time()
            await self._session.send_ping()
            return {"status": "healthy", "latency_ms": int((time.time() - start) * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}
