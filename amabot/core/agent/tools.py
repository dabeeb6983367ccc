"""
Tool Registry and dispatch for LLM-driven tool calling.

Tools come from two places: local handlers implemented in this process
(account and payment tools) and remote tools advertised by the protocol
service. The registry is built once per process; every call is dispatched by
exact name, local first.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from ...providers.llm.base import ToolCall, ToolDefinition, ToolResult
from ...providers.protocol import ProtocolClient, RemoteTool, RemoteToolError

logger = logging.getLogger(__name__)

IDENTITY_FIELD = "user_id"
DEFAULT_DESCRIPTION_MAX_CHARS = 200
TRUNCATION_MARKER = "\n\n[Output truncated]"


class ToolError(Exception):
    """Base exception for tool registry errors"""
    pass


class UnknownToolError(ToolError):
    """Raised when no tool with the requested name exists"""
    pass


class ToolArgumentError(ToolError):
    """Raised when tool arguments do not match the tool's input schema"""
    pass


@dataclass
class ToolContext:
    """Who the current request is acting for."""
    user_id: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class ToolDescriptor:
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_definition(self, max_description_chars: Optional[int] = None) -> ToolDefinition:
        description = self.description or ""
        if max_description_chars is not None:
            description = description[:max_description_chars]
        return ToolDefinition(name=self.name, description=description, input_schema=self.input_schema)


LocalToolFunction = Callable[[Dict[str, Any], Optional[ProtocolClient]], Awaitable[Any]]


# =============================================================================
# Argument validation
# =============================================================================

_JSON_TYPES: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
}


def build_arguments_model(name: str, input_schema: Dict[str, Any]) -> Type[BaseModel]:
    """Build a pydantic model mirroring a JSON-schema object's properties.

    Numbers sent for string fields are accepted as strings, since models often
    send ``10`` where ``"10"`` is declared.
    """
    properties = input_schema.get("properties") or {}
    required = set(input_schema.get("required") or [])

    fields: Dict[str, Tuple[Any, Any]] = {}
    for prop_name, prop_schema in properties.items():
        json_type = (prop_schema or {}).get("type")
        py_type = _JSON_TYPES.get(json_type, Any) if isinstance(json_type, str) else Any
        if prop_name in required:
            fields[prop_name] = (py_type, ...)
        else:
            fields[prop_name] = (Optional[py_type], None)

    return create_model(
        f"{name}_arguments",
        __config__=ConfigDict(coerce_numbers_to_str=True, extra="allow"),
        **fields,
    )


def validate_arguments(
    name: str, model: Type[BaseModel], arguments: Dict[str, Any]
) -> Dict[str, Any]:
    try:
        validated = model.model_validate(arguments)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise ToolArgumentError(f"Invalid arguments for {name}: {problems}") from e
    return validated.model_dump(exclude_unset=True)


def resolve_identity(
    arguments: Dict[str, Any],
    context: ToolContext,
    tool_name: str = "",
) -> Dict[str, Any]:
    """Bind the request's identity into local tool arguments.

    The context identity always wins over whatever the model supplied.
    """
    resolved = dict(arguments)
    if not context.user_id:
        return resolved

    supplied = resolved.get(IDENTITY_FIELD)
    if supplied is not None and str(supplied) != context.user_id:
        logger.warning(
            f"Tool {tool_name} called with {IDENTITY_FIELD}={supplied!r}; "
            f"overriding with request identity {context.user_id!r}"
        )
    resolved[IDENTITY_FIELD] = context.user_id
    return resolved


def truncate_tool_output(text: str, max_chars: Optional[int]) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


# =============================================================================
# Handlers
# =============================================================================

class ToolHandler(ABC):
    """Runs one tool. Raises on failure; the registry turns errors into results."""

    is_local: bool = False

    @abstractmethod
    async def handle(self, arguments: Dict[str, Any], protocol: Optional[ProtocolClient]) -> Any:
        pass


class LocalToolHandler(ToolHandler):
    """An in-process tool, with arguments checked against its schema."""

    is_local = True

    def __init__(self, descriptor: ToolDescriptor, func: LocalToolFunction):
        self.descriptor = descriptor
        self.func = func
        self.arguments_model = build_arguments_model(descriptor.name, descriptor.input_schema)

    async def handle(self, arguments: Dict[str, Any], protocol: Optional[ProtocolClient]) -> Any:
        validated = validate_arguments(self.descriptor.name, self.arguments_model, arguments)
        return await self.func(validated, protocol)


class RemoteToolHandler(ToolHandler):
    """Forwards the call verbatim; only text content is kept."""

    def __init__(self, name: str):
        self.name = name

    async def handle(self, arguments: Dict[str, Any], protocol: Optional[ProtocolClient]) -> Any:
        if protocol is None:
            raise ToolError(f"No protocol client available for remote tool {self.name}")
        output = await protocol.call_tool(self.name, arguments)
        text = output.text()
        if output.is_error:
            raise RemoteToolError(self.name, text or "remote tool reported an error")
        return text


@dataclass
class RegisteredTool:
    """A tool registered in the registry with its descriptor and handler."""
    descriptor: ToolDescriptor
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def is_local(self) -> bool:
        return self.handler.is_local


# =============================================================================
# Registry
# =============================================================================

class ToolRegistry:
    """
    Registry of tools the LLM can call.

    When a local tool and a remote tool share a name, the local one is used
    for dispatch and is the only one listed in the manifest.
    """

    def __init__(
        self,
        protocol: Optional[ProtocolClient] = None,
        max_description_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
        logger: Optional[logging.Logger] = None,
    ):
        self.protocol = protocol
        self.max_description_chars = max_description_chars
        self.logger = logger or logging.getLogger(__name__)
        self._local: Dict[str, RegisteredTool] = {}
        self._remote: Dict[str, RegisteredTool] = {}

    @classmethod
    async def build(
        cls,
        protocol: Optional[ProtocolClient],
        local_tools: Iterable[Tuple[ToolDescriptor, LocalToolFunction]] = (),
        max_description_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
    ) -> "ToolRegistry":
        """Register the given local tools and everything the protocol service offers."""
        registry = cls(protocol=protocol, max_description_chars=max_description_chars)
        for descriptor, func in local_tools:
            registry.register_local(descriptor, func)
        if protocol is not None:
            for tool in await protocol.list_tools():
                registry.register_remote(tool)
        registry.logger.info(
            f"Tool registry built: {len(registry._remote)} remote + {len(registry._local)} local"
        )
        return registry

    def register_local(self, descriptor: ToolDescriptor, func: LocalToolFunction) -> None:
        self._local[descriptor.name] = RegisteredTool(
            descriptor=descriptor,
            handler=LocalToolHandler(descriptor, func),
        )

    def register_remote(self, tool: RemoteTool) -> None:
        if tool.name in self._local:
            self.logger.info(f"Remote tool {tool.name} shadowed by local tool")
        self._remote[tool.name] = RegisteredTool(
            descriptor=ToolDescriptor(
                name=tool.name,
                description=tool.description,
                input_schema=tool.input_schema,
            ),
            handler=RemoteToolHandler(tool.name),
        )

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        """Exact-name lookup, local first."""
        return self._local.get(name) or self._remote.get(name)

    def require(self, name: str) -> RegisteredTool:
        tool = self.get_tool(name)
        if tool is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        return tool

    def has_tool(self, name: str) -> bool:
        return self.get_tool(name) is not None

    @property
    def tools(self) -> List[RegisteredTool]:
        """Remote tools without a local counterpart, then local tools."""
        remote = [t for name, t in self._remote.items() if name not in self._local]
        return remote + list(self._local.values())

    def manifest(self) -> List[ToolDefinition]:
        """Tool definitions for the model, descriptions truncated."""
        return [t.descriptor.to_definition(self.max_description_chars) for t in self.tools]

    async def dispatch(self, tool_call: ToolCall, context: ToolContext) -> ToolResult:
        """Run one tool call. Failures become error results, never exceptions."""
        try:
            tool = self.require(tool_call.name)
        except UnknownToolError as e:
            self.logger.warning(f"Unknown tool requested: {tool_call.name}")
            return ToolResult(tool_call_id=tool_call.id, result=None, error=str(e))

        arguments = dict(tool_call.arguments or {})
        if tool.is_local:
            arguments = resolve_identity(arguments, context, tool.name)

        self.logger.info(f"Executing {'local' if tool.is_local else 'remote'} tool: {tool.name}")
        try:
            result = await tool.handler.handle(arguments, self.protocol)
        except Exception as e:
            self.logger.error(f"Tool execution error for {tool.name}: {e}")
            return ToolResult(
                tool_call_id=tool_call.id,
                result=None,
                error=f"Error calling tool: {e}",
            )

        return ToolResult(tool_call_id=tool_call.id, result=result, error=None)
