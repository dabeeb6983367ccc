"""
Wallet agent: bounded tool-calling loop over local account tools and remote
protocol tools.
"""

from .account_tools import AccountTools
from .loop import LIMIT_MESSAGE, AgentLoop, AgentRunResult, default_retry_policy
from .prompt import AccountContext, build_system_prompt
from .tools import (
    LocalToolHandler,
    RegisteredTool,
    RemoteToolHandler,
    ToolArgumentError,
    ToolContext,
    ToolDescriptor,
    ToolError,
    ToolHandler,
    ToolRegistry,
    UnknownToolError,
    resolve_identity,
)

__all__ = [
    "AccountTools",
    "LIMIT_MESSAGE",
    "AgentLoop",
    "AgentRunResult",
    "default_retry_policy",
    "AccountContext",
    "build_system_prompt",
    "LocalToolHandler",
    "RegisteredTool",
    "RemoteToolHandler",
    "ToolArgumentError",
    "ToolContext",
    "ToolDescriptor",
    "ToolError",
    "ToolHandler",
    "ToolRegistry",
    "UnknownToolError",
    "resolve_identity",
]
