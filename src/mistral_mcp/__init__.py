"""
Mistral MCP - Mistral AI chat completions with Model Context Protocol tools.
"""

__version__ = "0.1.0"

# MCP connectivity
from mistral_mcp.mcp.server_registry import ServerRegistry
from mistral_mcp.mcp.client_manager import McpClientManager
from mistral_mcp.mcp.models import ToolCallResult, ToolDescriptor

# Chat
from mistral_mcp.chat.client import MistralChat
from mistral_mcp.chat.tool_chat import ToolAugmentedChat
from mistral_mcp.chat.types import ChatRequest, ChatResponse

# Configuration
from mistral_mcp.config import load_config, Settings

from mistral_mcp.errors import (
    MistralMCPError,
    InvalidTransportError,
    UnknownServerError,
    ConnectionFailedError,
    InvalidToolNameFormatError,
    ManagerNotStartedError,
    MistralAPIError,
)

__all__ = [
    "ServerRegistry",
    "McpClientManager",
    "ToolCallResult",
    "ToolDescriptor",
    "MistralChat",
    "ToolAugmentedChat",
    "ChatRequest",
    "ChatResponse",
    "load_config",
    "Settings",
    "MistralMCPError",
    "InvalidTransportError",
    "UnknownServerError",
    "ConnectionFailedError",
    "InvalidToolNameFormatError",
    "ManagerNotStartedError",
    "MistralAPIError",
]
