"""
MCP connectivity for the Mistral MCP package.

This module provides the components for configuring MCP servers, managing
connections to them, and routing tool calls to the appropriate server.
"""

from .server_registry import ServerRegistry
from .models import ServerInfo, ToolCallResult, ToolDescriptor
from .connection import (
    ToolServerConnection,
    StdioServerConnection,
    HttpServerConnection,
    create_connection,
)
from .client_session import MistralMCPClientSession
from .client_manager import McpClientManager
from .aggregator import NamespacedTool, namespaced_tool_name, parse_tool_name

__all__ = [
    "ServerRegistry",
    "ServerInfo",
    "ToolCallResult",
    "ToolDescriptor",
    "ToolServerConnection",
    "StdioServerConnection",
    "HttpServerConnection",
    "create_connection",
    "MistralMCPClientSession",
    "McpClientManager",
    "NamespacedTool",
    "namespaced_tool_name",
    "parse_tool_name",
]
