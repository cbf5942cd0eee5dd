"""
Exception types for the Mistral MCP package.

Configuration mistakes raise to the caller. Remote failures are usually
captured as results instead (see ToolCallResult); the one exception is
ConnectionFailedError, which McpClientManager.connect() raises.
"""

from typing import Optional


class MistralMCPError(Exception):
    """Base class for all package errors."""


class InvalidTransportError(MistralMCPError, ValueError):
    """An MCP server was configured with an unsupported transport kind."""

    def __init__(self, transport: str):
        self.transport = transport
        super().__init__(f"Unsupported transport type: {transport}")


class UnknownServerError(MistralMCPError, ValueError):
    """An operation referenced a server name that was never configured."""

    def __init__(self, server_name: str):
        self.server_name = server_name
        super().__init__(f"Server '{server_name}' not configured")


class ConnectionFailedError(MistralMCPError, RuntimeError):
    """The transport or the MCP initialize handshake failed."""

    def __init__(self, server_name: str, cause: Optional[BaseException] = None):
        self.server_name = server_name
        self.cause = cause
        if cause is None:
            reason = "unknown error"
        else:
            reason = str(cause) or type(cause).__name__
        super().__init__(f"Failed to connect to MCP server '{server_name}': {reason}")


class InvalidToolNameFormatError(MistralMCPError, ValueError):
    """A model-issued tool name does not follow mcp_<server>_<tool>."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Invalid MCP tool name format: {tool_name}")


class MistralAPIError(MistralMCPError):
    """The Mistral API answered with a non-success status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Mistral API error: {status} - {body}")


class ManagerNotStartedError(MistralMCPError, RuntimeError):
    """McpClientManager.connect() was called before 'async with manager'."""

    def __init__(self):
        super().__init__(
            "McpClientManager must be used inside an async context (i.e. 'async with')."
        )
