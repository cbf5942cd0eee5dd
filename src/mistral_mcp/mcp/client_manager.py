"""
Manages the configured MCP servers and the live connections to them.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from anyio import Lock, create_task_group
from anyio.abc import TaskGroup
from mcp.types import CallToolResult

from mistral_mcp.config import MCPServerSettings, Settings
from mistral_mcp.errors import (
    ConnectionFailedError,
    ManagerNotStartedError,
    UnknownServerError,
)
from mistral_mcp.mcp.connection import (
    ConnectionFactory,
    ToolServerConnection,
    create_connection,
    root_cause,
)
from mistral_mcp.mcp.models import ToolCallResult, ToolDescriptor
from mistral_mcp.mcp.server_registry import ServerRegistry
from mistral_mcp.utils.logging import get_logger, with_data_support


def _text_content(result: CallToolResult) -> str:
    """Concatenate the text parts of a tool result, in order, with no separator."""
    return "".join(
        getattr(item, "text", "") or "" for item in (result.content or [])
    )


class McpClientManager:
    """
    Owns the server registry and every live MCP connection.

    Use as an async context manager: entering opens the task group that hosts
    each connection's lifecycle task, leaving disconnects everything.

    One manager may be shared by several ToolAugmentedChat instances. connect
    and disconnect are serialized by a lock so concurrent callers never see a
    half-registered connection; add_server is synchronous and never yields.
    """

    def __init__(
        self,
        registry: Optional[ServerRegistry] = None,
        logger: Optional[logging.Logger] = None,
        connection_factory: ConnectionFactory = create_connection,
    ):
        """
        Args:
            registry: Server configurations; a new empty registry by default.
            logger: Receives connect/disconnect/tool events. Any
                logging.Logger works; plain loggers are wrapped so the
                'data=' context is appended to the message.
            connection_factory: Builds a ToolServerConnection for a config.
        """
        self.registry = registry or ServerRegistry()
        self.logger = with_data_support(logger or get_logger(__name__))
        self._connection_factory = connection_factory
        self._connections: Dict[str, ToolServerConnection] = {}
        self._lock = Lock()
        self._tg: Optional[TaskGroup] = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "McpClientManager":
        """Create a manager with every server from settings.mcp.servers registered."""
        return cls(registry=ServerRegistry(settings), **kwargs)

    async def __aenter__(self):
        self._tg = create_task_group()
        await self._tg.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.logger.debug("McpClientManager: shutting down all server connections...")
        try:
            await self.disconnect_all()
        finally:
            tg, self._tg = self._tg, None
            if tg is not None:
                await tg.__aexit__(exc_type, exc_val, exc_tb)

    # Registry

    def add_server(
        self, name: str, transport: str, config: Optional[Mapping[str, Any]] = None
    ) -> MCPServerSettings:
        """
        Add or overwrite a server configuration. An open connection under the
        same name keeps running with its old configuration.

        Raises:
            InvalidTransportError: If the transport is not 'stdio' or 'http'.
        """
        return self.registry.add_server(name, transport, config)

    def get_config(self, name: str) -> Optional[MCPServerSettings]:
        return self.registry.get_config(name)

    # Lifecycle

    async def connect(self, server_name: str) -> None:
        """
        Connect to a configured server. Connecting twice is a no-op.

        Raises:
            UnknownServerError: If the server was never configured.
            ManagerNotStartedError: If called outside 'async with manager'.
            ConnectionFailedError: If the transport or the initialize handshake
                failed. Nothing is retained; the call may be retried.
        """
        async with self._lock:
            if server_name not in self.registry:
                raise UnknownServerError(server_name)
            config = self.registry.get_config(server_name)

            if server_name in self._connections:
                return

            if self._tg is None:
                raise ManagerNotStartedError()

            try:
                connection = self._connection_factory(server_name, config)
                server_info = await connection.open(self._tg)
            except ConnectionFailedError as exc:
                self.logger.error(
                    f"Failed to connect to MCP server '{server_name}'",
                    data={"error": str(exc.cause or exc)},
                )
                raise
            except Exception as exc:
                cause = root_cause(exc)
                self.logger.error(
                    f"Failed to connect to MCP server '{server_name}'",
                    data={"error": str(cause)},
                )
                raise ConnectionFailedError(server_name, cause) from exc

            self._connections[server_name] = connection

        self.logger.info(
            f"Connected to MCP server '{server_name}'",
            data={
                "server_name": server_info.name if server_info else None,
                "server_version": server_info.version if server_info else None,
                "protocol_version": server_info.protocol_version if server_info else None,
            },
        )

    async def disconnect(self, server_name: str) -> None:
        """Close the connection to a server. Does nothing if it is not connected."""
        async with self._lock:
            connection = self._connections.pop(server_name, None)
        if connection is None:
            self.logger.debug(f"{server_name}: No connection found. Skipping disconnect.")
            return

        await connection.close()
        self.logger.info(f"Disconnected from MCP server '{server_name}'")

    async def disconnect_all(self) -> None:
        """
        Disconnect every server. A failing close is logged and the remaining
        servers are still disconnected.
        """
        async with self._lock:
            connections = list(self._connections.items())
            self._connections.clear()

        for server_name, connection in connections:
            try:
                await connection.close()
                self.logger.info(f"Disconnected from MCP server '{server_name}'")
            except Exception as exc:
                self.logger.error(
                    f"Error disconnecting from MCP server '{server_name}'",
                    data={"error": str(exc)},
                )

    # Queries

    def is_connected(self, server_name: str) -> bool:
        return server_name in self._connections

    def get_connected_servers(self) -> Set[str]:
        return set(self._connections)

    def get_server_info(self, server_name: str) -> Optional[Dict[str, Any]]:
        """
        Describe a configured server.

        Returns:
            {name, transport, connected}, plus the negotiated server_name,
            server_version and protocol_version while connected. None if the
            server was never configured.
        """
        config = self.registry.get_config(server_name)
        if config is None:
            return None

        info: Dict[str, Any] = {
            "name": server_name,
            "transport": config.transport,
            "connected": self.is_connected(server_name),
        }

        connection = self._connections.get(server_name)
        if connection is not None and connection.server_info is not None:
            info["server_name"] = connection.server_info.name
            info["server_version"] = connection.server_info.version
            info["protocol_version"] = connection.server_info.protocol_version

        return info

    async def list_all_tools(self) -> Dict[str, List[ToolDescriptor]]:
        """
        List the tools of every connected server.

        A server that fails to answer maps to an empty list; the failure is
        logged, not raised. Servers that are configured but not connected are
        absent from the result.
        """
        all_tools: Dict[str, List[ToolDescriptor]] = {}

        for server_name, connection in list(self._connections.items()):
            try:
                all_tools[server_name] = await connection.list_tools()
            except Exception as exc:
                self.logger.warning(
                    f"Failed to list tools from server '{server_name}'",
                    data={"error": str(root_cause(exc))},
                )
                all_tools[server_name] = []

        return all_tools

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: Union[Dict[str, Any], str, None] = None,
    ) -> ToolCallResult:
        """
        Call a tool on a connected server.

        Never raises for remote failures: transport errors, timeouts and
        results flagged isError all come back as ToolCallResult(success=False).

        Args:
            server_name: Name of a connected server.
            tool_name: Tool name as the server knows it.
            arguments: A mapping, a JSON-encoded object, or None.
        """
        connection = self._connections.get(server_name)
        if connection is None:
            return ToolCallResult.failed(f"Not connected to server '{server_name}'")

        try:
            parsed_arguments = _parse_arguments(arguments)
        except ValueError as exc:
            return ToolCallResult.failed(str(exc))

        try:
            result = await connection.call_tool(tool_name, parsed_arguments)
        except Exception as exc:
            cause = root_cause(exc)
            error = str(cause) or type(cause).__name__
            self.logger.error(
                "Tool call failed",
                data={"server": server_name, "tool": tool_name, "error": error},
            )
            return ToolCallResult.failed(error)

        text = _text_content(result)
        if result.isError:
            self.logger.warning(
                "Tool reported an error",
                data={"server": server_name, "tool": tool_name, "error": text},
            )
            return ToolCallResult.failed(text or "Tool execution failed")

        self.logger.debug(
            "Tool call succeeded", data={"server": server_name, "tool": tool_name}
        )
        return ToolCallResult.ok(text)


def _parse_arguments(arguments: Union[Dict[str, Any], str, None]) -> Dict[str, Any]:
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid tool arguments: {exc}") from exc
    if not isinstance(arguments, dict):
        raise ValueError("Invalid tool arguments: expected a JSON object")
    return arguments
