"""
Server registry for MCP server configurations.
"""

from typing import Any, Dict, List, Mapping, Optional

from mistral_mcp.config import MCPServerSettings, SUPPORTED_TRANSPORTS, Settings
from mistral_mcp.errors import InvalidTransportError
from mistral_mcp.utils.logging import get_logger

logger = get_logger(__name__)


class ServerRegistry:
    """
    Holds named MCP server configurations.

    The registry does no network I/O. Connections read their transport
    parameters from the stored MCPServerSettings.
    """

    def __init__(self, config: Optional[Settings] = None):
        """
        Initialize the ServerRegistry.

        Args:
            config: Optional Settings whose mcp.servers are pre-registered.
        """
        self.registry: Dict[str, MCPServerSettings] = {}
        if config is not None:
            for name, server_config in config.mcp.servers.items():
                self.registry[name] = server_config.model_copy(update={"name": name})

    def add_server(
        self, name: str, transport: str, config: Optional[Mapping[str, Any]] = None
    ) -> MCPServerSettings:
        """
        Add or replace the configuration stored under `name`.

        Args:
            name: Server identifier.
            transport: 'stdio' or 'http' (case-insensitive).
            config: Transport options: command, args, working_dir, env for
                stdio; url, headers for http; timeout for both.

        Raises:
            InvalidTransportError: If the transport is not supported. The
                registry is left untouched.
        """
        transport_type = transport.lower() if isinstance(transport, str) else transport
        if transport_type not in SUPPORTED_TRANSPORTS:
            raise InvalidTransportError(transport)

        server_config = MCPServerSettings.model_validate(
            {**(config or {}), "name": name, "transport": transport_type}
        )
        self.registry[name] = server_config
        logger.debug(f"{name}: Registered {transport_type} server configuration")
        return server_config

    def get_config(self, name: str) -> Optional[MCPServerSettings]:
        return self.registry.get(name)

    def remove_server(self, name: str) -> None:
        self.registry.pop(name, None)

    def list_servers(self) -> List[str]:
        return list(self.registry)

    def __contains__(self, name: object) -> bool:
        return name in self.registry
