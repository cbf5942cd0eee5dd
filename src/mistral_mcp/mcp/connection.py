"""
Connections to individual MCP servers.

A connection is a long-lived handle: open() starts a lifecycle task that owns
the transport and the ClientSession, and close() asks that task to finish.
StdioServerConnection and HttpServerConnection differ only in the transport
they open; both satisfy the ToolServerConnection protocol.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import (
    Any,
    AsyncContextManager,
    AsyncGenerator,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Tuple,
)

import anyio
from anyio import CancelScope, Event
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, get_default_environment
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import CallToolResult

from mistral_mcp.config import MCPServerSettings
from mistral_mcp.errors import ConnectionFailedError
from mistral_mcp.mcp.client_session import MistralMCPClientSession
from mistral_mcp.mcp.models import ServerInfo, ToolDescriptor
from mistral_mcp.utils.logging import get_logger
from mistral_mcp.utils.stdio import stdio_client_with_rich_stderr

logger = get_logger(__name__)

TransportStreams = Tuple[MemoryObjectReceiveStream, MemoryObjectSendStream]

ClientSessionFactory = Callable[
    [MemoryObjectReceiveStream, MemoryObjectSendStream, Optional[timedelta]],
    ClientSession,
]


class ToolServerConnection(Protocol):
    """A connected MCP server, whatever the transport."""

    server_name: str
    transport: str

    @property
    def server_info(self) -> Optional[ServerInfo]: ...

    async def open(self, task_group: TaskGroup) -> ServerInfo: ...

    async def list_tools(self) -> List[ToolDescriptor]: ...

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> CallToolResult: ...

    async def close(self) -> None: ...


def root_cause(exc: BaseException) -> BaseException:
    """Unwrap task-group exception groups down to the first leaf exception."""
    while isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        exc = exc.exceptions[0]
    return exc


class SessionRunner:
    """
    Runs one ClientSession inside a lifecycle task.

    Includes:
    - the transport streams (opened by `transport_context_factory`)
    - the ClientSession and the result of its initialize handshake
    - events signalling "initialized", "shutdown requested" and "closed"
    """

    def __init__(
        self,
        server_name: str,
        timeout_seconds: float,
        transport_context_factory: Callable[[], AsyncContextManager[TransportStreams]],
        client_session_factory: ClientSessionFactory = MistralMCPClientSession,
    ):
        self.server_name = server_name
        self.timeout_seconds = timeout_seconds
        self.session: Optional[ClientSession] = None
        self.server_info: Optional[ServerInfo] = None
        self.error: Optional[BaseException] = None
        self._transport_context_factory = transport_context_factory
        self._client_session_factory = client_session_factory
        self._cancel_scope: Optional[CancelScope] = None
        self._started = False

        # Session is up and initialized, or the task gave up trying
        self._initialized_event = Event()
        # Somebody asked us to shut down
        self._shutdown_event = Event()
        # Lifecycle task has exited and released the transport
        self._closed_event = Event()

    async def start(self, task_group: TaskGroup) -> ServerInfo:
        """
        Launch the lifecycle task and wait for the initialize handshake.

        Raises:
            ConnectionFailedError: If the transport or handshake fails, or the
                handshake does not complete within timeout_seconds.
        """
        self._started = True
        task_group.start_soon(self._lifecycle, name=f"mcp-server-{self.server_name}")

        try:
            with anyio.fail_after(self.timeout_seconds):
                await self._initialized_event.wait()
        except TimeoutError as exc:
            await self.stop()
            raise ConnectionFailedError(self.server_name, exc) from exc

        if self.session is None:
            await self.stop()
            raise ConnectionFailedError(self.server_name, self.error)

        return self.server_info

    async def _lifecycle(self) -> None:
        read_timeout = (
            timedelta(seconds=self.timeout_seconds) if self.timeout_seconds else None
        )
        with CancelScope() as scope:
            self._cancel_scope = scope
            try:
                async with self._transport_context_factory() as (read_stream, write_stream):
                    session = self._client_session_factory(
                        read_stream, write_stream, read_timeout
                    )
                    async with session:
                        result = await session.initialize()
                        self.server_info = ServerInfo(
                            name=result.serverInfo.name,
                            version=result.serverInfo.version,
                            protocol_version=str(result.protocolVersion),
                        )
                        self.session = session
                        self._initialized_event.set()

                        await self._shutdown_event.wait()
            except Exception as exc:
                self.error = root_cause(exc)
                logger.error(
                    f"{self.server_name}: Lifecycle task encountered an error: {self.error}",
                    exc_info=True,
                )
            finally:
                self.session = None
                # Never leave start() waiting on a task that is gone
                self._initialized_event.set()
                self._closed_event.set()

    async def stop(self) -> None:
        """Ask the lifecycle task to exit and wait for it, cancelling if it hangs."""
        if not self._started:
            return

        self._shutdown_event.set()
        with anyio.move_on_after(self.timeout_seconds):
            await self._closed_event.wait()

        if not self._closed_event.is_set() and self._cancel_scope is not None:
            logger.warning(f"{self.server_name}: Session did not close in time, cancelling.")
            self._cancel_scope.cancel()
            await self._closed_event.wait()

    def require_session(self) -> ClientSession:
        if self.session is None:
            raise RuntimeError(f"{self.server_name}: Session is not active")
        return self.session

    async def list_tools(self) -> List[ToolDescriptor]:
        session = self.require_session()
        result = await session.list_tools()
        tools = list(result.tools or [])
        while result.nextCursor:
            result = await session.list_tools(cursor=result.nextCursor)
            tools.extend(result.tools or [])
        return [ToolDescriptor.from_mcp_tool(tool) for tool in tools]

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> CallToolResult:
        session = self.require_session()
        return await session.call_tool(name=name, arguments=arguments or {})


class StdioServerConnection:
    """An MCP server spawned as a local process, spoken to over stdin/stdout."""

    transport = "stdio"

    def __init__(
        self,
        server_name: str,
        server_config: MCPServerSettings,
        client_session_factory: ClientSessionFactory = MistralMCPClientSession,
    ):
        if not server_config.command:
            raise ValueError(f"Command is required for stdio transport: {server_name}")

        self.server_name = server_name
        self.server_config = server_config
        self._runner = SessionRunner(
            server_name,
            server_config.timeout_seconds,
            self._transport_context,
            client_session_factory,
        )

    @asynccontextmanager
    async def _transport_context(self) -> AsyncGenerator[TransportStreams, None]:
        server_params = StdioServerParameters(
            command=self.server_config.command,
            args=self.server_config.args,
            env={**get_default_environment(), **(self.server_config.env or {})},
            cwd=self.server_config.working_dir,
        )
        async with stdio_client_with_rich_stderr(server_params) as streams:
            logger.info(f"{self.server_name}: Started server process using stdio transport.")
            yield streams

    @property
    def server_info(self) -> Optional[ServerInfo]:
        return self._runner.server_info

    async def open(self, task_group: TaskGroup) -> ServerInfo:
        return await self._runner.start(task_group)

    async def list_tools(self) -> List[ToolDescriptor]:
        return await self._runner.list_tools()

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> CallToolResult:
        return await self._runner.call_tool(name, arguments)

    async def close(self) -> None:
        await self._runner.stop()


class HttpServerConnection:
    """An MCP server reached over the streamable HTTP transport."""

    transport = "http"

    def __init__(
        self,
        server_name: str,
        server_config: MCPServerSettings,
        client_session_factory: ClientSessionFactory = MistralMCPClientSession,
    ):
        if not server_config.url:
            raise ValueError(f"URL is required for http transport: {server_name}")

        self.server_name = server_name
        self.server_config = server_config
        self._runner = SessionRunner(
            server_name,
            server_config.timeout_seconds,
            self._transport_context,
            client_session_factory,
        )

    @asynccontextmanager
    async def _transport_context(self) -> AsyncGenerator[TransportStreams, None]:
        async with streamablehttp_client(
            self.server_config.url, headers=self.server_config.headers
        ) as (read_stream, write_stream, _get_session_id):
            logger.info(f"{self.server_name}: Opened session using http transport.")
            yield read_stream, write_stream

    @property
    def server_info(self) -> Optional[ServerInfo]:
        return self._runner.server_info

    async def open(self, task_group: TaskGroup) -> ServerInfo:
        return await self._runner.start(task_group)

    async def list_tools(self) -> List[ToolDescriptor]:
        return await self._runner.list_tools()

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> CallToolResult:
        return await self._runner.call_tool(name, arguments)

    async def close(self) -> None:
        await self._runner.stop()


ConnectionFactory = Callable[[str, MCPServerSettings], ToolServerConnection]

CONNECTION_TYPES: Dict[str, ConnectionFactory] = {
    "stdio": StdioServerConnection,
    "http": HttpServerConnection,
}


def create_connection(server_name: str, server_config: MCPServerSettings) -> ToolServerConnection:
    """Build the connection type matching the configured transport."""
    connection_type = CONNECTION_TYPES.get(server_config.transport)
    if connection_type is None:
        raise ValueError(f"Unsupported transport: {server_config.transport}")
    return connection_type(server_name, server_config)
