"""
Chat completions with MCP tools.

ToolAugmentedChat offers every tool of the connected MCP servers to the
model, runs the MCP tool calls the model asks for, and sends the results
back in a single follow-up completion. The follow-up forces
tool_choice="none", so one create() makes at most two completion calls.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from mistral_mcp.chat.client import ChatCompletion
from mistral_mcp.chat.types import ChatMessage, ChatRequest, ChatResponse, ToolCall
from mistral_mcp.config import MCPServerSettings
from mistral_mcp.errors import (
    ConnectionFailedError,
    InvalidToolNameFormatError,
    ManagerNotStartedError,
    UnknownServerError,
)
from mistral_mcp.mcp.aggregator import is_mcp_tool, parse_tool_name, to_chat_tools
from mistral_mcp.mcp.client_manager import McpClientManager
from mistral_mcp.mcp.models import ToolCallResult, ToolDescriptor
from mistral_mcp.utils.logging import get_logger, with_data_support

TOOL_EXECUTION_FAILED = "Tool execution failed"


class ToolAugmentedChat:
    """
    Wraps a chat-completion client with MCP tool support.

    The manager is shared, not owned: several wrappers may use the same
    manager and its live connections.
    """

    def __init__(
        self,
        chat: ChatCompletion,
        manager: McpClientManager,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            chat: The base chat capability.
            manager: Source of MCP tools and executor of tool calls.
            logger: Receives tool execution events.
        """
        self._chat = chat
        self._manager = manager
        self.logger = with_data_support(logger or get_logger(__name__))

    @property
    def manager(self) -> McpClientManager:
        return self._manager

    async def create(self, request: Union[ChatRequest, Dict[str, Any]]) -> ChatResponse:
        """
        Create a chat completion, running any MCP tool calls the model makes.

        Args:
            request: A ChatRequest or its dict form.

        Returns:
            The follow-up response when MCP tools were called, otherwise the
            first response unchanged.
        """
        request = await self._add_mcp_tools(ChatRequest.from_value(request))

        response = await self._chat.complete(request)

        return await self._handle_tool_calls(response, request)

    async def _add_mcp_tools(self, request: ChatRequest) -> ChatRequest:
        mcp_tools = to_chat_tools(await self._manager.list_all_tools())
        tools = [*(request.tools or []), *mcp_tools]

        if not tools:
            return request

        update: Dict[str, Any] = {"tools": tools}
        if request.tool_choice is None:
            update["tool_choice"] = "auto"
        return request.model_copy(update=update)

    async def _handle_tool_calls(
        self, response: ChatResponse, original_request: ChatRequest
    ) -> ChatResponse:
        message = response.first_message
        if message is None or not message.tool_calls:
            return response

        tool_messages: List[ChatMessage] = []
        for tool_call in message.tool_calls:
            # Anything without our prefix belongs to the caller
            if not is_mcp_tool(tool_call.function.name):
                continue

            result = await self._execute_mcp_tool(tool_call)
            if result.success:
                content = result.content
            else:
                content = result.error or TOOL_EXECUTION_FAILED

            tool_messages.append(
                ChatMessage(
                    role="tool",
                    tool_call_id=tool_call.id,
                    name=tool_call.function.name,
                    content=content,
                )
            )

        if not tool_messages:
            return response

        follow_up = original_request.model_copy(
            update={
                "messages": [*original_request.messages, message, *tool_messages],
                # No recursive tool calls
                "tool_choice": "none",
            }
        )
        self.logger.debug(
            "Sending follow-up with tool results", data={"tool_results": len(tool_messages)}
        )
        return await self._chat.complete(follow_up)

    async def _execute_mcp_tool(self, tool_call: ToolCall) -> ToolCallResult:
        try:
            server_name, tool_name = parse_tool_name(tool_call.function.name)
        except InvalidToolNameFormatError as exc:
            self.logger.warning(str(exc))
            return ToolCallResult.failed(str(exc))

        arguments = tool_call.function.arguments
        self.logger.info(
            "Executing MCP tool",
            data={"server": server_name, "tool": tool_name, "arguments": arguments},
        )

        if not self._manager.is_connected(server_name):
            try:
                await self._manager.connect(server_name)
            except ConnectionFailedError as exc:
                return ToolCallResult.failed(str(exc))
            except (UnknownServerError, ManagerNotStartedError) as exc:
                return ToolCallResult.failed(
                    f"Failed to connect to MCP server '{server_name}': {exc}"
                )

        return await self._manager.call_tool(server_name, tool_name, arguments)

    async def get_available_tools(self) -> Dict[str, List[ToolDescriptor]]:
        """Tools of every connected server, keyed by server name."""
        return await self._manager.list_all_tools()

    def add_server(
        self, name: str, transport: str, config: Optional[Mapping[str, Any]] = None
    ) -> MCPServerSettings:
        return self._manager.add_server(name, transport, config)

    async def connect_server(self, server_name: str) -> None:
        await self._manager.connect(server_name)
