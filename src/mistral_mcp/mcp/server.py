"""
An MCP server that publishes Mistral AI as tools and resources.
"""

import argparse
import asyncio
import json
from typing import Any, Dict, Iterable, List, Optional

import aiohttp
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.lowlevel.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from mistral_mcp import __version__
from mistral_mcp.chat.client import MistralAPI, MistralChat
from mistral_mcp.chat.tool_chat import ToolAugmentedChat
from mistral_mcp.chat.types import ChatMessage, ChatRequest
from mistral_mcp.config import MistralSettings, load_config
from mistral_mcp.errors import MistralAPIError
from mistral_mcp.mcp.aggregator import namespace_tools
from mistral_mcp.mcp.client_manager import McpClientManager
from mistral_mcp.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

# Failures of the Mistral API itself, reported in the tool result
API_ERRORS = (MistralAPIError, aiohttp.ClientError, asyncio.TimeoutError)

CHAT_TOOL = Tool(
    name="mistral_chat",
    description="Send a message to a Mistral AI model and return its reply.",
    inputSchema={
        "type": "object",
        "properties": {
            "message": {"type": "string", "description": "The user message."},
            "model": {"type": "string", "description": "Model to use."},
            "temperature": {"type": "number", "minimum": 0, "maximum": 1.5},
            "max_tokens": {"type": "integer", "minimum": 1},
            "system_prompt": {"type": "string", "description": "Optional system message."},
        },
        "required": ["message"],
    },
)

EMBED_TOOL = Tool(
    name="mistral_embed",
    description="Generate an embedding vector for a text.",
    inputSchema={
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "The text to embed."},
            "model": {"type": "string", "default": "mistral-embed"},
        },
        "required": ["text"],
    },
)

LIST_MODELS_TOOL = Tool(
    name="mistral_list_models",
    description="List the models available to this API key.",
    inputSchema={"type": "object", "properties": {}},
)

GET_MODEL_TOOL = Tool(
    name="mistral_get_model",
    description="Get the details of one model.",
    inputSchema={
        "type": "object",
        "properties": {"model_id": {"type": "string"}},
        "required": ["model_id"],
    },
)

LIST_MCP_TOOLS_TOOL = Tool(
    name="mistral_list_mcp_tools",
    description="List the MCP tools that mistral_chat can call, as JSON.",
    inputSchema={"type": "object", "properties": {}},
)

MODELS_INFO_URI = "mistral://models/info"
CLIENT_CONFIG_URI = "mistral://config/client"

RESOURCES = [
    Resource(
        uri=MODELS_INFO_URI,
        name="mistral_models_info",
        description="Information about available Mistral AI models and their capabilities",
        mimeType="application/json",
    ),
    Resource(
        uri=CLIENT_CONFIG_URI,
        name="mistral_client_config",
        description="Current configuration of the Mistral client",
        mimeType="application/json",
    ),
]

MODELS_INFO = {
    "models": [
        {
            "id": "mistral-small-latest",
            "description": "Balanced model for general-purpose tasks",
            "capabilities": ["text-generation", "conversation", "reasoning", "function-calling"],
        },
        {
            "id": "mistral-medium-latest",
            "description": "Advanced model for complex reasoning tasks",
            "capabilities": [
                "text-generation",
                "conversation",
                "reasoning",
                "analysis",
                "function-calling",
            ],
        },
        {
            "id": "mistral-large-latest",
            "description": "Most capable model for demanding tasks",
            "capabilities": [
                "text-generation",
                "conversation",
                "reasoning",
                "analysis",
                "code-generation",
                "function-calling",
            ],
        },
        {
            "id": "mistral-embed",
            "description": "Specialized model for generating text embeddings",
            "capabilities": ["embeddings", "similarity-search"],
        },
    ]
}


class MistralMCPServer(Server):
    """
    An MCP server exposing Mistral chat, embeddings and models.

    With a manager, mistral_chat runs through ToolAugmentedChat and can use
    the tools of the manager's connected servers.
    """

    def __init__(
        self,
        chat: MistralAPI,
        manager: Optional[McpClientManager] = None,
        name: str = "mistral-mcp",
        settings: Optional[MistralSettings] = None,
    ):
        super().__init__(name)
        self.manager = manager
        self.base_chat = chat
        self.tool_chat = ToolAugmentedChat(chat, manager) if manager else None
        self.settings = settings or MistralSettings()

        # Register handlers
        self.list_tools()(self._list_tools)
        self.call_tool()(self._call_tool)
        self.list_resources()(self._list_resources)
        self.read_resource()(self._read_resource)

    async def _list_tools(self) -> List[Tool]:
        return [CHAT_TOOL, EMBED_TOOL, LIST_MODELS_TOOL, GET_MODEL_TOOL, LIST_MCP_TOOLS_TOOL]

    async def _call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        arguments = arguments or {}
        if name == CHAT_TOOL.name:
            text = await self._chat(arguments)
        elif name == EMBED_TOOL.name:
            text = await self._embed(arguments)
        elif name == LIST_MODELS_TOOL.name:
            text = await self._list_models()
        elif name == GET_MODEL_TOOL.name:
            text = await self._get_model(arguments)
        elif name == LIST_MCP_TOOLS_TOOL.name:
            text = await self._list_mcp_tools()
        else:
            raise ValueError(f"Unknown tool: {name}")
        return [TextContent(type="text", text=text)]

    async def _chat(self, arguments: Dict[str, Any]) -> str:
        message = arguments.get("message")
        if not message:
            raise ValueError("'message' is required")

        messages = []
        if arguments.get("system_prompt"):
            messages.append(ChatMessage(role="system", content=arguments["system_prompt"]))
        messages.append(ChatMessage(role="user", content=message))

        request = ChatRequest(
            model=arguments.get("model"),
            messages=messages,
            temperature=arguments.get("temperature"),
            max_tokens=arguments.get("max_tokens"),
        )

        if self.tool_chat is not None:
            response = await self.tool_chat.create(request)
        else:
            response = await self.base_chat.complete(request)

        reply = response.first_message
        if reply is None or reply.content is None:
            return ""
        if isinstance(reply.content, str):
            return reply.content
        return "".join(part.get("text", "") for part in reply.content)

    async def _embed(self, arguments: Dict[str, Any]) -> str:
        text = arguments.get("text")
        if not text:
            raise ValueError("'text' is required")
        model = arguments.get("model") or "mistral-embed"

        logger.info("Mistral embedding requested", data={"model": model, "text_length": len(text)})
        try:
            response = await self.base_chat.embed(text, model=model)
        except API_ERRORS as e:
            logger.error("Mistral embedding failed", data={"model": model, "error": str(e)})
            return json.dumps(
                {"embeddings": [], "model": model, "error": f"Failed to generate embeddings: {e}"}
            )

        return json.dumps(
            {
                "embeddings": response.data[0].embedding if response.data else [],
                "model": response.model or model,
                "usage": response.usage.model_dump() if response.usage else None,
            }
        )

    async def _list_models(self) -> str:
        try:
            models = await self.base_chat.list_models()
        except API_ERRORS as e:
            logger.error("Mistral models list failed", data={"error": str(e)})
            return json.dumps({"models": [], "error": f"Failed to list models: {e}"})
        return json.dumps({"models": models}, indent=2)

    async def _get_model(self, arguments: Dict[str, Any]) -> str:
        model_id = arguments.get("model_id")
        if not model_id:
            raise ValueError("'model_id' is required")

        try:
            model = await self.base_chat.get_model(model_id)
        except API_ERRORS as e:
            logger.error(
                "Mistral model details failed", data={"model_id": model_id, "error": str(e)}
            )
            return json.dumps({"model": None, "error": f"Failed to get model details: {e}"})
        return json.dumps({"model": model}, indent=2)

    async def _list_resources(self) -> List[Resource]:
        return list(RESOURCES)

    async def _read_resource(self, uri: AnyUrl) -> Iterable[ReadResourceContents]:
        uri = str(uri)
        if uri == MODELS_INFO_URI:
            content = MODELS_INFO
        elif uri == CLIENT_CONFIG_URI:
            content = self._client_config()
        else:
            raise ValueError(f"Unknown resource: {uri}")
        return [
            ReadResourceContents(content=json.dumps(content, indent=2), mime_type="application/json")
        ]

    def _client_config(self) -> Dict[str, Any]:
        """The client settings, with the API key redacted."""
        return {
            "base_url": self.settings.base_url,
            "default_model": self.settings.default_model,
            "timeout": self.settings.timeout,
            "api_key": "***" if self.settings.api_key else None,
            "version": __version__,
        }

    async def _list_mcp_tools(self) -> str:
        if self.manager is None:
            return "[]"
        tools = namespace_tools(await self.manager.list_all_tools())
        return json.dumps(
            [
                {
                    "name": namespaced.namespaced_tool_name,
                    "server": namespaced.server_name,
                    "description": namespaced.tool.description,
                }
                for namespaced in tools
            ],
            indent=2,
        )

    async def run_stdio_async(self) -> None:
        """Run the server using stdio transport."""
        async with stdio_server() as (read_stream, write_stream):
            await self.run(
                read_stream=read_stream,
                write_stream=write_stream,
                initialization_options=self.create_initialization_options(),
            )


async def serve(config_path: Optional[str] = None) -> None:
    """Load settings, connect the configured MCP servers and serve over stdio."""
    settings = load_config(config_path)
    configure_logging(settings.logging.level, settings.logging.file_path)

    chat = MistralChat.from_settings(settings.mistral)

    async with McpClientManager.from_settings(settings) as manager:
        for server_name in manager.registry.list_servers():
            try:
                await manager.connect(server_name)
            except Exception as e:
                logger.error(f"{server_name}: Skipping server: {e}")

        server = MistralMCPServer(chat, manager, settings=settings.mistral)
        await server.run_stdio_async()


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve Mistral AI over MCP (stdio).")
    parser.add_argument("--config", help="Path to mistral_mcp.config.yaml")
    args = parser.parse_args()

    asyncio.run(serve(args.config))


if __name__ == "__main__":
    main()
