"""
Namespacing of MCP tools for chat completions.

Every MCP tool is exposed to the model as a function named
mcp_<server>_<tool>. This module builds those definitions and maps a
model-issued name back to its (server, tool) pair.
"""

from typing import Any, Dict, List, Mapping, Tuple

from pydantic import BaseModel

from mistral_mcp.errors import InvalidToolNameFormatError
from mistral_mcp.mcp.models import ToolDescriptor, empty_object_schema

PREFIX = "mcp"
SEP = "_"


class NamespacedTool(BaseModel):
    """
    A tool that is namespaced by server name.
    """

    tool: ToolDescriptor
    server_name: str
    namespaced_tool_name: str

    def to_chat_tool(self) -> Dict[str, Any]:
        """Render as a chat-completion function tool definition."""
        description = (
            self.tool.description
            or f"Tool {self.tool.name} from MCP server {self.server_name}"
        )
        return {
            "type": "function",
            "function": {
                "name": self.namespaced_tool_name,
                "description": description,
                "parameters": self.tool.input_schema or empty_object_schema(),
            },
        }


def namespaced_tool_name(server_name: str, tool_name: str) -> str:
    return f"{PREFIX}{SEP}{server_name}{SEP}{tool_name}"


def is_mcp_tool(name: str) -> bool:
    """True for names produced by namespaced_tool_name()."""
    return name.startswith(PREFIX + SEP)


def parse_tool_name(name: str) -> Tuple[str, str]:
    """
    Split mcp_<server>_<tool> into (server, tool).

    The name is split on the first two separators only, so the tool part
    keeps any further underscores. A server name that itself contains an
    underscore is therefore misattributed: mcp_my_server_echo parses as
    server "my", tool "server_echo". Name servers without underscores.

    Raises:
        InvalidToolNameFormatError: If either part is missing.
    """
    parts = name.split(SEP, 2)
    if len(parts) < 3 or parts[0] != PREFIX or not parts[1] or not parts[2]:
        raise InvalidToolNameFormatError(name)
    return parts[1], parts[2]


def namespace_tools(
    all_tools: Mapping[str, List[ToolDescriptor]],
) -> List[NamespacedTool]:
    """Flatten a server -> tools mapping into namespaced tools, preserving order."""
    return [
        NamespacedTool(
            tool=tool,
            server_name=server_name,
            namespaced_tool_name=namespaced_tool_name(server_name, tool.name),
        )
        for server_name, tools in all_tools.items()
        for tool in tools
    ]


def to_chat_tools(all_tools: Mapping[str, List[ToolDescriptor]]) -> List[Dict[str, Any]]:
    return [namespaced.to_chat_tool() for namespaced in namespace_tools(all_tools)]
