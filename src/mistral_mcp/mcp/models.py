"""
Records exchanged between the MCP client manager and its callers.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator
from mcp.types import Tool


def empty_object_schema() -> Dict[str, Any]:
    return {"type": "object", "properties": {}}


class ToolDescriptor(BaseModel):
    """
    A tool advertised by an MCP server.

    Missing descriptions become "" and missing or empty input schemas become
    an empty object schema, so callers never have to null-check either.
    """

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=empty_object_schema)

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("input_schema", mode="before")
    @classmethod
    def _default_schema(cls, value: Any) -> Any:
        return value or empty_object_schema()

    @classmethod
    def from_mcp_tool(cls, tool: Tool) -> "ToolDescriptor":
        return cls(
            name=tool.name,
            description=tool.description,
            input_schema=tool.inputSchema,
        )


class ToolCallResult(BaseModel):
    """Outcome of a tool call. Failures are values, not exceptions."""

    success: bool
    content: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, content: str) -> "ToolCallResult":
        return cls(success=True, content=content)

    @classmethod
    def failed(cls, error: str) -> "ToolCallResult":
        return cls(success=False, content="", error=error)


class ServerInfo(BaseModel):
    """What the server reported during the initialize handshake."""

    name: Optional[str] = None
    version: Optional[str] = None
    protocol_version: Optional[str] = None
