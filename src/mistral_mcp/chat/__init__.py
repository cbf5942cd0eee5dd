"""
Chat completions, with and without MCP tools.
"""

from .types import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    Choice,
    EmbeddingData,
    EmbeddingResponse,
    FunctionCall,
    ToolCall,
    Usage,
)
from .client import ChatCompletion, MistralAPI, MistralChat
from .tool_chat import ToolAugmentedChat

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "Choice",
    "EmbeddingData",
    "EmbeddingResponse",
    "FunctionCall",
    "ToolCall",
    "Usage",
    "ChatCompletion",
    "MistralAPI",
    "MistralChat",
    "ToolAugmentedChat",
]
