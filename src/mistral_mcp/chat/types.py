"""
Chat-completion request and response records.

Unknown fields are kept, so a request or response survives a round trip
through these models even when the API grows new fields.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class FunctionCall(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    # JSON-encoded string from the API; some clients send an object instead
    arguments: Union[str, Dict[str, Any]] = ""


class ToolCall(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    type: str = "function"
    function: FunctionCall


class ChatMessage(BaseModel):
    """A single conversation message."""

    model_config = ConfigDict(extra="allow")

    role: str
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


class ChatRequest(BaseModel):
    """A chat-completion request. `model` may be left for the client to fill in."""

    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    messages: List[ChatMessage]
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    random_seed: Optional[int] = None
    response_format: Optional[Dict[str, Any]] = None
    safe_prompt: Optional[bool] = None

    @classmethod
    def from_value(cls, value: Union["ChatRequest", Dict[str, Any]]) -> "ChatRequest":
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for the API, without unset optional fields."""
        return self.model_dump(exclude_none=True)


class Choice(BaseModel):
    model_config = ConfigDict(extra="allow")

    index: int = 0
    message: ChatMessage
    finish_reason: Optional[str] = None


class Usage(BaseModel):
    model_config = ConfigDict(extra="allow")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    object: Optional[str] = None
    created: Optional[int] = None
    model: Optional[str] = None
    choices: List[Choice] = Field(default_factory=list)
    usage: Optional[Usage] = None

    @property
    def first_message(self) -> Optional[ChatMessage]:
        return self.choices[0].message if self.choices else None


class EmbeddingData(BaseModel):
    model_config = ConfigDict(extra="allow")

    index: int = 0
    object: Optional[str] = None
    embedding: List[float] = Field(default_factory=list)


class EmbeddingResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    object: Optional[str] = None
    model: Optional[str] = None
    data: List[EmbeddingData] = Field(default_factory=list)
    usage: Optional[Usage] = None
