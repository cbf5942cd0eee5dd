"""
Mistral chat-completions client.
"""

from typing import Any, Dict, List, Optional, Protocol, Union

import aiohttp

from mistral_mcp.chat.types import ChatRequest, ChatResponse, EmbeddingResponse
from mistral_mcp.config import MistralSettings
from mistral_mcp.errors import MistralAPIError
from mistral_mcp.utils.logging import get_logger

logger = get_logger(__name__)


class ChatCompletion(Protocol):
    """Anything that turns a chat request into a chat response."""

    async def complete(self, request: ChatRequest) -> ChatResponse: ...


class MistralAPI(ChatCompletion, Protocol):
    """Chat plus the embeddings and models endpoints."""

    async def embed(
        self, inputs: Union[str, List[str]], model: str = ...
    ) -> EmbeddingResponse: ...

    async def list_models(self) -> List[Dict[str, Any]]: ...

    async def get_model(self, model_id: str) -> Dict[str, Any]: ...


class MistralChat:
    """Calls POST /v1/chat/completions on the Mistral API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.mistral.ai",
        default_model: str = "mistral-small-latest",
        timeout: float = 30,
    ):
        """
        Initialize the Mistral chat client.

        Args:
            api_key: Mistral API key.
            base_url: API base URL, without the /v1 suffix.
            default_model: Model used when a request does not name one.
            timeout: Total timeout of one HTTP request, in seconds.
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: MistralSettings) -> "MistralChat":
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            default_model=settings.default_model,
            timeout=settings.timeout,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, request: Union[ChatRequest, Dict[str, Any]]) -> Dict[str, Any]:
        payload = ChatRequest.from_value(request).to_payload()
        payload.setdefault("model", self.default_model)
        return payload

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as session:
            async with session.request(
                method,
                f"{self.base_url}/v1{path}",
                headers=self._headers(),
                json=payload,
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise MistralAPIError(response.status, error_text)

                return await response.json()

    async def complete(self, request: Union[ChatRequest, Dict[str, Any]]) -> ChatResponse:
        """
        Create a chat completion.

        Raises:
            MistralAPIError: If the API answers with a non-200 status.
        """
        payload = self.build_payload(request)
        logger.debug(
            "Sending chat completion",
            data={"model": payload["model"], "messages": len(payload["messages"])},
        )

        result = await self._request("POST", "/chat/completions", payload)
        return ChatResponse.model_validate(result)

    async def embed(
        self, inputs: Union[str, List[str]], model: str = "mistral-embed"
    ) -> EmbeddingResponse:
        """Embed one text or a batch of texts."""
        if isinstance(inputs, str):
            inputs = [inputs]
        logger.debug("Sending embeddings request", data={"model": model, "inputs": len(inputs)})

        result = await self._request("POST", "/embeddings", {"model": model, "input": inputs})
        return EmbeddingResponse.model_validate(result)

    async def list_models(self) -> List[Dict[str, Any]]:
        result = await self._request("GET", "/models")
        return result.get("data", [])

    async def get_model(self, model_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/models/{model_id}")
