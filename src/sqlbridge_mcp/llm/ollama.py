"""Ollama local model client."""

from typing import Optional, Sequence

import httpx

from sqlbridge_mcp.llm.base import BaseLlmClient
from sqlbridge_mcp.models.llm import LlmMessage, LlmRequestOptions

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"


class OllamaClient(BaseLlmClient):
    """Client for Ollama's non-streaming ``/api/chat`` endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout, transport)

    @property
    def name(self) -> str:
        return "ollama"

    async def chat(
        self, messages: Sequence[LlmMessage], options: LlmRequestOptions
    ) -> str:
        payload = {
            "model": options.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        data = await self._post_json("/api/chat", payload)

        try:
            content = data["message"]["content"]
        except (KeyError, TypeError):
            raise self._missing("message.content")
        return content
