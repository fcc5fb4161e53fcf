"""Google Gemini generateContent client."""

from typing import Optional, Sequence

import httpx

from sqlbridge_mcp.llm.base import BaseLlmClient
from sqlbridge_mcp.models.llm import LlmMessage, LlmRequestOptions

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"


class GeminiClient(BaseLlmClient):
    """Client for ``/v1beta/models/{model}:generateContent``."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout, transport)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return "gemini"

    async def chat(
        self, messages: Sequence[LlmMessage], options: LlmRequestOptions
    ) -> str:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        payload = {
            # Gemini calls the assistant role "model"
            "contents": [
                {
                    "role": "model" if m.role == "assistant" else "user",
                    "parts": [{"text": m.content}],
                }
                for m in messages
                if m.role != "system"
            ],
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        data = await self._post_json(
            f"/v1beta/models/{options.model}:generateContent",
            payload,
            headers={"x-goog-api-key": self.api_key},
        )

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            raise self._missing("candidates[0].content.parts")
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text:
            raise self._missing("text part")
        return text
