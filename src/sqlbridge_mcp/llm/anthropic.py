"""Anthropic Claude messages client."""

from typing import Optional, Sequence

import httpx

from sqlbridge_mcp.llm.base import BaseLlmClient
from sqlbridge_mcp.models.llm import LlmMessage, LlmRequestOptions

DEFAULT_CLAUDE_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"


class ClaudeClient(BaseLlmClient):
    """Client for ``/v1/messages``.

    System turns are folded into the top-level ``system`` field since the
    messages list only takes user and assistant roles.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_CLAUDE_BASE_URL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout, transport)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return "claude"

    async def chat(
        self, messages: Sequence[LlmMessage], options: LlmRequestOptions
    ) -> str:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        payload = {
            "model": options.model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in messages
                if m.role != "system"
            ],
        }
        if system:
            payload["system"] = system

        data = await self._post_json(
            "/v1/messages",
            payload,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

        try:
            blocks = data["content"]
        except (KeyError, TypeError):
            raise self._missing("content")
        text = "".join(
            b.get("text", "")
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "text"
        )
        if not text:
            raise self._missing("text block")
        return text
