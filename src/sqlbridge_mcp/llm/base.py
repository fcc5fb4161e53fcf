"""Base class for chat-completion style LLM clients."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx

from sqlbridge_mcp.errors import (
    LlmResponseError,
    LlmTransportError,
    LlmUpstreamError,
)
from sqlbridge_mcp.models.llm import LlmMessage, LlmRequestOptions

logger = logging.getLogger(__name__)


class BaseLlmClient(ABC):
    """Stateless HTTP client for one LLM provider.

    A new ``httpx.AsyncClient`` is opened for every call, so instances can be
    shared between concurrent requests. ``transport`` lets tests substitute
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs and errors."""
        ...

    async def complete(self, prompt: str, options: LlmRequestOptions) -> str:
        """Single-turn completion: ``chat`` with one user message."""
        return await self.chat([LlmMessage(role="user", content=prompt)], options)

    @abstractmethod
    async def chat(
        self, messages: Sequence[LlmMessage], options: LlmRequestOptions
    ) -> str:
        """
        Send a conversation and return the assistant's reply text.

        Raises:
            LlmUpstreamError: If the provider answers with a non-success status
            LlmTransportError: If the provider cannot be reached or times out
            LlmResponseError: If the reply lacks the expected fields
        """
        ...

    async def _post_json(
        self,
        path: str,
        payload: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{self.name} request to {url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    url, json=payload, headers=headers, params=params
                )
        except httpx.HTTPError as e:
            # Timeouts often carry an empty message
            raise LlmTransportError(self.name, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise LlmUpstreamError(self.name, response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise LlmResponseError(f"{self.name} returned invalid JSON: {e}") from e

    def _missing(self, what: str) -> LlmResponseError:
        return LlmResponseError(f"{self.name} response has no {what}")
