"""OpenAI and Azure OpenAI chat completion clients."""

from typing import Any, Optional, Sequence

import httpx

from sqlbridge_mcp.llm.base import BaseLlmClient
from sqlbridge_mcp.models.llm import LlmMessage, LlmRequestOptions

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com"
DEFAULT_AZURE_API_VERSION = "2024-02-15-preview"


class OpenAiClient(BaseLlmClient):
    """Client for the ``/v1/chat/completions`` endpoint."""

    completions_path = "/v1/chat/completions"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout, transport)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return "openai"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _payload(
        self, messages: Sequence[LlmMessage], options: LlmRequestOptions
    ) -> dict[str, Any]:
        return {
            "model": options.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }

    async def chat(
        self, messages: Sequence[LlmMessage], options: LlmRequestOptions
    ) -> str:
        data = await self._post_json(
            self.completions_path,
            self._payload(messages, options),
            headers=self._headers(),
        )
        return self._extract_content(data)

    def _extract_content(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise self._missing("choices[0].message.content")
        if not isinstance(content, str):
            raise self._missing("text content")
        return content


class AzureOpenAiClient(OpenAiClient):
    """Client for an Azure OpenAI deployment.

    The deployment in the URL selects the model; ``options.model`` is still
    sent in the body but Azure ignores it.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        deployment: str,
        api_version: str = DEFAULT_AZURE_API_VERSION,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, endpoint, timeout, transport)
        self.deployment = deployment
        self.api_version = api_version

    @property
    def name(self) -> str:
        return "azure"

    def _headers(self) -> dict[str, str]:
        return {"api-key": self.api_key}

    async def chat(
        self, messages: Sequence[LlmMessage], options: LlmRequestOptions
    ) -> str:
        data = await self._post_json(
            f"/openai/deployments/{self.deployment}/chat/completions",
            self._payload(messages, options),
            headers=self._headers(),
            params={"api-version": self.api_version},
        )
        return self._extract_content(data)
