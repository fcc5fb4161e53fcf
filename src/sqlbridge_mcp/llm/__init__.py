"""LLM clients keyed by provider, configured from the environment."""

import logging
import os
from typing import Callable, Mapping, Optional, Union

import httpx

from sqlbridge_mcp.errors import MisconfigurationError
from sqlbridge_mcp.llm.anthropic import ClaudeClient
from sqlbridge_mcp.llm.base import BaseLlmClient
from sqlbridge_mcp.llm.gemini import GeminiClient
from sqlbridge_mcp.llm.ollama import DEFAULT_OLLAMA_BASE_URL, OllamaClient
from sqlbridge_mcp.llm.openai import (
    DEFAULT_AZURE_API_VERSION,
    DEFAULT_OPENAI_BASE_URL,
    AzureOpenAiClient,
    OpenAiClient,
)
from sqlbridge_mcp.models.llm import DEFAULT_MODELS, LlmProvider

__all__ = [
    "BaseLlmClient",
    "OpenAiClient",
    "AzureOpenAiClient",
    "OllamaClient",
    "ClaudeClient",
    "GeminiClient",
    "LlmClientFactory",
]

logger = logging.getLogger(__name__)


class LlmClientFactory:
    """Resolves a provider to a configured client.

    Settings are looked up when a client is resolved, never at construction,
    so a missing key only fails the request that needs it.

    Environment keys:
        LLM_DEFAULT_PROVIDER, LLM_MODEL, LLM_TIMEOUT_SECONDS,
        LLM_OPENAI_API_KEY, LLM_OPENAI_BASE_URL,
        LLM_AZURE_ENDPOINT, LLM_AZURE_API_KEY, LLM_AZURE_DEPLOYMENT,
        LLM_AZURE_API_VERSION, LLM_OLLAMA_BASE_URL,
        LLM_CLAUDE_API_KEY, LLM_GEMINI_API_KEY
    """

    def __init__(
        self,
        settings_source: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = os.environ if settings_source is None else settings_source
        self._transport = transport
        self._builders: dict[LlmProvider, Callable[[], BaseLlmClient]] = {
            LlmProvider.OPENAI: self._build_openai,
            LlmProvider.AZURE: self._build_azure,
            LlmProvider.OLLAMA: self._build_ollama,
            LlmProvider.CLAUDE: self._build_claude,
            LlmProvider.GEMINI: self._build_gemini,
        }

    @property
    def supported_providers(self) -> list[LlmProvider]:
        return list(self._builders)

    def _get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._settings.get(key)
        if value is None or not value.strip():
            return default
        return value.strip()

    def _require(self, key: str, provider: LlmProvider) -> str:
        value = self._get(key)
        if value is None:
            raise MisconfigurationError(key, provider.value)
        return value

    @property
    def timeout(self) -> float:
        return float(self._get("LLM_TIMEOUT_SECONDS", "60"))

    def default_provider(self) -> LlmProvider:
        return LlmProvider.parse(self._get("LLM_DEFAULT_PROVIDER", "openai"))

    def default_model(self, provider: Union[LlmProvider, str]) -> str:
        """Model used when the caller names none."""
        provider = LlmProvider.parse(provider)
        configured = self._get("LLM_MODEL")
        if configured:
            return configured
        if provider is LlmProvider.AZURE and self._get("LLM_AZURE_DEPLOYMENT"):
            return self._get("LLM_AZURE_DEPLOYMENT")
        return DEFAULT_MODELS[provider]

    def create(self, provider: Union[LlmProvider, str, None] = None) -> BaseLlmClient:
        """
        Create a client for a provider (the configured default when None).

        Raises:
            UnsupportedCapabilityError: If the provider name is unknown
            MisconfigurationError: If a required setting is missing
        """
        resolved = (
            self.default_provider() if provider is None else LlmProvider.parse(provider)
        )
        client = self._builders[resolved]()
        logger.debug(f"Resolved LLM client for {resolved.value}")
        return client

    def _build_openai(self) -> BaseLlmClient:
        return OpenAiClient(
            api_key=self._require("LLM_OPENAI_API_KEY", LlmProvider.OPENAI),
            base_url=self._get("LLM_OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL),
            timeout=self.timeout,
            transport=self._transport,
        )

    def _build_azure(self) -> BaseLlmClient:
        endpoint = self._require("LLM_AZURE_ENDPOINT", LlmProvider.AZURE)
        api_key = self._require("LLM_AZURE_API_KEY", LlmProvider.AZURE)
        deployment = self._get("LLM_AZURE_DEPLOYMENT") or self._get("LLM_MODEL")
        if deployment is None:
            raise MisconfigurationError("LLM_AZURE_DEPLOYMENT", LlmProvider.AZURE.value)
        return AzureOpenAiClient(
            endpoint=endpoint,
            api_key=api_key,
            deployment=deployment,
            api_version=self._get("LLM_AZURE_API_VERSION", DEFAULT_AZURE_API_VERSION),
            timeout=self.timeout,
            transport=self._transport,
        )

    def _build_ollama(self) -> BaseLlmClient:
        return OllamaClient(
            base_url=self._get("LLM_OLLAMA_BASE_URL", DEFAULT_OLLAMA_BASE_URL),
            timeout=self.timeout,
            transport=self._transport,
        )

    def _build_claude(self) -> BaseLlmClient:
        return ClaudeClient(
            api_key=self._require("LLM_CLAUDE_API_KEY", LlmProvider.CLAUDE),
            timeout=self.timeout,
            transport=self._transport,
        )

    def _build_gemini(self) -> BaseLlmClient:
        return GeminiClient(
            api_key=self._require("LLM_GEMINI_API_KEY", LlmProvider.GEMINI),
            timeout=self.timeout,
            transport=self._transport,
        )
