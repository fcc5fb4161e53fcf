"""LLM conversation and provider models."""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from sqlbridge_mcp.errors import UnsupportedCapabilityError


class LlmProvider(str, Enum):
    """Closed set of LLM providers with a registered client."""

    OPENAI = "openai"
    AZURE = "azure"
    OLLAMA = "ollama"
    CLAUDE = "claude"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: Union["LlmProvider", str]) -> "LlmProvider":
        """Parse a provider name case-insensitively (``OpenAI`` -> ``openai``)."""
        if isinstance(value, LlmProvider):
            return value

        normalized = str(value).strip().lower()
        aliases = {
            "azureopenai": cls.AZURE,
            "anthropic": cls.CLAUDE,
        }
        if normalized in aliases:
            return aliases[normalized]
        for member in cls:
            if member.value == normalized:
                return member

        raise UnsupportedCapabilityError(
            "LLM provider", str(value), [m.value for m in cls]
        )


DEFAULT_MODELS: dict[LlmProvider, str] = {
    LlmProvider.OPENAI: "gpt-4o-mini",
    LlmProvider.AZURE: "gpt-4o-mini",
    LlmProvider.OLLAMA: "llama3.1",
    LlmProvider.CLAUDE: "claude-3-haiku-20240307",
    LlmProvider.GEMINI: "gemini-1.5-flash",
}


class LlmMessage(BaseModel):
    """One turn of a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class LlmRequestOptions(BaseModel):
    """Per-request model selection and sampling settings."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(..., description="Target model or deployment identifier")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, ge=1)


class GeneratedSql(BaseModel):
    """SQL produced from a natural-language request."""

    sql: str
    provider: str
    model: str
    is_read_only: bool
    rejection_reason: Optional[str] = None
