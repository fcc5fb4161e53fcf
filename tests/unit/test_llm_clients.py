"""Unit tests for provider clients using httpx.MockTransport."""

import json

import httpx
import pytest

from sqlbridge_mcp.errors import (
    LlmResponseError,
    LlmTransportError,
    LlmUpstreamError,
    SqlBridgeError,
)
from sqlbridge_mcp.llm import (
    AzureOpenAiClient,
    ClaudeClient,
    GeminiClient,
    OllamaClient,
    OpenAiClient,
)
from sqlbridge_mcp.models.llm import LlmMessage, LlmRequestOptions

OPTIONS = LlmRequestOptions(model="test-model", temperature=0.2, max_tokens=256)
MESSAGES = [
    LlmMessage(role="system", content="You write SQL."),
    LlmMessage(role="user", content="Count customers"),
]


def capture(response_json, status_code=200):
    """MockTransport that records requests and answers with fixed JSON."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, json=response_json)

    return httpx.MockTransport(handler), seen


class TestOpenAi:
    @pytest.mark.asyncio
    async def test_chat(self):
        transport, seen = capture(
            {"choices": [{"message": {"role": "assistant", "content": "SELECT 1"}}]}
        )
        client = OpenAiClient(api_key="sk-1", transport=transport)

        reply = await client.chat(MESSAGES, OPTIONS)

        assert reply == "SELECT 1"
        request = seen[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-1"
        body = json.loads(request.content)
        assert body["model"] == "test-model"
        assert body["max_tokens"] == 256
        assert [m["role"] for m in body["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_complete_sends_single_user_message(self):
        transport, seen = capture({"choices": [{"message": {"content": "ok"}}]})
        client = OpenAiClient(api_key="k", transport=transport)

        assert await client.complete("hello", OPTIONS) == "ok"
        body = json.loads(seen[0].content)
        assert body["messages"] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_upstream_error_carries_status_and_body(self):
        transport, _ = capture({"error": {"message": "bad key"}}, status_code=401)
        client = OpenAiClient(api_key="k", transport=transport)

        with pytest.raises(LlmUpstreamError) as exc_info:
            await client.chat(MESSAGES, OPTIONS)

        assert exc_info.value.status_code == 401
        assert "bad key" in exc_info.value.body
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_missing_choices(self):
        transport, _ = capture({"choices": []})
        client = OpenAiClient(api_key="k", transport=transport)

        with pytest.raises(LlmResponseError, match="choices"):
            await client.chat(MESSAGES, OPTIONS)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout(""),
        ],
    )
    async def test_transport_failure_is_typed(self, error):
        def handler(request: httpx.Request) -> httpx.Response:
            raise error

        client = OpenAiClient(api_key="k", transport=httpx.MockTransport(handler))

        with pytest.raises(LlmTransportError) as exc_info:
            await client.complete("hello", OPTIONS)

        assert isinstance(exc_info.value, SqlBridgeError)
        assert exc_info.value.provider == "openai"
        assert exc_info.value.message.startswith("openai request failed: ")
        assert type(error).__name__ in exc_info.value.message
        assert exc_info.value.__cause__ is error


class TestAzure:
    @pytest.mark.asyncio
    async def test_deployment_url_and_api_key_header(self):
        transport, seen = capture({"choices": [{"message": {"content": "SELECT 2"}}]})
        client = AzureOpenAiClient(
            endpoint="https://example.openai.azure.com/",
            api_key="az-key",
            deployment="sql-gpt",
            transport=transport,
        )

        assert await client.chat(MESSAGES, OPTIONS) == "SELECT 2"
        request = seen[0]
        assert request.url.path == "/openai/deployments/sql-gpt/chat/completions"
        assert request.url.params["api-version"] == "2024-02-15-preview"
        assert request.headers["api-key"] == "az-key"
        assert "Authorization" not in request.headers


class TestOllama:
    @pytest.mark.asyncio
    async def test_chat(self):
        transport, seen = capture({"message": {"role": "assistant", "content": "SELECT 3"}})
        client = OllamaClient(transport=transport)

        assert await client.chat(MESSAGES, OPTIONS) == "SELECT 3"
        request = seen[0]
        assert str(request.url) == "http://localhost:11434/api/chat"
        body = json.loads(request.content)
        assert body["stream"] is False
        assert body["options"] == {"temperature": 0.2, "num_predict": 256}

    @pytest.mark.asyncio
    async def test_upstream_error(self):
        transport, _ = capture({"error": "model not found"}, status_code=404)
        with pytest.raises(LlmUpstreamError, match="404"):
            await OllamaClient(transport=transport).chat(MESSAGES, OPTIONS)


class TestClaude:
    @pytest.mark.asyncio
    async def test_system_prompt_folded_into_system_field(self):
        transport, seen = capture(
            {"content": [{"type": "text", "text": "SELECT 4"}], "role": "assistant"}
        )
        client = ClaudeClient(api_key="ant-key", transport=transport)

        assert await client.chat(MESSAGES, OPTIONS) == "SELECT 4"
        request = seen[0]
        assert request.url.path == "/v1/messages"
        assert request.headers["x-api-key"] == "ant-key"
        assert "anthropic-version" in request.headers
        body = json.loads(request.content)
        assert body["system"] == "You write SQL."
        assert body["messages"] == [{"role": "user", "content": "Count customers"}]

    @pytest.mark.asyncio
    async def test_no_text_block(self):
        transport, _ = capture({"content": []})
        with pytest.raises(LlmResponseError):
            await ClaudeClient(api_key="k", transport=transport).chat(MESSAGES, OPTIONS)


class TestGemini:
    @pytest.mark.asyncio
    async def test_generate_content(self):
        transport, seen = capture(
            {"candidates": [{"content": {"parts": [{"text": "SELECT 5"}]}}]}
        )
        client = GeminiClient(api_key="g-key", transport=transport)
        conversation = MESSAGES + [
            LlmMessage(role="assistant", content="SELECT COUNT(*) FROM Customers"),
            LlmMessage(role="user", content="Only active ones"),
        ]

        assert await client.chat(conversation, OPTIONS) == "SELECT 5"
        request = seen[0]
        assert request.url.path == "/v1beta/models/test-model:generateContent"
        body = json.loads(request.content)
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["systemInstruction"] == {"parts": [{"text": "You write SQL."}]}
        assert body["generationConfig"]["maxOutputTokens"] == 256
