"""Tests for LLM client."""

import httpx
import pytest
from unittest.mock import AsyncMock, patch, MagicMock

from src.core.exceptions import (
    GenerationUnavailableError,
    LLMHTTPError,
    LLMInvalidResponseError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from src.llm.client import (
    AnthropicClient,
    DeepSeekClient,
    LLMResponse,
    OpenAIClient,
    get_llm_client,
)

TURNS = [
    {"role": "user", "content": "I grew up in Porto."},
    {"role": "assistant", "content": "What was your street like?"},
    {"role": "user", "content": "Steep and noisy."},
]


def make_anthropic(**overrides) -> AnthropicClient:
    params = dict(
        model="claude-sonnet-4-5",
        temperature=0.7,
        max_tokens=512,
        timeout=30.0,
        api_key="test-key",
    )
    params.update(overrides)
    return AnthropicClient(**params)


def mock_http(MockClient, payload=None, side_effect=None):
    """Wire a patched httpx.AsyncClient to return payload or raise."""
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.post.side_effect = side_effect
    else:
        mock_response_obj = MagicMock()
        mock_response_obj.json.return_value = payload
        mock_response_obj.raise_for_status = MagicMock()
        mock_client.post.return_value = mock_response_obj
    MockClient.return_value.__aenter__.return_value = mock_client
    return mock_client


def status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.com")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestAnthropicClient:
    """Tests for AnthropicClient."""

    def test_init_with_api_key(self):
        assert make_anthropic().api_key == "test-key"

    def test_init_without_api_key_raises(self):
        with patch("src.llm.client.settings") as mock_settings:
            mock_settings.anthropic_api_key = None
            with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
                make_anthropic(api_key=None)

    def test_init_uses_settings_key(self):
        with patch("src.llm.client.settings") as mock_settings:
            mock_settings.anthropic_api_key = "settings-key"
            assert make_anthropic(api_key=None).api_key == "settings-key"

    @pytest.mark.asyncio
    async def test_complete_success(self):
        payload = {
            "content": [{"type": "text", "text": " Tell me about your father. "}],
            "model": "claude-sonnet-4-5",
            "usage": {"input_tokens": 10, "output_tokens": 5},
        }
        with patch("httpx.AsyncClient") as MockClient:
            mock_client = mock_http(MockClient, payload)

            response = await make_anthropic().complete(TURNS, system="Be warm")

        assert isinstance(response, LLMResponse)
        assert response.content == "Tell me about your father."
        assert response.usage == {"input_tokens": 10, "output_tokens": 5}

        sent = mock_client.post.call_args.kwargs["json"]
        assert sent["messages"] == TURNS
        assert sent["system"] == "Be warm"
        assert mock_client.post.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_content_is_invalid(self):
        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, {"content": [], "usage": {}})

            with pytest.raises(LLMInvalidResponseError):
                await make_anthropic().complete(TURNS)

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self):
        with patch("httpx.AsyncClient") as MockClient:
            mock_client = mock_http(
                MockClient, side_effect=httpx.ReadTimeout("slow")
            )

            with pytest.raises(LLMTimeoutError):
                await make_anthropic().complete(TURNS)

        assert mock_client.post.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, side_effect=status_error(429))

            with pytest.raises(LLMRateLimitError):
                await make_anthropic().complete(TURNS)

    @pytest.mark.asyncio
    async def test_server_error(self):
        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, side_effect=status_error(500))

            with pytest.raises(LLMHTTPError) as exc_info:
                await make_anthropic().complete(TURNS)

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value, GenerationUnavailableError)

    @pytest.mark.asyncio
    async def test_malformed_content_blocks_are_invalid(self):
        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, {"content": ["not a block"], "usage": None})

            with pytest.raises(LLMInvalidResponseError):
                await make_anthropic().complete(TURNS)


class TestOpenAICompatibleClient:
    @pytest.mark.asyncio
    async def test_system_prompt_prepended(self):
        payload = {
            "choices": [{"message": {"content": "And your mother?"}}],
            "model": "deepseek-chat",
            "usage": {"prompt_tokens": 12, "completion_tokens": 4},
        }
        with patch("httpx.AsyncClient") as MockClient:
            mock_client = mock_http(MockClient, payload)
            client = DeepSeekClient(
                model="deepseek-chat",
                temperature=0.7,
                max_tokens=512,
                timeout=30.0,
                api_key="ds-key",
            )

            response = await client.complete(TURNS, system="Be warm")

        sent = mock_client.post.call_args.kwargs["json"]
        assert sent["messages"][0] == {"role": "system", "content": "Be warm"}
        assert sent["messages"][1:] == TURNS
        assert response.content == "And your mother?"
        assert response.usage == {"input_tokens": 12, "output_tokens": 4}

    def test_openai_requires_key(self):
        with patch("src.llm.client.settings") as mock_settings:
            mock_settings.openai_api_key = None
            with pytest.raises(ValueError, match="OPENAI_API_KEY"):
                OpenAIClient(model="gpt-4o-mini", temperature=0.7, max_tokens=10, timeout=5.0)

    @pytest.mark.asyncio
    async def test_null_usage_is_tolerated(self):
        payload = {"choices": [{"message": {"content": "Tell me more?"}}], "usage": None}
        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, payload)
            client = OpenAIClient(
                model="gpt-4o-mini", temperature=0.7, max_tokens=10, timeout=5.0, api_key="k"
            )

            response = await client.complete(TURNS)

        assert response.content == "Tell me more?"
        assert response.usage == {"input_tokens": 0, "output_tokens": 0}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"choices": ["oops"]},
            {"choices": [{"message": {"content": ["a", "b"]}}]},
            {"choices": {"0": {}}},
            ["not", "an", "object"],
        ],
    )
    async def test_malformed_payload_is_invalid(self, payload):
        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, payload)
            client = OpenAIClient(
                model="gpt-4o-mini", temperature=0.7, max_tokens=10, timeout=5.0, api_key="k"
            )

            with pytest.raises(LLMInvalidResponseError):
                await client.complete(TURNS)


class TestGetLLMClient:
    """Tests for get_llm_client factory."""

    def test_returns_anthropic_client_by_default(self):
        with patch("src.llm.client.settings") as mock_settings:
            mock_settings.anthropic_api_key = "test-key"
            mock_settings.llm_provider = None
            mock_settings.llm_model = None

            client = get_llm_client(timeout=12.0)

        assert isinstance(client, AnthropicClient)
        assert client.timeout == 12.0

    def test_provider_override(self):
        with patch("src.llm.client.settings") as mock_settings:
            mock_settings.deepseek_api_key = "ds-key"
            mock_settings.llm_provider = "deepseek"
            mock_settings.llm_model = "deepseek-reasoner"

            client = get_llm_client()

        assert isinstance(client, DeepSeekClient)
        assert client.model == "deepseek-reasoner"

    def test_raises_for_unknown_provider(self):
        with patch("src.llm.client.settings") as mock_settings:
            mock_settings.llm_provider = "unknown"

            with pytest.raises(ValueError, match="Unknown LLM provider"):
                get_llm_client()


class TestLLMResponse:
    def test_response_defaults(self):
        response = LLMResponse(content="Hello", model="m")

        assert response.usage == {}
        assert response.latency_ms == 0.0
        assert response.raw_response is None
