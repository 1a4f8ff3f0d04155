"""
Unit tests for the Anthropic and OpenAI providers with mocked SDK clients.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from devagents.config import LLMProvider, LLMSettings, ResponseFormat
from devagents.errors import InvalidKeyError, InvalidRequestError, NetworkError, ProviderError, RateLimitError
from devagents.providers.anthropic_provider import AnthropicProvider
from devagents.providers.base import RequestOptions, translate_sdk_error
from devagents.providers.openai_provider import OpenAIProvider

REQUEST = httpx.Request("POST", "https://api.example.test/v1")


def _status_error(sdk, cls_name: str, status: int):
    cls = getattr(sdk, cls_name)
    return cls(f"HTTP {status}", response=httpx.Response(status, request=REQUEST), body=None)


@pytest.fixture
def anthropic_settings() -> LLMSettings:
    return LLMSettings(
        provider=LLMProvider.ANTHROPIC,
        anthropic_api_key="sk-ant-test",
        retry_delay_seconds=0.0,
        max_retry_delay_seconds=0.0,
        rate_limit_per_minute=10000,
    )


@pytest.fixture
def openai_settings() -> LLMSettings:
    return LLMSettings(
        provider=LLMProvider.OPENAI,
        openai_api_key="sk-test",
        retry_delay_seconds=0.0,
        max_retry_delay_seconds=0.0,
        rate_limit_per_minute=10000,
    )


class FakeAnthropicStream:
    """Async context manager mimicking messages.stream()."""

    def __init__(self, chunks):
        self.chunks = chunks

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        async def _gen():
            for chunk in self.chunks:
                yield chunk

        return _gen()


# =============================================================================
# Error Translation Tests
# =============================================================================


class TestTranslateSdkError:
    """Tests for mapping SDK exceptions onto provider errors."""

    @pytest.mark.parametrize("sdk", [anthropic, openai])
    @pytest.mark.parametrize(
        "cls_name,status,expected",
        [
            ("AuthenticationError", 401, InvalidKeyError),
            ("PermissionDeniedError", 403, InvalidKeyError),
            ("RateLimitError", 429, RateLimitError),
            ("BadRequestError", 400, InvalidRequestError),
            ("NotFoundError", 404, InvalidRequestError),
        ],
    )
    def test_status_errors(self, sdk, cls_name, status, expected):
        """Test HTTP status errors map to the matching provider error."""
        error = translate_sdk_error(sdk, _status_error(sdk, cls_name, status), "Vendor")
        assert isinstance(error, expected)
        assert error.provider == "Vendor"

    @pytest.mark.parametrize("sdk", [anthropic, openai])
    def test_connection_error(self, sdk):
        """Test connection failures map to NetworkError."""
        error = translate_sdk_error(sdk, sdk.APIConnectionError(request=REQUEST), "Vendor")
        assert isinstance(error, NetworkError)
        assert error.retryable

    @pytest.mark.parametrize("sdk", [anthropic, openai])
    def test_server_error_retryable(self, sdk):
        """Test 5xx responses become retryable provider errors."""
        error = translate_sdk_error(sdk, _status_error(sdk, "InternalServerError", 500), "Vendor")
        assert type(error) is ProviderError
        assert error.retryable
        assert error.details["status"] == 500


# =============================================================================
# Anthropic Provider Tests
# =============================================================================


class TestAnthropicProvider:
    """Tests for the Anthropic provider."""

    def test_defaults(self, anthropic_settings):
        """Test default model and token estimate."""
        provider = AnthropicProvider(anthropic_settings)
        assert provider.model == "claude-3-haiku-20240307"
        assert provider.get_max_tokens() == 200000
        assert provider.get_token_count("abcdefg") == 2

    @pytest.mark.asyncio
    async def test_generate(self, anthropic_settings):
        """Test a successful call maps content, usage and cost."""
        provider = AnthropicProvider(anthropic_settings)
        client = MagicMock()
        client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[SimpleNamespace(type="text", text='{"ok": '), SimpleNamespace(type="text", text="true}")],
                usage=SimpleNamespace(input_tokens=1000, output_tokens=1000),
                model="claude-3-haiku-20240307",
                stop_reason="end_turn",
            )
        )
        with patch.object(provider, "_get_client", return_value=client):
            response = await provider.generate_response(
                "hi", RequestOptions(system_prompt="be brief", stop_sequences=["END"])
            )

        assert response.content == '{"ok": true}'
        assert response.usage.total_tokens == 2000
        assert response.cost == pytest.approx(0.00025 + 0.00125)
        assert response.finish_reason == "end_turn"
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["system"] == "be brief"
        assert kwargs["stop_sequences"] == ["END"]
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_rate_limit_retried_then_raised(self, anthropic_settings):
        """Test SDK rate limit errors are translated and retried."""
        provider = AnthropicProvider(anthropic_settings)
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=_status_error(anthropic, "RateLimitError", 429))
        with patch.object(provider, "_get_client", return_value=client):
            with pytest.raises(RateLimitError):
                await provider.generate_response("hi")
        assert client.messages.create.await_count == anthropic_settings.max_retries

    @pytest.mark.asyncio
    async def test_stream(self, anthropic_settings):
        """Test streamed text chunks are forwarded."""
        provider = AnthropicProvider(anthropic_settings)
        client = MagicMock()
        client.messages.stream = MagicMock(return_value=FakeAnthropicStream(["Hel", "lo"]))
        with patch.object(provider, "_get_client", return_value=client):
            chunks = [chunk async for chunk in provider.stream_response("hi")]
        assert chunks == ["Hel", "lo"]


# =============================================================================
# OpenAI Provider Tests
# =============================================================================


class TestOpenAIProvider:
    """Tests for the OpenAI provider."""

    def test_request_kwargs(self, openai_settings):
        """Test system prompts and JSON format shape the request."""
        provider = OpenAIProvider(openai_settings)
        options = provider.resolve_options(
            RequestOptions(system_prompt="sys", response_format=ResponseFormat.JSON, top_p=0.5)
        )
        kwargs = provider._request_kwargs("hi", options)
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["messages"][1] == {"role": "user", "content": "hi"}
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["top_p"] == 0.5

    @pytest.mark.asyncio
    async def test_generate(self, openai_settings):
        """Test a successful call maps content and usage."""
        provider = OpenAIProvider(openai_settings)
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="hello"), finish_reason="stop")],
                usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
                model="gpt-3.5-turbo",
            )
        )
        with patch.object(provider, "_get_client", return_value=client):
            response = await provider.generate_response("hi")

        assert response.content == "hello"
        assert response.usage.input_tokens == 10
        assert response.usage.output_tokens == 5
        assert response.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_invalid_key_not_retried(self, openai_settings):
        """Test authentication errors fail on the first attempt."""
        provider = OpenAIProvider(openai_settings)
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=_status_error(openai, "AuthenticationError", 401))
        with patch.object(provider, "_get_client", return_value=client):
            assert await provider.test_connection() is False
        assert client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_stream(self, openai_settings):
        """Test streamed deltas are forwarded and empty deltas skipped."""
        provider = OpenAIProvider(openai_settings)

        async def _chunks():
            for text in ["Hel", None, "lo"]:
                yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])

        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_chunks())
        with patch.object(provider, "_get_client", return_value=client):
            chunks = [chunk async for chunk in provider.stream_response("hi")]
        assert chunks == ["Hel", "lo"]
        assert client.chat.completions.create.await_args.kwargs["stream"] is True
