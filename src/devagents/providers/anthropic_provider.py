"""
Anthropic Claude provider.
"""

import logging
import math
from collections.abc import AsyncIterator
from typing import Any, Optional

import httpx

from devagents.config import LLMSettings, get_settings
from devagents.errors import InvalidKeyError
from devagents.providers.base import (
    Provider,
    ProviderResponse,
    RequestOptions,
    TokenUsage,
    translate_sdk_error,
)

logger = logging.getLogger(__name__)


def _import_sdk():
    try:
        import anthropic
    except ImportError:
        raise ImportError("anthropic package required. Install with: pip install anthropic")
    return anthropic


class AnthropicProvider(Provider):
    """Provider backed by the Anthropic Messages API."""

    supports_streaming = True
    fallback_context_window = 200000

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ):
        """
        Initialize the Anthropic provider.

        Args:
            settings: LLM settings with API key.
            api_key: Explicit API key, overriding the settings.
            model: Default model.
        """
        settings = settings or get_settings().llm
        super().__init__(settings, model)
        self.api_key = api_key or settings.anthropic_api_key or settings.api_key
        if not self.api_key:
            raise InvalidKeyError(
                "Anthropic API key required. Set DEVAGENTS_LLM_ANTHROPIC_API_KEY or DEVAGENTS_LLM_API_KEY.",
                provider="Anthropic",
            )
        self._client = None

    @property
    def provider_name(self) -> str:
        return "Anthropic"

    def default_model(self) -> str:
        return self.settings.model or self.settings.anthropic_model

    def _get_client(self):
        if self._client is None:
            anthropic = _import_sdk()
            kwargs: dict[str, Any] = {
                "api_key": self.api_key,
                "timeout": httpx.Timeout(self.settings.timeout_seconds),
                # Retries are handled by with_retry
                "max_retries": 0,
            }
            if self.settings.base_url:
                kwargs["base_url"] = self.settings.base_url
            self._client = anthropic.AsyncAnthropic(**kwargs)
            logger.debug(f"Created Anthropic client for model {self.model}")
        return self._client

    def _request_kwargs(self, prompt: str, options: RequestOptions) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": options.model,
            "max_tokens": options.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
        }
        if options.system_prompt:
            kwargs["system"] = options.system_prompt
        if options.stop_sequences:
            kwargs["stop_sequences"] = options.stop_sequences
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        return kwargs

    async def _generate(self, prompt: str, options: RequestOptions) -> ProviderResponse:
        anthropic = _import_sdk()
        client = self._get_client()
        try:
            response = await client.messages.create(**self._request_kwargs(prompt, options))
        except anthropic.APIError as e:
            raise translate_sdk_error(anthropic, e, self.provider_name) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "input_tokens", None) or self.get_token_count(prompt)
        output_tokens = getattr(usage, "output_tokens", None) or self.get_token_count(text)
        model = getattr(response, "model", None) or options.model

        return ProviderResponse(
            content=text,
            usage=TokenUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            cost=self.calculate_cost(model, input_tokens, output_tokens),
            model=model,
            finish_reason=getattr(response, "stop_reason", None),
        )

    async def _stream(self, prompt: str, options: RequestOptions) -> AsyncIterator[str]:
        anthropic = _import_sdk()
        client = self._get_client()
        try:
            async with client.messages.stream(**self._request_kwargs(prompt, options)) as stream:
                async for text in stream.text_stream:
                    yield text
        except anthropic.APIError as e:
            raise translate_sdk_error(anthropic, e, self.provider_name) from e

    def get_token_count(self, text: str) -> int:
        return math.ceil(len(text) / 3.5)
