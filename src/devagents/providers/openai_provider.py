"""
OpenAI chat completions provider.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any, Optional

import httpx

from devagents.config import LLMSettings, ResponseFormat, get_settings
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
        import openai
    except ImportError:
        raise ImportError("openai package required. Install with: pip install openai")
    return openai


class OpenAIProvider(Provider):
    """Provider backed by the OpenAI chat completions API."""

    supports_streaming = True

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ):
        """
        Initialize the OpenAI provider.

        Args:
            settings: LLM settings with API key.
            api_key: Explicit API key, overriding the settings.
            model: Default model.
        """
        settings = settings or get_settings().llm
        super().__init__(settings, model)
        self.api_key = api_key or settings.openai_api_key or settings.api_key
        if not self.api_key:
            raise InvalidKeyError(
                "OpenAI API key required. Set DEVAGENTS_LLM_OPENAI_API_KEY or DEVAGENTS_LLM_API_KEY.",
                provider="OpenAI",
            )
        self._client = None

    @property
    def provider_name(self) -> str:
        return "OpenAI"

    def default_model(self) -> str:
        return self.settings.model or self.settings.openai_model

    def _get_client(self):
        if self._client is None:
            openai = _import_sdk()
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.settings.base_url,
                timeout=httpx.Timeout(self.settings.timeout_seconds),
                max_retries=0,
            )
            logger.debug(f"Created OpenAI client for model {self.model}")
        return self._client

    def _request_kwargs(self, prompt: str, options: RequestOptions) -> dict[str, Any]:
        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": options.model,
            "max_tokens": options.max_tokens,
            "messages": messages,
            "temperature": options.temperature,
        }
        if options.stop_sequences:
            kwargs["stop"] = options.stop_sequences
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if options.response_format == ResponseFormat.JSON:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    async def _generate(self, prompt: str, options: RequestOptions) -> ProviderResponse:
        openai = _import_sdk()
        client = self._get_client()
        try:
            response = await client.chat.completions.create(**self._request_kwargs(prompt, options))
        except openai.APIError as e:
            raise translate_sdk_error(openai, e, self.provider_name) from e

        choice = response.choices[0]
        text = choice.message.content or ""
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "prompt_tokens", None) or self.get_token_count(prompt)
        output_tokens = getattr(usage, "completion_tokens", None) or self.get_token_count(text)
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
            finish_reason=choice.finish_reason,
        )

    async def _stream(self, prompt: str, options: RequestOptions) -> AsyncIterator[str]:
        openai = _import_sdk()
        client = self._get_client()
        try:
            stream = await client.chat.completions.create(
                **self._request_kwargs(prompt, options), stream=True
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.APIError as e:
            raise translate_sdk_error(openai, e, self.provider_name) from e
