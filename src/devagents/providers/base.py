"""
Provider contract for AI text generation.

Defines request/response models, the model catalogue used for cost
estimates, a rolling-window rate limiter and the retry loop shared by every
provider implementation.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from types import ModuleType
from typing import Optional, TypeVar

from pydantic import BaseModel, Field

from devagents.config import LLMSettings, ResponseFormat, get_settings
from devagents.errors import (
    InvalidKeyError,
    InvalidRequestError,
    NetworkError,
    ProviderError,
    RateLimitError,
)
from devagents.logging import EventType, get_agent_logger

T = TypeVar("T")


class RequestOptions(BaseModel):
    """Per-request generation options. Unset fields use provider defaults."""

    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    system_prompt: Optional[str] = None
    stop_sequences: Optional[list[str]] = None
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    response_format: ResponseFormat = ResponseFormat.TEXT


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class ProviderResponse(BaseModel):
    """Result of one generation call."""

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    cost: float = 0.0
    model: str
    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class ModelInfo:
    """Pricing and limits for a known model."""

    name: str
    context_window: int
    input_cost_per_1k: float
    output_cost_per_1k: float


MODEL_CATALOG: dict[str, ModelInfo] = {
    # OpenAI models
    "gpt-4-turbo": ModelInfo("GPT-4 Turbo", 128000, 0.01, 0.03),
    "gpt-4": ModelInfo("GPT-4", 8192, 0.03, 0.06),
    "gpt-3.5-turbo": ModelInfo("GPT-3.5 Turbo", 16384, 0.0005, 0.0015),
    # Anthropic models
    "claude-3-opus": ModelInfo("Claude 3 Opus", 200000, 0.015, 0.075),
    "claude-3-sonnet": ModelInfo("Claude 3 Sonnet", 200000, 0.003, 0.015),
    "claude-3-haiku": ModelInfo("Claude 3 Haiku", 200000, 0.00025, 0.00125),
    # Offline
    "mock-model": ModelInfo("Mock Model", 4096, 0.001, 0.002),
}

# Used when a model is missing from the catalogue
DEFAULT_INPUT_COST_PER_1K = 0.001
DEFAULT_OUTPUT_COST_PER_1K = 0.002


def lookup_model(model: str) -> Optional[ModelInfo]:
    """Find catalogue info for a model, accepting dated variants like claude-3-haiku-20240307."""
    if model in MODEL_CATALOG:
        return MODEL_CATALOG[model]
    # Longest key first so gpt-4-turbo wins over gpt-4
    for key in sorted(MODEL_CATALOG, key=len, reverse=True):
        if model.startswith(f"{key}-"):
            return MODEL_CATALOG[key]
    return None


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Dollar cost of a call from the catalogue's per-1k-token prices."""
    info = lookup_model(model)
    input_rate = info.input_cost_per_1k if info else DEFAULT_INPUT_COST_PER_1K
    output_rate = info.output_cost_per_1k if info else DEFAULT_OUTPUT_COST_PER_1K
    return (input_tokens / 1000) * input_rate + (output_tokens / 1000) * output_rate


class RateLimiter:
    """
    Fixed-window request counter.

    When the window's budget is spent, the calling coroutine sleeps for the
    remainder of the window before the counter resets.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._window_start = clock()
        self._count = 0
        self._logger = get_agent_logger()

    async def acquire(self) -> None:
        now = self._clock()
        if now - self._window_start >= self.window_seconds:
            self._window_start = now
            self._count = 0

        if self._count >= self.max_requests:
            wait = self.window_seconds - (now - self._window_start)
            self._logger.warning(
                f"Rate limit reached, waiting {wait:.1f}s",
                event_type=EventType.LLM_RATE_LIMITED,
                data={"max_requests": self.max_requests, "wait_seconds": wait},
            )
            await self._sleep(max(wait, 0.0))
            self._window_start = self._clock()
            self._count = 0

        self._count += 1


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    base_delay: float,
    max_delay: float,
    provider: str = "",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run an operation, retrying retryable provider errors with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory.
        max_attempts: Total attempts including the first.
        base_delay: Delay before the first retry, doubled per attempt.
        max_delay: Upper bound on any single delay.
        provider: Provider name for logging.
        sleep: Sleep function, replaceable in tests.

    Returns:
        The operation's result.

    Raises:
        ProviderError: Immediately when not retryable, or after the last attempt.
    """
    logger = get_agent_logger()
    for attempt in range(max_attempts):
        try:
            return await operation()
        except ProviderError as e:
            if not e.retryable or attempt >= max_attempts - 1:
                raise
            delay = min(base_delay * (2**attempt), max_delay)
            logger.warning(
                f"Request failed (attempt {attempt + 1}/{max_attempts}), retrying in {delay:.1f}s: {e}",
                event_type=EventType.LLM_RETRY,
                data={"provider": provider, "attempt": attempt + 1, "code": e.code},
            )
            await sleep(delay)
    raise ProviderError("Retry loop exhausted", provider=provider)


def translate_sdk_error(sdk: ModuleType, error: Exception, provider: str) -> ProviderError:
    """
    Map an exception raised by a vendor SDK onto the ProviderError hierarchy.

    The anthropic and openai SDKs share exception class names, so one
    mapping serves both.
    """
    message = str(error)
    if isinstance(error, (sdk.AuthenticationError, sdk.PermissionDeniedError)):
        return InvalidKeyError(message, provider=provider)
    if isinstance(error, sdk.RateLimitError):
        return RateLimitError(message, provider=provider)
    if isinstance(error, sdk.APIConnectionError):
        return NetworkError(message, provider=provider)
    if isinstance(error, (sdk.BadRequestError, sdk.NotFoundError, sdk.UnprocessableEntityError)):
        return InvalidRequestError(message, provider=provider)
    if isinstance(error, sdk.APIStatusError) and error.status_code >= 500:
        return ProviderError(message, provider=provider, retryable=True, details={"status": error.status_code})
    return ProviderError(message, provider=provider)


class Provider(ABC):
    """Abstract base class for AI providers."""

    supports_streaming: bool = False
    fallback_context_window: int = 4096

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        model: Optional[str] = None,
    ):
        """
        Initialize the provider.

        Args:
            settings: LLM settings. Uses global settings if not provided.
            model: Default model, overriding the settings.
        """
        self.settings = settings or get_settings().llm
        self.model = model or self.default_model()
        self._rate_limiter = RateLimiter(
            self.settings.rate_limit_per_minute,
            self.settings.rate_limit_window_seconds,
        )
        self._logger = get_agent_logger()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider name for logging and response metadata."""

    @abstractmethod
    def default_model(self) -> str:
        """Model used when neither options nor the constructor name one."""

    @abstractmethod
    async def _generate(self, prompt: str, options: RequestOptions) -> ProviderResponse:
        """Perform a single generation call."""

    async def _stream(self, prompt: str, options: RequestOptions) -> AsyncIterator[str]:
        """Stream a generation. Providers without native streaming yield the whole response."""
        response = await self._generate(prompt, options)
        yield response.content

    @property
    def model_name(self) -> str:
        return self.model

    def resolve_options(self, options: Optional[RequestOptions] = None) -> RequestOptions:
        """Fill unset options from the provider defaults."""
        options = options or RequestOptions()
        return options.model_copy(
            update={
                "model": options.model or self.model,
                "temperature": (
                    options.temperature if options.temperature is not None else self.settings.temperature
                ),
                "max_tokens": options.max_tokens or self.settings.max_tokens,
            }
        )

    async def generate_response(
        self, prompt: str, options: Optional[RequestOptions] = None
    ) -> ProviderResponse:
        """
        Generate a response, honouring the rate limit and retrying retryable errors.

        Args:
            prompt: Prompt text.
            options: Request options.

        Returns:
            ProviderResponse with content, usage and cost.

        Raises:
            ProviderError: If the call fails permanently.
        """
        options = self.resolve_options(options)
        await self._rate_limiter.acquire()

        self._logger.log_llm_request(
            self.provider_name, options.model, prompt_tokens=self.get_token_count(prompt)
        )
        start_time = time.time()
        try:
            response = await with_retry(
                lambda: self._generate(prompt, options),
                max_attempts=self.settings.max_retries,
                base_delay=self.settings.retry_delay_seconds,
                max_delay=self.settings.max_retry_delay_seconds,
                provider=self.provider_name,
            )
        except ProviderError as e:
            self._logger.log_llm_error(self.provider_name, str(e), code=e.code)
            raise

        self._logger.log_llm_response(
            self.provider_name,
            response.model,
            duration_ms=(time.time() - start_time) * 1000,
            completion_tokens=response.usage.output_tokens,
            cost=response.cost,
        )
        return response

    async def stream_response(
        self, prompt: str, options: Optional[RequestOptions] = None
    ) -> AsyncIterator[str]:
        """Stream response chunks. Streams are not retried."""
        options = self.resolve_options(options)
        await self._rate_limiter.acquire()
        self._logger.log_llm_request(self.provider_name, options.model, stream=True)
        async for chunk in self._stream(prompt, options):
            yield chunk

    def get_token_count(self, text: str) -> int:
        """Rough token estimate for text."""
        return math.ceil(len(text) / 4)

    def get_max_tokens(self) -> int:
        """Context window of the default model."""
        info = lookup_model(self.model)
        return info.context_window if info else self.fallback_context_window

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        return estimate_cost(model, input_tokens, output_tokens)

    async def test_connection(self) -> bool:
        """Check that the provider answers a trivial prompt."""
        try:
            await self.generate_response("Hello", RequestOptions(max_tokens=10))
        except ProviderError as e:
            self._logger.warning(
                f"Connection test failed for {self.provider_name}: {e}",
                event_type=EventType.LLM_ERROR,
            )
            return False
        return True
