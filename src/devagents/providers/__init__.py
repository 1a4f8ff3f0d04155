"""
AI providers: contract, retry and rate limiting, and concrete backends.
"""

from devagents.providers.anthropic_provider import AnthropicProvider
from devagents.providers.base import (
    MODEL_CATALOG,
    ModelInfo,
    Provider,
    ProviderResponse,
    RateLimiter,
    RequestOptions,
    TokenUsage,
    estimate_cost,
    lookup_model,
    translate_sdk_error,
    with_retry,
)
from devagents.providers.factory import create_provider, get_available_providers
from devagents.providers.mock_provider import MockProvider, canned_response
from devagents.providers.openai_provider import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "MODEL_CATALOG",
    "MockProvider",
    "ModelInfo",
    "OpenAIProvider",
    "Provider",
    "ProviderResponse",
    "RateLimiter",
    "RequestOptions",
    "TokenUsage",
    "canned_response",
    "create_provider",
    "estimate_cost",
    "get_available_providers",
    "lookup_model",
    "translate_sdk_error",
    "with_retry",
]
