"""
Provider selection from configuration.
"""

from typing import Optional

from devagents.config import AgentSettings, LLMProvider, LLMSettings, get_settings
from devagents.logging import get_agent_logger
from devagents.providers.anthropic_provider import AnthropicProvider
from devagents.providers.base import Provider
from devagents.providers.mock_provider import MockProvider
from devagents.providers.openai_provider import OpenAIProvider


def create_provider(
    settings: Optional[LLMSettings] = None,
    agent_settings: Optional[AgentSettings] = None,
) -> Provider:
    """
    Create a provider for the configured backend.

    Falls back to the mock provider, with a warning, when a remote provider
    is selected but no API key is configured.

    Args:
        settings: LLM settings. Uses global settings if not provided.
        agent_settings: Agent settings supplying the mock latency bounds.

    Returns:
        Provider instance.

    Raises:
        ValueError: If the provider is not supported.
    """
    settings = settings or get_settings().llm
    agent_settings = agent_settings or get_settings().agent

    if settings.provider != LLMProvider.MOCK and not settings.get_active_api_key():
        get_agent_logger().warning(
            f"No API key configured for {settings.provider.value}, using mock provider",
            data={"provider": settings.provider.value},
        )
        return _create_mock(settings, agent_settings, model=settings.mock_model)

    if settings.provider == LLMProvider.MOCK:
        return _create_mock(settings, agent_settings)
    elif settings.provider == LLMProvider.ANTHROPIC:
        return AnthropicProvider(settings)
    elif settings.provider == LLMProvider.OPENAI:
        return OpenAIProvider(settings)
    else:
        raise ValueError(f"Unsupported LLM provider: {settings.provider}")


def _create_mock(
    settings: LLMSettings, agent_settings: AgentSettings, model: Optional[str] = None
) -> MockProvider:
    return MockProvider(
        settings,
        model=model,
        min_latency_ms=agent_settings.mock_min_latency_ms,
        max_latency_ms=agent_settings.mock_max_latency_ms,
    )


def get_available_providers(settings: Optional[LLMSettings] = None) -> list[tuple[LLMProvider, bool]]:
    """
    Check which providers have credentials configured.

    Returns:
        List of (provider, is_available) tuples.
    """
    settings = settings or get_settings().llm
    results = []
    for provider in LLMProvider:
        candidate = settings.model_copy(update={"provider": provider})
        is_available = provider == LLMProvider.MOCK or bool(candidate.get_active_api_key())
        results.append((provider, is_available))
    return results
