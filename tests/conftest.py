"""
Shared fixtures for devagents tests.
"""

import random
from collections.abc import AsyncIterator
from typing import Optional

import pytest

from devagents.agents.agent import Agent, Handler, Invocation
from devagents.agents.capability import keyword_capability
from devagents.agents.messages import Message
from devagents.config import (
    AgentSettings,
    LLMSettings,
    MemorySettings,
    MetricsStorageSettings,
    PhaseSettings,
    Settings,
)
from devagents.errors import ProviderError
from devagents.memory.context import ContextAggregator
from devagents.memory.store import MemoryStore
from devagents.metrics.collector import MetricsCollector
from devagents.metrics.storage import MetricsStorage
from devagents.metrics.token_tracker import TokenTracker
from devagents.providers.base import Provider, ProviderResponse, RequestOptions, TokenUsage
from devagents.providers.mock_provider import MockProvider


async def no_sleep(_seconds: float) -> None:
    """Sleep replacement that returns immediately."""
    return None


class ScriptedProvider(Provider):
    """Provider returning fixed content, or raising a fixed error."""

    supports_streaming = True

    def __init__(
        self,
        settings: LLMSettings,
        content: str = '{"findings": ["scripted"]}',
        error: Optional[ProviderError] = None,
        input_tokens: int = 100,
        output_tokens: int = 50,
    ):
        super().__init__(settings)
        self.content = content
        self.error = error
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.prompts: list[str] = []
        self.options: list[RequestOptions] = []

    @property
    def provider_name(self) -> str:
        return "Scripted"

    def default_model(self) -> str:
        return "scripted-model"

    async def _generate(self, prompt: str, options: RequestOptions) -> ProviderResponse:
        self.prompts.append(prompt)
        self.options.append(options)
        if self.error is not None:
            raise self.error
        return ProviderResponse(
            content=self.content,
            usage=TokenUsage(
                input_tokens=self.input_tokens,
                output_tokens=self.output_tokens,
                total_tokens=self.input_tokens + self.output_tokens,
            ),
            cost=0.005,
            model=options.model,
        )

    async def _stream(self, prompt: str, options: RequestOptions) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        half = len(self.content) // 2
        yield self.content[:half]
        yield self.content[half:]


class RecordingHandler(Handler):
    """Terminal handler that records calls and echoes the task."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.messages: list[Message] = []

    async def handle(self, message: Message, invocation: Invocation) -> Message:
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return message.reply(
            {"task": f"{invocation.agent.name} handled: {message.payload.task}", "handled_by": invocation.agent.name}
        )


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def llm_settings() -> LLMSettings:
    """Mock provider settings without retry delays or rate limiting."""
    return LLMSettings(
        provider="mock",
        api_key=None,
        anthropic_api_key=None,
        openai_api_key=None,
        retry_delay_seconds=0.0,
        max_retry_delay_seconds=0.0,
        rate_limit_per_minute=10000,
    )


@pytest.fixture
def agent_settings() -> AgentSettings:
    """Agent settings without simulated latency."""
    return AgentSettings(mock_min_latency_ms=0.0, mock_max_latency_ms=0.0)


@pytest.fixture
def memory_settings(tmp_path) -> MemorySettings:
    return MemorySettings(storage_dir=tmp_path / "memory", sweep_interval_seconds=0.05)


@pytest.fixture
def metrics_settings(tmp_path) -> MetricsStorageSettings:
    return MetricsStorageSettings(storage_dir=tmp_path / "metrics")


@pytest.fixture
def settings(llm_settings, agent_settings, memory_settings, metrics_settings) -> Settings:
    """Complete settings rooted in a temporary directory, phase 3."""
    return Settings(
        llm=llm_settings,
        agent=agent_settings,
        memory=memory_settings,
        metrics=metrics_settings,
        phase=PhaseSettings(current=3),
    )


# =============================================================================
# Components
# =============================================================================


@pytest.fixture
def store(memory_settings) -> MemoryStore:
    return MemoryStore(memory_settings)


@pytest.fixture
def aggregator(store, memory_settings) -> ContextAggregator:
    return ContextAggregator(store, memory_settings)


@pytest.fixture
def metrics_storage(metrics_settings) -> MetricsStorage:
    return MetricsStorage(metrics_settings)


@pytest.fixture
def collector(metrics_storage, settings) -> MetricsCollector:
    return MetricsCollector(metrics_storage, settings.comparison)


@pytest.fixture
def token_tracker(settings) -> TokenTracker:
    return TokenTracker(
        roi_settings=settings.roi,
        phase_settings=settings.phase,
        storage_settings=settings.metrics,
    )


@pytest.fixture
def mock_provider(llm_settings) -> MockProvider:
    """Seeded mock provider that never sleeps."""
    return MockProvider(
        llm_settings,
        min_latency_ms=0.0,
        max_latency_ms=0.0,
        rng=random.Random(0),
        sleep=no_sleep,
    )


@pytest.fixture
def make_provider(llm_settings):
    """Factory for scripted providers."""

    def _make(content: str = '{"findings": ["scripted"]}', error: Optional[ProviderError] = None) -> ScriptedProvider:
        return ScriptedProvider(llm_settings, content=content, error=error)

    return _make


@pytest.fixture
def make_agent():
    """Factory for agents with a keyword capability and a recording handler."""

    def _make(name: str, keywords: list[str], error: Optional[Exception] = None, middlewares=None) -> Agent:
        return Agent(
            name,
            keyword_capability(keywords),
            handler=RecordingHandler(error),
            middlewares=middlewares,
        )

    return _make
