"""
Configuration management for the devagents system.

Uses pydantic-settings for environment-based configuration with validation.
All settings can be overridden via environment variables with DEVAGENTS_ prefix.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    MOCK = "mock"
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class ResponseFormat(str, Enum):
    """Response formats a provider can be asked for."""

    TEXT = "text"
    JSON = "json"


class LLMSettings(BaseSettings):
    """Settings for AI provider access.

    API keys can come from DEVAGENTS_LLM_API_KEY or the provider-specific
    DEVAGENTS_LLM_ANTHROPIC_API_KEY / DEVAGENTS_LLM_OPENAI_API_KEY variables.
    """

    model_config = SettingsConfigDict(env_prefix="DEVAGENTS_LLM_")

    # Provider configuration
    provider: LLMProvider = Field(default=LLMProvider.MOCK)
    api_key: Optional[str] = Field(
        default=None,
        description="Primary API key (used if provider-specific key not set)",
    )
    anthropic_api_key: Optional[str] = Field(default=None)
    openai_api_key: Optional[str] = Field(default=None)
    base_url: Optional[str] = Field(
        default=None, description="Override for the provider endpoint"
    )

    # Model selection
    model: Optional[str] = Field(
        default=None, description="Model override applied to whichever provider is active"
    )
    anthropic_model: str = Field(default="claude-3-haiku-20240307")
    openai_model: str = Field(default="gpt-3.5-turbo")
    mock_model: str = Field(default="mock-model")

    # Request parameters
    max_tokens: int = Field(default=2000, ge=1, le=200000)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=600.0)

    # Retry and rate limiting
    max_retries: int = Field(default=3, ge=1, le=10)
    retry_delay_seconds: float = Field(default=1.0, ge=0.0, le=30.0)
    max_retry_delay_seconds: float = Field(default=10.0, ge=0.0, le=120.0)
    rate_limit_per_minute: int = Field(default=60, ge=1, le=10000)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0.0)

    def get_active_api_key(self) -> Optional[str]:
        """Get the API key for the configured provider."""
        if self.provider == LLMProvider.ANTHROPIC:
            return self.anthropic_api_key or self.api_key
        elif self.provider == LLMProvider.OPENAI:
            return self.openai_api_key or self.api_key
        return self.api_key

    def get_active_model(self) -> str:
        """Get the model name for the configured provider."""
        if self.model:
            return self.model
        if self.provider == LLMProvider.ANTHROPIC:
            return self.anthropic_model
        elif self.provider == LLMProvider.OPENAI:
            return self.openai_model
        return self.mock_model


class AgentSettings(BaseSettings):
    """Settings for agent execution."""

    model_config = SettingsConfigDict(env_prefix="DEVAGENTS_AGENT_")

    # AI layer
    ai_enabled: bool = Field(default=True)
    system_prompt: Optional[str] = Field(default=None)
    response_format: ResponseFormat = Field(default=ResponseFormat.JSON)
    memory_preview_chars: int = Field(default=200, ge=20, le=5000)

    # Memory layer
    memory_enabled: bool = Field(default=True)
    recent_memory_limit: int = Field(default=10, ge=0, le=100)
    relevant_memory_limit: int = Field(default=5, ge=0, le=50)

    # Simulated latency of the canned response handler
    mock_min_latency_ms: float = Field(default=500.0, ge=0.0)
    mock_max_latency_ms: float = Field(default=2000.0, ge=0.0)
    mock_complexity_chars: int = Field(default=100, ge=1)
    mock_complexity_factor: float = Field(default=0.5, ge=0.0, le=1.0)


class MemorySettings(BaseSettings):
    """Settings for the persistent memory store and context aggregator."""

    model_config = SettingsConfigDict(env_prefix="DEVAGENTS_MEMORY_")

    storage_dir: Path = Field(default=Path(".memory"))
    sweep_interval_seconds: float = Field(default=30.0, gt=0.0)

    # TTLs in seconds
    conversation_ttl_seconds: int = Field(default=7 * 24 * 3600, ge=1)
    task_result_ttl_seconds: int = Field(default=30 * 24 * 3600, ge=1)
    error_ttl_seconds: int = Field(default=3 * 24 * 3600, ge=1)

    # Context aggregation
    recent_task_limit: int = Field(default=20, ge=1, le=1000)
    replay_limit: int = Field(default=100, ge=0, le=100000)
    context_memory_limit: int = Field(default=10, ge=0, le=100)
    knowledge_confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    learned_knowledge_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    shared_knowledge_confidence: float = Field(default=0.9, ge=0.0, le=1.0)


class ComparisonSettings(BaseSettings):
    """Heuristic constants for the synthesized AI vs manual comparison.

    These are rough estimates rather than measurements.
    """

    model_config = SettingsConfigDict(env_prefix="DEVAGENTS_COMPARISON_")

    manual_multiplier: float = Field(default=10.0, gt=0.0)
    min_ai_minutes: float = Field(default=0.1, ge=0.0)
    min_manual_minutes: float = Field(default=5.0, ge=0.0)
    max_time_improvement: float = Field(default=95.0, ge=0.0, le=100.0)
    min_ai_cost: float = Field(default=0.01, ge=0.0)
    developer_hourly_rate: float = Field(default=100.0, gt=0.0)


class ROISettings(BaseSettings):
    """Heuristic constants for the token tracker ROI model."""

    model_config = SettingsConfigDict(env_prefix="DEVAGENTS_ROI_")

    baseline_tokens: int = Field(default=1000, ge=1)
    developer_hourly_rate: float = Field(default=150.0, gt=0.0)
    cost_per_1k_tokens: float = Field(default=0.01, ge=0.0)
    simple_task_minutes: float = Field(default=5.0, ge=0.0)
    complex_task_minutes: float = Field(default=30.0, ge=0.0)
    complex_task_keywords: list[str] = Field(default_factory=lambda: ["feature", "refactor"])
    min_tasks_for_transition: int = Field(default=10, ge=0)


class MetricsStorageSettings(BaseSettings):
    """Settings for metrics persistence."""

    model_config = SettingsConfigDict(env_prefix="DEVAGENTS_METRICS_")

    storage_dir: Path = Field(default=Path(".metrics"))
    metrics_file: str = Field(default="metrics.json")
    token_usage_file: str = Field(default="token-usage.json")


class PhaseSettings(BaseSettings):
    """Settings selecting the active rollout phase."""

    model_config = SettingsConfigDict(env_prefix="DEVAGENTS_PHASE_")

    current: int = Field(default=1)

    @field_validator("current", mode="before")
    @classmethod
    def fallback_to_first_phase(cls, v) -> int:
        """Unknown phase values fall back to phase 1."""
        try:
            phase = int(v)
        except (TypeError, ValueError):
            return 1
        return phase if phase in (1, 2, 3) else 1


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings."""

    model_config = SettingsConfigDict(
        env_prefix="DEVAGENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="devagents")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Subsettings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    comparison: ComparisonSettings = Field(default_factory=ComparisonSettings)
    roi: ROISettings = Field(default_factory=ROISettings)
    metrics: MetricsStorageSettings = Field(default_factory=MetricsStorageSettings)
    phase: PhaseSettings = Field(default_factory=PhaseSettings)

    def ensure_directories(self) -> None:
        """Create storage directories if they don't exist."""
        self.memory.storage_dir.mkdir(parents=True, exist_ok=True)
        self.metrics.storage_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance - lazy loaded
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(settings: Optional[Settings] = None, **kwargs) -> Settings:
    """
    Configure the global settings.

    Args:
        settings: Optional Settings instance to use directly
        **kwargs: Settings overrides

    Returns:
        The configured Settings instance
    """
    global _settings
    if settings is not None:
        _settings = settings
    elif kwargs:
        _settings = Settings(**kwargs)
    else:
        _settings = Settings()
    return _settings
