"""
devagents - multi-agent development assistant.

This package routes natural-language development tasks to specialized
agents and provides:

- An orchestrator with first-match routing and sequential workflows
- Layered agent execution: persistent memory, AI providers, canned fallback
- A TTL-expiring, file-backed memory store with relevance-ranked recall
- Anthropic, OpenAI and offline mock providers with retry and rate limiting
- Task, agent and token metrics with ROI estimates and dashboard aggregates
- Phased rollout configuration
"""

__version__ = "0.1.0"

# Agents
from devagents.agents import (
    AIMiddleware,
    Agent,
    MemoryMiddleware,
    Message,
    MockHandler,
    Orchestrator,
    Priority,
    create_default_agents,
    keyword_capability,
)

# Configuration
from devagents.config import Settings, configure, get_settings

# Errors
from devagents.errors import (
    DevAgentsError,
    InvalidKeyError,
    InvalidRequestError,
    MemoryIOError,
    NetworkError,
    NoCapableAgentError,
    ParseError,
    ProviderError,
    RateLimitError,
)

# Memory
from devagents.memory import ContextAggregator, Memory, MemoryStore, MemoryType

# Metrics
from devagents.metrics import MetricsCollector, MetricsStorage, TaskType, TokenTracker

# Providers
from devagents.providers import Provider, RequestOptions, create_provider

# System
from devagents.system import AgentSystem, create_system

__all__ = [
    "__version__",
    # Agents
    "AIMiddleware",
    "Agent",
    "MemoryMiddleware",
    "Message",
    "MockHandler",
    "Orchestrator",
    "Priority",
    "create_default_agents",
    "keyword_capability",
    # Configuration
    "Settings",
    "configure",
    "get_settings",
    # Errors
    "DevAgentsError",
    "InvalidKeyError",
    "InvalidRequestError",
    "MemoryIOError",
    "NetworkError",
    "NoCapableAgentError",
    "ParseError",
    "ProviderError",
    "RateLimitError",
    # Memory
    "ContextAggregator",
    "Memory",
    "MemoryStore",
    "MemoryType",
    # Metrics
    "MetricsCollector",
    "MetricsStorage",
    "TaskType",
    "TokenTracker",
    # Providers
    "Provider",
    "RequestOptions",
    "create_provider",
    # System
    "AgentSystem",
    "create_system",
]
