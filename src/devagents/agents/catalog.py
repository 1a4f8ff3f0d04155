"""
Default domain agents.

Each entry defines routing keywords, time estimates, dependencies and the
system prompt used by the AI layer. Catalogue order is routing order.
"""

from dataclasses import dataclass, field
from typing import Optional

from devagents.agents.agent import Agent
from devagents.agents.ai_layer import AIMiddleware
from devagents.agents.capability import keyword_capability
from devagents.agents.memory_layer import MemoryMiddleware
from devagents.agents.mock_handler import MockHandler
from devagents.config import Settings, get_settings
from devagents.memory.context import ContextAggregator
from devagents.memory.store import MemoryStore
from devagents.metrics.collector import MetricsCollector
from devagents.metrics.token_tracker import TokenTracker
from devagents.phases import get_phase_config
from devagents.providers.base import Provider


@dataclass(frozen=True)
class AgentSpec:
    """Static definition of a domain agent."""

    name: str
    keywords: list[str]
    default_minutes: float
    scopes: dict[str, float] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)
    system_prompt: str = ""


AGENT_CATALOG: list[AgentSpec] = [
    AgentSpec(
        name="ResearchAgent",
        keywords=[
            "research",
            "explore",
            "analyze",
            "understand",
            "find",
            "search",
            "locate",
            "investigate",
            "examine",
            "study",
        ],
        default_minutes=5,
        scopes={"entire codebase": 30, "module": 15, "component": 15},
        system_prompt=(
            "You are a Research Agent specialized in code exploration and analysis.\n"
            "Analyze codebases, find relevant implementations and dependencies, "
            "and locate specific code sections.\n"
            "Always return responses in JSON format with findings, recommendations, and code locations."
        ),
    ),
    AgentSpec(
        name="PlanningAgent",
        keywords=["plan", "break down", "decompose", "organize", "structure", "design", "architect", "outline"],
        default_minutes=5,
        scopes={"large": 20, "complex": 20, "medium": 10},
        dependencies=["ResearchAgent"],
        system_prompt=(
            "You are a Planning Agent that breaks work into ordered, dependent steps.\n"
            "Always return responses in JSON format with tasks, dependencies, and estimates."
        ),
    ),
    AgentSpec(
        name="TestingAgent",
        keywords=["test", "verify", "validate", "check", "assert", "coverage", "tdd", "bdd"],
        default_minutes=20,
        scopes={"comprehensive": 45, "e2e": 45, "integration": 30},
        dependencies=["ImplementationAgent"],
        system_prompt=(
            "You are a Testing Agent that writes and evaluates automated tests.\n"
            "Always return responses in JSON format with tests and coverage."
        ),
    ),
    AgentSpec(
        name="ImplementationAgent",
        keywords=["implement", "code", "build", "create", "write", "develop", "construct", "generate", "refactor", "fix"],
        default_minutes=30,
        scopes={"refactor": 45, "feature": 60, "fix": 20},
        dependencies=["PlanningAgent", "ResearchAgent"],
        system_prompt=(
            "You are an Implementation Agent that writes production code.\n"
            "Always return responses in JSON format with files, explanation, dependencies, "
            "and test suggestions."
        ),
    ),
    AgentSpec(
        name="QualityAgent",
        keywords=[
            "review",
            "audit",
            "inspect",
            "assess",
            "evaluate",
            "quality",
            "security",
            "vulnerability",
            "implications",
            "risk",
        ],
        default_minutes=15,
        scopes={"comprehensive": 30, "full": 30, "security": 25},
        system_prompt=(
            "You are a Quality Agent that reviews code for correctness, security and maintainability.\n"
            "Always return responses in JSON format with score, issues, suggestions, and security notes."
        ),
    ),
    AgentSpec(
        name="DocumentationAgent",
        keywords=["document", "explain", "describe", "write docs", "readme", "guide", "tutorial", "api docs", "diagram"],
        default_minutes=25,
        scopes={"comprehensive": 40, "full": 40, "api": 30, "diagram": 20},
        dependencies=["ImplementationAgent", "TestingAgent"],
        system_prompt=(
            "You are a Documentation Agent that writes developer documentation.\n"
            "Always return responses in JSON format with sections and content."
        ),
    ),
]


def build_agent(
    spec: AgentSpec,
    store: MemoryStore,
    aggregator: ContextAggregator,
    provider: Provider,
    collector: Optional[MetricsCollector] = None,
    token_tracker: Optional[TokenTracker] = None,
    settings: Optional[Settings] = None,
) -> Agent:
    """
    Build an agent with the default stack: memory, AI, canned handler.

    Args:
        spec: Agent definition.
        store: Memory store.
        aggregator: Context aggregator over the store.
        provider: Provider for the AI layer.
        collector: Metrics collector receiving token usage.
        token_tracker: Token tracker receiving token totals.
        settings: Application settings.

    Returns:
        Configured Agent.
    """
    settings = settings or get_settings()
    return Agent(
        spec.name,
        keyword_capability(spec.keywords, spec.default_minutes, spec.scopes, spec.dependencies),
        handler=MockHandler(settings.agent),
        middlewares=[
            MemoryMiddleware(store, aggregator, settings.agent, settings.memory),
            AIMiddleware(
                provider,
                settings.agent,
                collector=collector,
                token_tracker=token_tracker,
                system_prompt=settings.agent.system_prompt or spec.system_prompt,
            ),
        ],
        ai_enabled=settings.agent.ai_enabled,
    )


def create_default_agents(
    store: MemoryStore,
    aggregator: ContextAggregator,
    provider: Provider,
    collector: Optional[MetricsCollector] = None,
    token_tracker: Optional[TokenTracker] = None,
    settings: Optional[Settings] = None,
    phase_gated: bool = True,
) -> list[Agent]:
    """
    Build the catalogue's agents in routing order.

    Args:
        phase_gated: Only build agents enabled in the active phase.

    Returns:
        Agents in catalogue order.
    """
    settings = settings or get_settings()
    enabled = get_phase_config(settings.phase).enabled_agents
    return [
        build_agent(spec, store, aggregator, provider, collector, token_tracker, settings)
        for spec in AGENT_CATALOG
        if not phase_gated or spec.name in enabled
    ]
