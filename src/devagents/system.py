"""
System bootstrap.

Builds one fully wired object graph from settings: memory store, context
aggregator, metrics collector, token tracker, provider, agents and
orchestrator. Nothing here is a process-wide singleton; call
``create_system`` once per independent system.

Usage:
    from devagents.system import create_system

    system = create_system()
    async with system:
        result = await system.orchestrator.process_task("research the auth flow")
"""

from dataclasses import dataclass, field
from typing import Optional

from devagents.agents.agent import Agent
from devagents.agents.catalog import create_default_agents
from devagents.agents.orchestrator import Orchestrator
from devagents.config import Settings, get_settings
from devagents.logging import configure_agent_logging, get_agent_logger
from devagents.memory.context import ContextAggregator
from devagents.memory.store import MemoryStore
from devagents.metrics.collector import MetricsCollector
from devagents.metrics.storage import MetricsStorage
from devagents.metrics.token_tracker import TokenTracker
from devagents.phases import get_phase_config
from devagents.providers.base import Provider
from devagents.providers.factory import create_provider


@dataclass
class AgentSystem:
    """A wired set of components."""

    settings: Settings
    store: MemoryStore
    aggregator: ContextAggregator
    collector: MetricsCollector
    token_tracker: TokenTracker
    provider: Provider
    orchestrator: Orchestrator
    agents: list[Agent] = field(default_factory=list)

    async def start(self) -> None:
        """Start background memory expiry."""
        await self.store.start()

    async def close(self) -> None:
        """Stop background work and flush memory to disk."""
        await self.store.close()

    async def __aenter__(self) -> "AgentSystem":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def set_ai_enabled(self, enabled: bool) -> None:
        for agent in self.agents:
            if enabled:
                agent.enable_ai()
            else:
                agent.disable_ai()


def create_system(
    settings: Optional[Settings] = None,
    provider: Optional[Provider] = None,
    phase_gated: bool = True,
) -> AgentSystem:
    """
    Build and wire every component.

    Args:
        settings: Application settings. Uses global settings if not provided.
        provider: Provider override; otherwise chosen from settings.
        phase_gated: Only register agents enabled in the active phase.

    Returns:
        AgentSystem with all agents registered on the orchestrator.
    """
    settings = settings or get_settings()
    configure_agent_logging(settings.log_level)
    settings.ensure_directories()

    store = MemoryStore(settings.memory)
    aggregator = ContextAggregator(store, settings.memory)
    collector = MetricsCollector(MetricsStorage(settings.metrics), settings.comparison)
    token_tracker = TokenTracker(
        roi_settings=settings.roi,
        phase_settings=settings.phase,
        storage_settings=settings.metrics,
    )
    provider = provider or create_provider(settings.llm, settings.agent)

    agents = create_default_agents(
        store,
        aggregator,
        provider,
        collector=collector,
        token_tracker=token_tracker,
        settings=settings,
        phase_gated=phase_gated,
    )
    orchestrator = Orchestrator(collector)
    for agent in agents:
        orchestrator.register_agent(agent)

    get_agent_logger().info(
        f"System initialized in phase {get_phase_config(settings.phase).phase}",
        data={
            "provider": provider.provider_name,
            "agents": orchestrator.registered_agents(),
        },
    )
    return AgentSystem(
        settings=settings,
        store=store,
        aggregator=aggregator,
        collector=collector,
        token_tracker=token_tracker,
        provider=provider,
        orchestrator=orchestrator,
        agents=agents,
    )
