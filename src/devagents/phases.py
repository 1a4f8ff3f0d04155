"""
Phased rollout configuration.

Each phase enables a set of agents and features and sets the targets the
system has to meet before moving on to the next phase.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from devagents.config import PhaseSettings, get_settings


class PhaseFeatures(BaseModel):
    model_config = ConfigDict(frozen=True)

    parallel_execution: bool = False
    visual_editor: bool = False
    advanced_memory: bool = False
    full_dashboard: bool = False
    chat_interface: bool = True
    github_actions: bool = False


class PhaseTargets(BaseModel):
    """Targets for leaving a phase. Percentages and a token multiplier vs baseline."""

    model_config = ConfigDict(frozen=True)

    target_time_reduction: float
    target_success_rate: float
    max_token_multiplier: float


class PhaseConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: int
    enabled_agents: tuple[str, ...]
    features: PhaseFeatures
    targets: PhaseTargets


PHASE_CONFIGS: dict[int, PhaseConfig] = {
    1: PhaseConfig(
        phase=1,
        enabled_agents=("ResearchAgent", "ImplementationAgent"),
        features=PhaseFeatures(chat_interface=True),
        targets=PhaseTargets(target_time_reduction=50, target_success_rate=90, max_token_multiplier=4),
    ),
    2: PhaseConfig(
        phase=2,
        enabled_agents=("ResearchAgent", "ImplementationAgent", "QualityAgent"),
        features=PhaseFeatures(
            parallel_execution=True,
            advanced_memory=True,
            chat_interface=True,
            github_actions=True,
        ),
        targets=PhaseTargets(target_time_reduction=70, target_success_rate=95, max_token_multiplier=10),
    ),
    3: PhaseConfig(
        phase=3,
        enabled_agents=(
            "ResearchAgent",
            "ImplementationAgent",
            "QualityAgent",
            "PlanningAgent",
            "DocumentationAgent",
            "TestingAgent",
        ),
        features=PhaseFeatures(
            parallel_execution=True,
            visual_editor=True,
            advanced_memory=True,
            full_dashboard=True,
            chat_interface=True,
            github_actions=True,
        ),
        targets=PhaseTargets(target_time_reduction=80, target_success_rate=98, max_token_multiplier=15),
    ),
}


def get_phase_config(settings: Optional[PhaseSettings] = None) -> PhaseConfig:
    """Configuration of the active phase."""
    settings = settings or get_settings().phase
    return PHASE_CONFIGS[settings.current]


def is_agent_enabled(agent_name: str, settings: Optional[PhaseSettings] = None) -> bool:
    return agent_name in get_phase_config(settings).enabled_agents


def is_feature_enabled(feature: str, settings: Optional[PhaseSettings] = None) -> bool:
    """Whether a feature flag is on in the active phase; unknown features are off."""
    return bool(getattr(get_phase_config(settings).features, feature, False))
