"""
Agent capability descriptors.
"""

from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class Capability:
    """What an agent can do and how long it expects to take.

    Attributes:
        can_handle: Predicate deciding whether the agent accepts a task.
        estimate_time: Estimated minutes for a task.
        dependencies: Names of agents whose output this agent builds on.
    """

    can_handle: Callable[[str], bool]
    estimate_time: Callable[[str], float]
    dependencies: list[str] = field(default_factory=list)


@dataclass
class KeywordMatcher:
    """Case-insensitive keyword predicate."""

    keywords: list[str]

    def __call__(self, task: str) -> bool:
        task_lower = task.lower()
        return any(keyword in task_lower for keyword in self.keywords)


@dataclass
class TimeEstimator:
    """Estimate minutes from the first matching scope phrase."""

    default_minutes: float
    scopes: dict[str, float] = field(default_factory=dict)

    def __call__(self, task: str) -> float:
        task_lower = task.lower()
        for phrase, minutes in self.scopes.items():
            if phrase in task_lower:
                return minutes
        return self.default_minutes


def keyword_capability(
    keywords: list[str],
    default_minutes: float = 5.0,
    scopes: dict[str, float] | None = None,
    dependencies: list[str] | None = None,
) -> Capability:
    """
    Build a capability that accepts tasks mentioning any keyword.

    Args:
        keywords: Lowercase keywords.
        default_minutes: Estimate when no scope phrase matches.
        scopes: Phrase -> minutes, checked in order.
        dependencies: Agent names this agent builds on.

    Returns:
        Capability instance.
    """
    return Capability(
        can_handle=KeywordMatcher(keywords),
        estimate_time=TimeEstimator(default_minutes, scopes or {}),
        dependencies=dependencies or [],
    )
