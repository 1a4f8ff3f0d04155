"""
Per-agent working context built on top of the memory store.

Each agent gets a bounded list of recent tasks, a topic -> facts knowledge
map and context shared by other agents. The view is rebuilt at startup by
replaying task results from the store and updated after every execution.
"""

import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional

from devagents.config import MemorySettings, get_settings
from devagents.logging import EventType, get_agent_logger
from devagents.memory.models import KnowledgeContent, Memory, MemoryType, utc_now
from devagents.memory.store import MemoryStore


@dataclass
class AgentContext:
    """Mutable working context of a single agent."""

    recent_tasks: deque = field(default_factory=lambda: deque(maxlen=20))
    knowledge: dict[str, list[str]] = field(default_factory=dict)
    shared_context: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class ContextView:
    """Snapshot of an agent's context plus memories pulled from the store."""

    agent_name: str
    recent_tasks: list[dict[str, Any]]
    knowledge: dict[str, list[str]]
    shared_context: dict[str, dict[str, Any]]
    relevant_memories: list[Memory] = field(default_factory=list)
    shared_knowledge: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "recent_tasks": self.recent_tasks,
            "knowledge": self.knowledge,
            "shared_context": self.shared_context,
            "relevant_memories": [m.model_dump(mode="json") for m in self.relevant_memories],
            "shared_knowledge": self.shared_knowledge,
        }


def as_facts(value: Any) -> list[str]:
    """Normalize a knowledge value into a list of fact strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set)):
        return [item if isinstance(item, str) else json.dumps(item, default=str) for item in value]
    if isinstance(value, dict):
        return [json.dumps(value, default=str)]
    return [str(value)]


class ContextAggregator:
    """
    Aggregates per-agent context and cross-agent shared knowledge.

    Example:
        ```python
        aggregator = ContextAggregator(store)
        aggregator.update_context("ResearchAgent", knowledge={"auth": ["uses JWT"]})
        view = aggregator.get_context("ImplementationAgent", "auth")
        view.shared_knowledge  # {"auth": ["uses JWT"]}
        ```
    """

    def __init__(self, store: MemoryStore, settings: Optional[MemorySettings] = None):
        """
        Initialize the aggregator and replay stored task results.

        Args:
            store: Memory store backing the aggregator.
            settings: Memory settings.
        """
        self.store = store
        self.settings = settings or get_settings().memory
        self._contexts: dict[str, AgentContext] = {}
        self._logger = get_agent_logger()

        self.rebuild()

    def rebuild(self) -> None:
        """Rebuild recent tasks by replaying task results in chronological order."""
        self._contexts.clear()
        results = self.store.query(type=MemoryType.TASK_RESULT, limit=self.settings.replay_limit)
        for memory in reversed(results):
            content = memory.content
            self._ensure(memory.agent_name).recent_tasks.append(
                {
                    "task": content.task,
                    "success": content.success,
                    "duration_ms": content.duration_ms,
                    "timestamp": memory.timestamp.isoformat(),
                }
            )

    def _ensure(self, agent_name: str) -> AgentContext:
        context = self._contexts.get(agent_name)
        if context is None:
            context = AgentContext(recent_tasks=deque(maxlen=self.settings.recent_task_limit))
            self._contexts[agent_name] = context
        return context

    def get_context(self, agent_name: str, task_type: Optional[str] = None) -> ContextView:
        """
        Get a snapshot of an agent's context.

        Args:
            agent_name: Agent to look up.
            task_type: When given, attach the agent's memories mentioning it.

        Returns:
            ContextView with relevant memories and system-wide shared knowledge.
        """
        context = self._ensure(agent_name)
        relevant: list[Memory] = []
        if task_type:
            relevant = self.store.query(
                agent_name=agent_name,
                search=task_type,
                limit=self.settings.context_memory_limit,
            )

        return ContextView(
            agent_name=agent_name,
            recent_tasks=list(context.recent_tasks),
            knowledge={topic: list(facts) for topic, facts in context.knowledge.items()},
            shared_context=dict(context.shared_context),
            relevant_memories=relevant,
            shared_knowledge=self.shared_knowledge(),
        )

    def shared_knowledge(self) -> dict[str, list[str]]:
        """Topic -> facts from every confident knowledge memory; newest wins."""
        knowledge: dict[str, list[str]] = {}
        memories = self.store.query(type=MemoryType.KNOWLEDGE)
        for memory in reversed(memories):
            if memory.content.confidence > self.settings.knowledge_confidence_threshold:
                knowledge[memory.content.topic] = list(memory.content.facts)
        return knowledge

    def update_context(
        self,
        agent_name: str,
        knowledge: Optional[dict[str, Any]] = None,
        task: Optional[dict[str, Any] | str] = None,
        shared_context: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Merge new information into an agent's context.

        Knowledge is additive: new topics are added and new facts appended,
        nothing is removed. Every knowledge entry is also persisted as a
        knowledge memory.

        Args:
            agent_name: Agent whose context to update.
            knowledge: Topic -> facts (or a single value) to merge.
            task: Task record (or task text) to append to recent tasks.
            shared_context: Entries merged into the agent's shared context.
        """
        context = self._ensure(agent_name)

        for topic, value in (knowledge or {}).items():
            facts = as_facts(value)
            known = context.knowledge.setdefault(topic, [])
            known.extend(fact for fact in facts if fact not in known)

            self.store.add(
                Memory.create(
                    agent_name,
                    MemoryType.KNOWLEDGE,
                    KnowledgeContent(
                        topic=topic,
                        facts=facts,
                        source=agent_name,
                        confidence=self.settings.learned_knowledge_confidence,
                    ),
                )
            )

        if task is not None:
            record = {"task": task} if isinstance(task, str) else dict(task)
            record.setdefault("timestamp", utc_now().isoformat())
            context.recent_tasks.append(record)

        if shared_context:
            context.shared_context.update(shared_context)

        self._logger.debug(
            f"Context updated: {agent_name}",
            event_type=EventType.CONTEXT_UPDATED,
            data={
                "agent_name": agent_name,
                "knowledge_topics": list((knowledge or {}).keys()),
                "recent_tasks": len(context.recent_tasks),
            },
        )

    def share_context(self, from_agent: str, to_agent: str, payload: dict[str, Any]) -> None:
        """Publish a payload into another agent's shared context.

        A later share from the same source overwrites the earlier one.
        """
        self._ensure(to_agent).shared_context[from_agent] = {
            **payload,
            "shared_at": utc_now().isoformat(),
        }
        self._logger.debug(
            f"Context shared: {from_agent} -> {to_agent}",
            event_type=EventType.CONTEXT_SHARED,
            data={"from_agent": from_agent, "to_agent": to_agent},
        )

    def clear_context(self, agent_name: str) -> None:
        self._contexts.pop(agent_name, None)

    def summarize_context(self, agent_name: str) -> str:
        """Human-readable digest of an agent's context, for diagnostics."""
        view = self.get_context(agent_name)
        lines = [
            f"Context Summary for {agent_name}:",
            f"- Recent tasks: {len(view.recent_tasks)}",
            f"- Knowledge topics: {', '.join(view.knowledge) or 'none'}",
            f"- Shared context from: {', '.join(view.shared_context) or 'none'}",
            f"- Relevant memories: {len(view.relevant_memories)}",
        ]
        return "\n".join(lines)
