"""
Memory middleware: loads context before an execution and records its outcome.
"""

import time
import traceback
from dataclasses import dataclass, field
from typing import Any, Optional

from devagents.agents.agent import Invocation, Middleware, NextLayer
from devagents.agents.messages import Message
from devagents.config import AgentSettings, MemorySettings, get_settings
from devagents.logging import EventType, get_agent_logger
from devagents.memory.context import ContextAggregator, ContextView
from devagents.memory.models import (
    ConversationContent,
    ErrorContent,
    ErrorDetail,
    KnowledgeContent,
    Memory,
    MemoryType,
    TaskResultContent,
)
from devagents.memory.relevance import rank_memories
from devagents.memory.store import MemoryStore

# Response fields treated as knowledge worth keeping
KNOWLEDGE_FIELDS = ("findings", "analysis")


@dataclass
class LoadedContext:
    """Everything the memory layer gathered for one execution."""

    view: ContextView
    recent_memories: list[Memory] = field(default_factory=list)
    relevant_memories: list[Memory] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.view.to_dict(),
            "recent_memories": [_memory_summary(m) for m in self.recent_memories],
            "ranked_memories": [_memory_summary(m) for m in self.relevant_memories],
        }


def _memory_summary(memory: Memory) -> dict[str, Any]:
    summary = {
        "type": memory.type.value,
        "content": memory.content.model_dump(mode="json", exclude_none=True),
        "timestamp": memory.timestamp.isoformat(),
    }
    if "relevance_score" in memory.metadata:
        summary["relevance_score"] = memory.metadata["relevance_score"]
    return summary


class MemoryMiddleware(Middleware):
    """
    Wraps execution with persistent memory.

    Before: loads the aggregator context, the agent's recent memories and
    relevance-ranked memories, and injects them into ``payload.context``.
    After success: stores conversation and task result memories and
    updates the aggregator. After failure: stores error and failed task
    result memories, then re-raises.
    """

    def __init__(
        self,
        store: MemoryStore,
        aggregator: ContextAggregator,
        settings: Optional[AgentSettings] = None,
        memory_settings: Optional[MemorySettings] = None,
    ):
        """
        Initialize the memory layer.

        Args:
            store: Memory store.
            aggregator: Context aggregator over the same store.
            settings: Agent settings with recall limits.
            memory_settings: Memory settings with TTLs and confidences.
        """
        self.store = store
        self.aggregator = aggregator
        self.settings = settings or get_settings().agent
        self.memory_settings = memory_settings or get_settings().memory
        self.enabled = self.settings.memory_enabled
        self.max_recall = self.settings.relevant_memory_limit
        self._logger = get_agent_logger()

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def set_max_recall(self, limit: int) -> None:
        self.max_recall = max(0, limit)

    async def execute(self, message: Message, call_next: NextLayer, invocation: Invocation) -> Message:
        if not self.enabled:
            return await call_next(message)

        agent_name = invocation.agent.name
        task = message.payload.task
        caller_context = message.payload.context or {}

        loaded = self.load_context(agent_name, task)
        invocation.memory_context = loaded
        enriched = message.with_context({**caller_context, "memory": loaded.to_dict()})

        start_time = time.perf_counter()
        try:
            response = await call_next(enriched)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self._store_failure(agent_name, task, e, duration_ms)
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._store_success(agent_name, task, caller_context, response, duration_ms)
        return response

    def load_context(self, agent_name: str, task: str) -> LoadedContext:
        """
        Gather memory context for a task.

        Args:
            agent_name: Executing agent.
            task: Task text.

        Returns:
            LoadedContext with the aggregator view, recent memories and
            relevance-ranked memories.
        """
        view = self.aggregator.get_context(agent_name, task)
        recent = self.store.query(agent_name=agent_name, limit=self.settings.recent_memory_limit)
        relevant = self._find_relevant(agent_name, task)

        self._logger.debug(
            f"Loaded memory context for {agent_name}",
            event_type=EventType.MEMORY_RECALLED,
            data={
                "agent_name": agent_name,
                "recent": len(recent),
                "relevant": len(relevant),
                "matching": len(view.relevant_memories),
            },
        )
        return LoadedContext(view=view, recent_memories=recent, relevant_memories=relevant)

    def _find_relevant(self, agent_name: str, task: str) -> list[Memory]:
        own = self.store.query(agent_name=agent_name, search=task, limit=self.max_recall)
        knowledge = [
            m
            for m in self.store.query(type=MemoryType.KNOWLEDGE)
            if m.content.confidence > self.memory_settings.knowledge_confidence_threshold
        ]

        candidates: dict[str, Memory] = {}
        for memory in own + knowledge:
            candidates.setdefault(memory.id, memory)

        ranked = rank_memories(task, candidates.values())
        return [m for m in ranked if m.metadata["relevance_score"] > 0][: self.max_recall]

    def _store_success(
        self,
        agent_name: str,
        task: str,
        caller_context: dict[str, Any],
        response: Message,
        duration_ms: float,
    ) -> None:
        payload = response.payload.to_dict()
        self.store.add(
            Memory.create(
                agent_name,
                MemoryType.CONVERSATION,
                ConversationContent(input=task, output=payload, context=caller_context or None),
                ttl=self.memory_settings.conversation_ttl_seconds,
            )
        )
        self.store.add(
            Memory.create(
                agent_name,
                MemoryType.TASK_RESULT,
                TaskResultContent(task=task, result=payload, success=True, duration_ms=duration_ms),
                ttl=self.memory_settings.task_result_ttl_seconds,
            )
        )

        knowledge = {}
        for field_name in KNOWLEDGE_FIELDS:
            if payload.get(field_name):
                knowledge[task] = payload[field_name]
                break

        self.aggregator.update_context(
            agent_name,
            knowledge=knowledge or None,
            task={"task": task, "success": True, "duration_ms": duration_ms},
        )

    def _store_failure(self, agent_name: str, task: str, error: Exception, duration_ms: float) -> None:
        self.store.add(
            Memory.create(
                agent_name,
                MemoryType.ERROR,
                ErrorContent(
                    task=task,
                    error=ErrorDetail(
                        message=str(error),
                        name=type(error).__name__,
                        stack="".join(traceback.format_exception(type(error), error, error.__traceback__)),
                    ),
                ),
                ttl=self.memory_settings.error_ttl_seconds,
            )
        )
        self.store.add(
            Memory.create(
                agent_name,
                MemoryType.TASK_RESULT,
                TaskResultContent(task=task, result=None, success=False, duration_ms=duration_ms),
                ttl=self.memory_settings.task_result_ttl_seconds,
            )
        )
        self.aggregator.update_context(
            agent_name,
            task={"task": task, "success": False, "duration_ms": duration_ms, "error": str(error)},
        )

    # Helpers exposed through Agent

    def share_knowledge(
        self,
        agent_name: str,
        topic: str,
        facts: list[str],
        target_agent: Optional[str] = None,
    ) -> Memory:
        """
        Publish knowledge system-wide, optionally pushing it into another agent's context.

        Returns:
            The stored knowledge memory.
        """
        memory = self.store.add(
            Memory.create(
                agent_name,
                MemoryType.KNOWLEDGE,
                KnowledgeContent(
                    topic=topic,
                    facts=list(facts),
                    source=agent_name,
                    confidence=self.memory_settings.shared_knowledge_confidence,
                ),
            )
        )
        if target_agent:
            self.aggregator.share_context(agent_name, target_agent, {"knowledge": {topic: list(facts)}})
        return memory

    def recall_memories(self, agent_name: str, query: str, limit: int = 5) -> list[Memory]:
        return self.store.query(agent_name=agent_name, search=query, limit=limit)

    def clear_memories(self, agent_name: str) -> None:
        self.store.clear(agent_name)
        self.aggregator.clear_context(agent_name)
