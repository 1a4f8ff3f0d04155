"""
Unit tests for memory/context.py.
"""

from datetime import timedelta

from devagents.memory.context import ContextAggregator, as_facts
from devagents.memory.models import KnowledgeContent, Memory, MemoryType, TaskResultContent, utc_now


def _knowledge(topic: str, facts: list[str], confidence: float, seconds_ago: float = 0) -> Memory:
    memory = Memory.create(
        "ResearchAgent",
        MemoryType.KNOWLEDGE,
        KnowledgeContent(topic=topic, facts=facts, confidence=confidence),
    )
    if seconds_ago:
        memory = memory.model_copy(update={"timestamp": utc_now() - timedelta(seconds=seconds_ago)})
    return memory


class TestAsFacts:
    """Tests for knowledge value normalization."""

    def test_values(self):
        """Test strings, lists, dicts and None normalize to fact lists."""
        assert as_facts(None) == []
        assert as_facts("one") == ["one"]
        assert as_facts(["a", "b"]) == ["a", "b"]
        assert as_facts([{"k": 1}]) == ['{"k": 1}']
        assert as_facts({"k": 1}) == ['{"k": 1}']
        assert as_facts(3) == ["3"]


class TestContextAggregator:
    """Tests for per-agent context."""

    def test_empty_context(self, aggregator):
        """Test an unknown agent gets an empty view."""
        view = aggregator.get_context("ResearchAgent")
        assert view.recent_tasks == []
        assert view.knowledge == {}
        assert view.shared_context == {}
        assert view.relevant_memories == []

    def test_knowledge_is_additive(self, aggregator):
        """Test new facts are appended and nothing is removed."""
        aggregator.update_context("ResearchAgent", knowledge={"auth": ["uses JWT"]})
        aggregator.update_context("ResearchAgent", knowledge={"auth": ["uses JWT", "tokens expire"], "db": "postgres"})
        view = aggregator.get_context("ResearchAgent")
        assert view.knowledge == {"auth": ["uses JWT", "tokens expire"], "db": ["postgres"]}

    def test_knowledge_persisted_every_time(self, aggregator, store):
        """Test every knowledge entry is stored with confidence 0.8, without de-duplication."""
        aggregator.update_context("ResearchAgent", knowledge={"auth": ["uses JWT"]})
        aggregator.update_context("ResearchAgent", knowledge={"auth": ["uses JWT"]})
        stored = store.query(type=MemoryType.KNOWLEDGE)
        assert len(stored) == 2
        assert all(m.content.confidence == 0.8 for m in stored)
        assert all(m.content.source == "ResearchAgent" for m in stored)

    def test_recent_tasks_ring_buffer(self, aggregator):
        """Test recent tasks are capped at the configured limit."""
        for i in range(25):
            aggregator.update_context("ResearchAgent", task=f"task {i}")
        tasks = aggregator.get_context("ResearchAgent").recent_tasks
        assert len(tasks) == 20
        assert tasks[0]["task"] == "task 5"
        assert tasks[-1]["task"] == "task 24"
        assert "timestamp" in tasks[-1]

    def test_relevant_memories_for_task_type(self, aggregator, store):
        """Test memories mentioning the task type are attached."""
        store.add(
            Memory.create(
                "ResearchAgent",
                MemoryType.TASK_RESULT,
                TaskResultContent(task="research login flow", success=True),
            )
        )
        view = aggregator.get_context("ResearchAgent", "login")
        assert len(view.relevant_memories) == 1
        assert aggregator.get_context("ResearchAgent", "payments").relevant_memories == []

    def test_shared_knowledge_threshold(self, aggregator, store):
        """Test only knowledge above 0.7 confidence is shared."""
        store.add(_knowledge("auth", ["jwt"], 0.9))
        store.add(_knowledge("cache", ["redis"], 0.7))
        assert aggregator.shared_knowledge() == {"auth": ["jwt"]}

    def test_shared_knowledge_newest_wins(self, aggregator, store):
        """Test the newest memory for a topic wins."""
        store.add(_knowledge("auth", ["sessions"], 0.9, seconds_ago=60))
        store.add(_knowledge("auth", ["jwt"], 0.9))
        assert aggregator.get_context("Anyone").shared_knowledge == {"auth": ["jwt"]}

    def test_share_context_overwrites_per_source(self, aggregator):
        """Test a later share from the same source replaces the earlier one."""
        aggregator.share_context("ResearchAgent", "ImplementationAgent", {"plan": "v1"})
        aggregator.share_context("ResearchAgent", "ImplementationAgent", {"plan": "v2"})
        aggregator.share_context("QualityAgent", "ImplementationAgent", {"score": 90})
        shared = aggregator.get_context("ImplementationAgent").shared_context
        assert shared["ResearchAgent"]["plan"] == "v2"
        assert "shared_at" in shared["ResearchAgent"]
        assert shared["QualityAgent"]["score"] == 90

    def test_clear_context(self, aggregator):
        """Test clearing resets an agent's context."""
        aggregator.update_context("ResearchAgent", knowledge={"auth": "jwt"}, task="x")
        aggregator.clear_context("ResearchAgent")
        view = aggregator.get_context("ResearchAgent")
        assert view.knowledge == {}
        assert view.recent_tasks == []

    def test_rebuild_replays_task_results(self, store, memory_settings):
        """Test a new aggregator rebuilds recent tasks in chronological order."""
        for i, seconds_ago in enumerate([30, 20, 10]):
            memory = Memory.create(
                "ResearchAgent",
                MemoryType.TASK_RESULT,
                TaskResultContent(task=f"task {i}", success=True, duration_ms=5),
            ).model_copy(update={"timestamp": utc_now() - timedelta(seconds=seconds_ago)})
            store.add(memory)

        rebuilt = ContextAggregator(store, memory_settings)
        tasks = rebuilt.get_context("ResearchAgent").recent_tasks
        assert [t["task"] for t in tasks] == ["task 0", "task 1", "task 2"]
        assert tasks[0]["success"] is True

    def test_summarize_context(self, aggregator):
        """Test the diagnostic digest lists counts and topics."""
        aggregator.update_context("ResearchAgent", knowledge={"auth": "jwt"}, task="x")
        summary = aggregator.summarize_context("ResearchAgent")
        assert summary.startswith("Context Summary for ResearchAgent:")
        assert "- Recent tasks: 1" in summary
        assert "auth" in summary

    def test_view_to_dict(self, aggregator):
        """Test the view converts to plain data."""
        aggregator.update_context("ResearchAgent", knowledge={"auth": "jwt"})
        data = aggregator.get_context("ResearchAgent").to_dict()
        assert data["knowledge"] == {"auth": ["jwt"]}
        assert set(data) == {"recent_tasks", "knowledge", "shared_context", "relevant_memories", "shared_knowledge"}
