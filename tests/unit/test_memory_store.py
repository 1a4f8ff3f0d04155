"""
Unit tests for memory/store.py.
"""

import asyncio
import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from devagents.memory.models import (
    KnowledgeContent,
    Memory,
    MemoryQuery,
    MemoryType,
    TaskResultContent,
    TimeRange,
    utc_now,
)
from devagents.memory.store import MemoryStore


def _task_result(agent: str, task: str, seconds_ago: float = 0, ttl=None) -> Memory:
    memory = Memory.create(
        agent,
        MemoryType.TASK_RESULT,
        TaskResultContent(task=task, success=True, duration_ms=10),
        ttl=ttl,
    )
    if seconds_ago:
        memory = memory.model_copy(update={"timestamp": utc_now() - timedelta(seconds=seconds_ago)})
    return memory


# =============================================================================
# CRUD Tests
# =============================================================================


class TestMemoryStoreCrud:
    """Tests for add, get, update and delete."""

    def test_add_then_get(self, store):
        """Test a stored memory is returned unchanged."""
        memory = _task_result("ResearchAgent", "research auth")
        store.add(memory)
        assert store.get(memory.id) == memory
        assert len(store) == 1

    def test_get_unknown(self, store):
        """Test unknown ids return None."""
        assert store.get("missing") is None

    def test_add_overwrites_same_id(self, store):
        """Test adding an existing id replaces the record."""
        memory = _task_result("ResearchAgent", "first")
        store.add(memory)
        replacement = memory.model_copy(update={"content": TaskResultContent(task="second", success=False)})
        store.add(replacement)
        assert store.get(memory.id).content.task == "second"
        assert len(store) == 1

    def test_update_replaces_with_copy(self, store):
        """Test update swaps in a new record and leaves the old object intact."""
        memory = store.add(_task_result("ResearchAgent", "research auth"))
        updated = store.update(memory.id, metadata={"reviewed": True})
        assert updated.metadata == {"reviewed": True}
        assert store.get(memory.id).metadata == {"reviewed": True}
        assert memory.metadata == {}

    def test_update_unknown(self, store):
        """Test updating an unknown id returns None."""
        assert store.update("missing", ttl=5) is None

    def test_delete(self, store):
        """Test delete removes the record."""
        memory = store.add(_task_result("ResearchAgent", "x"))
        assert store.delete(memory.id) is True
        assert store.get(memory.id) is None
        assert store.delete(memory.id) is False


# =============================================================================
# Query Tests
# =============================================================================


class TestMemoryStoreQuery:
    """Tests for querying."""

    def test_newest_first(self, store):
        """Test results are ordered newest first."""
        old = store.add(_task_result("A", "old", seconds_ago=30))
        new = store.add(_task_result("A", "new"))
        middle = store.add(_task_result("A", "middle", seconds_ago=10))
        assert [m.id for m in store.query()] == [new.id, middle.id, old.id]

    def test_limit(self, store):
        """Test the limit keeps the newest results."""
        for i in range(5):
            store.add(_task_result("A", f"task {i}", seconds_ago=10 - i))
        results = store.query(limit=2)
        assert [m.content.task for m in results] == ["task 4", "task 3"]

    def test_filters(self, store):
        """Test agent, type and search filters combine."""
        store.add(_task_result("A", "research login"))
        store.add(_task_result("B", "research login"))
        store.add(
            Memory.create("A", MemoryType.KNOWLEDGE, KnowledgeContent(topic="login", confidence=0.9))
        )
        results = store.query(agent_name="A", type=MemoryType.TASK_RESULT, search="LOGIN")
        assert len(results) == 1
        assert results[0].agent_name == "A"

    def test_time_range(self, store):
        """Test time range filtering with a prepared query."""
        store.add(_task_result("A", "old", seconds_ago=3600))
        recent = store.add(_task_result("A", "recent"))
        window = TimeRange(start=utc_now() - timedelta(minutes=5), end=utc_now())
        results = store.query(MemoryQuery(time_range=window))
        assert [m.id for m in results] == [recent.id]


# =============================================================================
# Expiry Tests
# =============================================================================


class TestMemoryStoreExpiry:
    """Tests for TTL eviction."""

    def test_expired_memory_evicted(self, store):
        """Test ttl=1 written 2s ago is evicted by a cleanup pass."""
        expired = store.add(_task_result("A", "old", seconds_ago=2, ttl=1))
        assert store.cleanup_expired() == 1
        assert store.get(expired.id) is None

    def test_no_ttl_never_evicted(self, store):
        """Test memories without ttl survive cleanup far in the future."""
        memory = store.add(_task_result("A", "keep"))
        assert store.cleanup_expired(now=utc_now() + timedelta(days=36500)) == 0
        assert store.get(memory.id) is not None

    def test_live_memory_kept(self, store):
        """Test memories within their ttl are kept."""
        memory = store.add(_task_result("A", "fresh", ttl=3600))
        assert store.cleanup_expired() == 0
        assert store.get(memory.id) is not None

    def test_eviction_persisted(self, store, memory_settings):
        """Test evictions are written through to disk."""
        store.add(_task_result("A", "old", seconds_ago=2, ttl=1))
        store.cleanup_expired()
        assert len(MemoryStore(memory_settings)) == 0

    @pytest.mark.asyncio
    async def test_background_sweep(self, memory_settings):
        """Test the background sweep evicts without an explicit cleanup call."""
        store = MemoryStore(memory_settings)
        expired = store.add(_task_result("A", "old", seconds_ago=2, ttl=1))
        async with store:
            await asyncio.sleep(memory_settings.sweep_interval_seconds * 4)
            assert store.get(expired.id) is None

    @pytest.mark.asyncio
    async def test_close_stops_sweep(self, store):
        """Test close cancels the sweep task."""
        await store.start()
        sweeper = store._sweeper
        await store.close()
        assert sweeper.cancelled() or sweeper.done()
        assert store._sweeper is None


# =============================================================================
# Persistence Tests
# =============================================================================


class TestMemoryStorePersistence:
    """Tests for the file-backed persistence."""

    def test_one_file_per_agent(self, store, memory_settings):
        """Test memories are written to <agent>-memory.json."""
        store.add(_task_result("ResearchAgent", "x"))
        store.add(_task_result("QualityAgent", "y"))
        files = sorted(p.name for p in memory_settings.storage_dir.iterdir())
        assert files == ["QualityAgent-memory.json", "ResearchAgent-memory.json"]

    def test_reload_equals_original(self, store, memory_settings):
        """Test a memory read back from disk equals the stored one."""
        memory = store.add(
            Memory.create(
                "ResearchAgent",
                MemoryType.KNOWLEDGE,
                KnowledgeContent(topic="auth", facts=["jwt"], source="ResearchAgent", confidence=0.8),
                ttl=3600,
                metadata={"origin": "test"},
            )
        )
        reloaded = MemoryStore(memory_settings)
        assert reloaded.get(memory.id) == memory
        assert reloaded.get(memory.id).timestamp.tzinfo is not None

    def test_corrupt_file_skipped(self, memory_settings):
        """Test an unreadable file is skipped and other files still load."""
        memory_settings.storage_dir.mkdir(parents=True)
        (memory_settings.storage_dir / "Broken-memory.json").write_text("{not json")
        good = _task_result("Good", "x")
        (memory_settings.storage_dir / "Good-memory.json").write_text(
            json.dumps([good.model_dump(mode="json")])
        )
        store = MemoryStore(memory_settings)
        assert store.get(good.id) == good
        assert len(store) == 1

    def test_invalid_record_skipped(self, memory_settings):
        """Test invalid records are skipped individually."""
        memory_settings.storage_dir.mkdir(parents=True)
        good = _task_result("A", "x")
        records = [{"id": "bad", "type": "knowledge", "content": {}}, good.model_dump(mode="json")]
        (memory_settings.storage_dir / "A-memory.json").write_text(json.dumps(records))
        store = MemoryStore(memory_settings)
        assert len(store) == 1

    def test_clear_agent_removes_file(self, store, memory_settings):
        """Test clearing one agent deletes only its file."""
        store.add(_task_result("A", "x"))
        store.add(_task_result("B", "y"))
        store.clear("A")
        assert not (memory_settings.storage_dir / "A-memory.json").exists()
        assert (memory_settings.storage_dir / "B-memory.json").exists()
        assert [m.agent_name for m in store.query()] == ["B"]

    def test_clear_all(self, store, memory_settings):
        """Test clearing everything removes every file."""
        store.add(_task_result("A", "x"))
        store.add(_task_result("B", "y"))
        store.clear()
        assert len(store) == 0
        assert list(memory_settings.storage_dir.glob("*-memory.json")) == []

    def test_write_failure_not_raised(self, store):
        """Test persistence failures are logged, not raised."""
        with patch("devagents.memory.store.open", side_effect=OSError("disk full"), create=True):
            memory = store.add(_task_result("A", "x"))
        assert store.get(memory.id) == memory
