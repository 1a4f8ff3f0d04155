"""
File-backed memory store with TTL expiry.

Memories are kept in process and written through to one JSON file per
agent (``<storage_dir>/<agent>-memory.json``). Persistence is best effort:
I/O failures are logged and the in-memory state stays authoritative.
"""

import asyncio
import contextlib
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from devagents.config import MemorySettings, get_settings
from devagents.errors import MemoryIOError
from devagents.logging import EventType, get_agent_logger
from devagents.memory.models import Memory, MemoryQuery, utc_now

MEMORY_FILE_SUFFIX = "-memory.json"


class MemoryStore:
    """
    Durable, queryable store of agent memories.

    Example:
        ```python
        async with MemoryStore() as store:
            store.add(Memory.create("ResearchAgent", MemoryType.KNOWLEDGE, {...}))
            recent = store.query(agent_name="ResearchAgent", limit=10)
        ```
    """

    def __init__(
        self,
        settings: Optional[MemorySettings] = None,
        storage_dir: Optional[Path] = None,
    ):
        """
        Initialize the store and load every memory file found on disk.

        Args:
            settings: Memory settings.
            storage_dir: Override for settings.storage_dir.
        """
        self.settings = settings or get_settings().memory
        self.storage_dir = Path(storage_dir or self.settings.storage_dir)
        self._memories: dict[str, Memory] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self._logger = get_agent_logger()

        self._load_all()

    def __len__(self) -> int:
        return len(self._memories)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def add(self, memory: Memory) -> Memory:
        """Insert a memory, overwriting any record with the same id."""
        previous = self._memories.get(memory.id)
        self._memories[memory.id] = memory
        self._save_agent(memory.agent_name)
        if previous is not None and previous.agent_name != memory.agent_name:
            self._save_agent(previous.agent_name)
        self._logger.log_memory_stored(memory.id, memory.agent_name, memory.type.value)
        return memory

    def get(self, memory_id: str) -> Optional[Memory]:
        return self._memories.get(memory_id)

    def query(self, query: Optional[MemoryQuery] = None, **filters: Any) -> list[Memory]:
        """
        Find memories matching every given filter.

        Args:
            query: Prepared query. Keyword filters build one when omitted.
            **filters: agent_name, type, time_range, search, limit.

        Returns:
            Matching memories, newest first, truncated to the query limit.
        """
        query = query or MemoryQuery(**filters)
        matches = [m for m in self._memories.values() if query.matches(m)]
        matches.sort(key=lambda m: m.timestamp, reverse=True)
        if query.limit is not None:
            matches = matches[: query.limit]
        return matches

    def update(self, memory_id: str, **changes: Any) -> Optional[Memory]:
        """
        Replace a stored memory with a copy carrying the given field changes.

        Returns:
            The new record, or None if the id is unknown.
        """
        current = self._memories.get(memory_id)
        if current is None:
            return None
        updated = Memory.model_validate({**current.model_dump(), **changes, "id": memory_id})
        self._memories[memory_id] = updated
        self._save_agent(updated.agent_name)
        if updated.agent_name != current.agent_name:
            self._save_agent(current.agent_name)
        return updated

    def delete(self, memory_id: str) -> bool:
        memory = self._memories.pop(memory_id, None)
        if memory is None:
            return False
        self._save_agent(memory.agent_name)
        return True

    def clear(self, agent_name: Optional[str] = None) -> None:
        """Remove one agent's memories (or all) together with the backing files."""
        if agent_name is None:
            self._memories.clear()
            paths = list(self.storage_dir.glob(f"*{MEMORY_FILE_SUFFIX}")) if self.storage_dir.exists() else []
        else:
            self._memories = {
                k: m for k, m in self._memories.items() if m.agent_name != agent_name
            }
            paths = [self._agent_path(agent_name)]

        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                self._report_io_error(f"Failed to delete memory file: {e}", path)

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """
        Evict every memory whose ttl has passed.

        Args:
            now: Reference time, defaults to the current time.

        Returns:
            Number of memories evicted.
        """
        now = now or utc_now()
        expired = [m for m in self._memories.values() if m.is_expired(now)]
        for memory in expired:
            del self._memories[memory.id]
        for agent_name in {m.agent_name for m in expired}:
            self._save_agent(agent_name)

        if expired:
            self._logger.info(
                f"Evicted {len(expired)} expired memories",
                event_type=EventType.MEMORY_PRUNED,
                data={"count": len(expired)},
            )
        return len(expired)

    def flush(self) -> None:
        """Write every agent's memories to disk."""
        for agent_name in {m.agent_name for m in self._memories.values()}:
            self._save_agent(agent_name)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def close(self) -> None:
        """Stop the sweep and flush to disk."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        self.flush()

    async def __aenter__(self) -> "MemoryStore":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            self.cleanup_expired()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _agent_path(self, agent_name: str) -> Path:
        safe_name = agent_name.replace("/", "_").replace("\\", "_")
        return self.storage_dir / f"{safe_name}{MEMORY_FILE_SUFFIX}"

    def _save_agent(self, agent_name: str) -> None:
        path = self._agent_path(agent_name)
        records = [
            m.model_dump(mode="json")
            for m in self._memories.values()
            if m.agent_name == agent_name
        ]
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            # Write atomically using temp file
            temp_path = path.with_suffix(".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False, default=str)
            temp_path.replace(path)
        except (OSError, TypeError, ValueError) as e:
            self._report_io_error(f"Failed to save memories for {agent_name}: {e}", path)

    def _load_all(self) -> None:
        if not self.storage_dir.exists():
            return

        for path in sorted(self.storage_dir.glob(f"*{MEMORY_FILE_SUFFIX}")):
            try:
                with open(path, encoding="utf-8") as f:
                    records = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                self._report_io_error(f"Skipping unreadable memory file: {e}", path)
                continue

            if not isinstance(records, list):
                self._report_io_error("Skipping memory file without a record list", path)
                continue

            for record in records:
                try:
                    memory = Memory.model_validate(record)
                except (ValidationError, ValueError, KeyError) as e:
                    self._report_io_error(f"Skipping invalid memory record: {e}", path)
                    continue
                self._memories[memory.id] = memory

        self._logger.debug(
            f"Loaded {len(self._memories)} memories",
            data={"storage_dir": str(self.storage_dir), "count": len(self._memories)},
        )

    def _report_io_error(self, message: str, path: Path) -> None:
        error = MemoryIOError(message, path=str(path))
        self._logger.error(str(error), event_type=EventType.MEMORY_IO_ERROR, error=message)
