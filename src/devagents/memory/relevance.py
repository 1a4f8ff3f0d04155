"""
Word-overlap relevance scoring for memory recall.
"""

from collections.abc import Iterable

from devagents.memory.models import Memory


def relevance_score(task: str, memory: Memory) -> float:
    """
    Fraction of the task's words that occur in the memory's content.

    Matching is a case-insensitive substring test against the serialized
    content. An empty task scores 0.0.
    """
    words = task.split()
    if not words:
        return 0.0
    haystack = memory.serialized_content().lower()
    hits = sum(1 for word in words if word.lower() in haystack)
    return hits / len(words)


def rank_memories(task: str, memories: Iterable[Memory], limit: int | None = None) -> list[Memory]:
    """
    Score memories against a task and order them by descending relevance.

    The sort is stable, so ties keep the input order. Returned memories are
    copies carrying ``metadata.relevance_score``.

    Args:
        task: Task text to score against.
        memories: Candidate memories, usually newest first.
        limit: Maximum number of memories to return.

    Returns:
        Scored copies, most relevant first.
    """
    scored = [memory.with_relevance(relevance_score(task, memory)) for memory in memories]
    scored.sort(key=lambda m: m.metadata["relevance_score"], reverse=True)
    if limit is not None:
        scored = scored[:limit]
    return scored
