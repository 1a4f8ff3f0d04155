"""
Persistent agent memory: records, store, relevance scoring and context.
"""

from devagents.memory.context import AgentContext, ContextAggregator, ContextView
from devagents.memory.models import (
    CodeAnalysis,
    CodeAnalysisContent,
    ConversationContent,
    ErrorContent,
    ErrorDetail,
    KnowledgeContent,
    Memory,
    MemoryQuery,
    MemoryType,
    TaskResultContent,
    TimeRange,
    new_memory_id,
)
from devagents.memory.relevance import rank_memories, relevance_score
from devagents.memory.store import MemoryStore

__all__ = [
    "AgentContext",
    "CodeAnalysis",
    "CodeAnalysisContent",
    "ContextAggregator",
    "ContextView",
    "ConversationContent",
    "ErrorContent",
    "ErrorDetail",
    "KnowledgeContent",
    "Memory",
    "MemoryQuery",
    "MemoryStore",
    "MemoryType",
    "TaskResultContent",
    "TimeRange",
    "new_memory_id",
    "rank_memories",
    "relevance_score",
]
