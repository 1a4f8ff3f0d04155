"""
Memory record models.

A Memory is an immutable, timestamped record written by one agent. Its
content is a tagged union selected by the memory type, so every record on
disk can be validated against the shape its type promises.
"""

import json
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class MemoryType(str, Enum):
    """Kinds of memory an agent can record."""

    CONVERSATION = "conversation"
    KNOWLEDGE = "knowledge"
    TASK_RESULT = "task_result"
    CODE_ANALYSIS = "code_analysis"
    ERROR = "error"


class ConversationContent(BaseModel):
    """A task prompt and the answer the agent gave."""

    input: str
    output: Any = None
    context: Optional[dict[str, Any]] = None


class KnowledgeContent(BaseModel):
    """Facts about a topic, readable by every agent."""

    topic: str
    facts: list[str] = Field(default_factory=list)
    source: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)


class TaskResultContent(BaseModel):
    """Outcome of one agent execution."""

    task: str
    result: Any = None
    success: bool
    duration_ms: float = Field(default=0.0, ge=0.0)


class CodeAnalysis(BaseModel):
    complexity: Optional[float] = None
    dependencies: Optional[list[str]] = None
    exports: Optional[list[str]] = None
    issues: Optional[list[str]] = None


class CodeAnalysisContent(BaseModel):
    """Static analysis notes about a source file."""

    file: str
    analysis: CodeAnalysis = Field(default_factory=CodeAnalysis)


class ErrorDetail(BaseModel):
    message: str
    name: str
    stack: Optional[str] = None


class ErrorContent(BaseModel):
    """A failed execution and the exception it raised."""

    task: str
    error: ErrorDetail


MemoryContent = Union[
    ConversationContent,
    KnowledgeContent,
    TaskResultContent,
    CodeAnalysisContent,
    ErrorContent,
]

CONTENT_MODELS: dict[MemoryType, type[BaseModel]] = {
    MemoryType.CONVERSATION: ConversationContent,
    MemoryType.KNOWLEDGE: KnowledgeContent,
    MemoryType.TASK_RESULT: TaskResultContent,
    MemoryType.CODE_ANALYSIS: CodeAnalysisContent,
    MemoryType.ERROR: ErrorContent,
}


def new_memory_id(agent_name: str, memory_type: MemoryType) -> str:
    """Generate a memory id of the form agent-type-epochMillis-random."""
    return f"{agent_name}-{memory_type.value}-{int(time.time() * 1000)}-{uuid4().hex[:8]}"


class Memory(BaseModel):
    """
    An immutable memory record.

    Attributes:
        id: Unique id, see new_memory_id.
        agent_name: Agent that wrote the memory.
        timestamp: When the memory was written (UTC).
        type: Memory type, selects the content shape.
        content: Typed content for the memory type.
        metadata: Free-form metadata; holds relevance_score on scored copies.
        ttl: Lifetime in seconds; None never expires.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    agent_name: str
    timestamp: datetime = Field(default_factory=utc_now)
    type: MemoryType
    content: MemoryContent
    metadata: dict[str, Any] = Field(default_factory=dict)
    ttl: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def coerce_content(cls, data: Any) -> Any:
        """Validate content against the model registered for the memory type."""
        if not isinstance(data, dict) or "type" not in data:
            return data
        content_model = CONTENT_MODELS[MemoryType(data["type"])]
        content = data.get("content")
        if not isinstance(content, content_model):
            data = {**data, "content": content_model.model_validate(content)}
        return data

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def create(
        cls,
        agent_name: str,
        memory_type: MemoryType,
        content: BaseModel | dict,
        ttl: Optional[float] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "Memory":
        """Build a new memory with a generated id and the current timestamp."""
        return cls(
            id=new_memory_id(agent_name, memory_type),
            agent_name=agent_name,
            type=memory_type,
            content=content,
            ttl=ttl,
            metadata=metadata or {},
        )

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.ttl is None:
            return None
        return self.timestamp + timedelta(seconds=self.ttl)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Whether the memory's lifetime has passed at ``now``."""
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return expires_at < (now or utc_now())

    def serialized_content(self) -> str:
        """Content serialized to JSON, used for substring search and scoring."""
        return json.dumps(
            self.content.model_dump(mode="json", exclude_none=True),
            ensure_ascii=False,
            default=str,
        )

    def with_relevance(self, score: float) -> "Memory":
        """Return a copy carrying ``metadata.relevance_score``."""
        return self.model_copy(update={"metadata": {**self.metadata, "relevance_score": score}})


class TimeRange(BaseModel):
    """Inclusive time window."""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class MemoryQuery(BaseModel):
    """Conjunctive filter over stored memories."""

    agent_name: Optional[str] = None
    type: Optional[MemoryType] = None
    time_range: Optional[TimeRange] = None
    search: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=0)

    def matches(self, memory: Memory) -> bool:
        """Whether the memory passes every filter set on this query."""
        if self.agent_name is not None and memory.agent_name != self.agent_name:
            return False
        if self.type is not None and memory.type != self.type:
            return False
        if self.time_range is not None and not self.time_range.contains(memory.timestamp):
            return False
        if self.search:
            if self.search.lower() not in memory.serialized_content().lower():
                return False
        return True
