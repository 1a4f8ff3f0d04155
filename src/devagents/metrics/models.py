"""
Metrics record models for tasks, agent executions and token usage.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from devagents.memory.models import utc_now


class TaskType(str, Enum):
    """Kinds of tracked task."""

    BUG_FIX = "bug-fix"
    FEATURE = "feature"
    REVIEW = "review"
    CUSTOM = "custom"


class AgentTokenUsage(BaseModel):
    input: int = 0
    output: int = 0
    cost: float = 0.0


class AgentMetric(BaseModel):
    """One agent execution within a task."""

    agent_name: str
    start_time: datetime = Field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    duration_ms: Optional[float] = None
    token_usage: Optional[AgentTokenUsage] = None
    success: bool = False
    error: Optional[str] = None


class QualityMetrics(BaseModel):
    code_quality_score: Optional[float] = Field(default=None, ge=0, le=100)
    test_coverage: Optional[float] = Field(default=None, ge=0, le=100)
    bugs_introduced: Optional[int] = Field(default=None, ge=0)
    lines_of_code: Optional[int] = Field(default=None, ge=0)
    complexity: Optional[float] = None
    documentation_score: Optional[float] = Field(default=None, ge=0, le=100)


class ComparisonMetrics(BaseModel):
    """Estimated AI vs manual time and cost. Minutes and dollars."""

    manual_time: Optional[float] = None
    ai_time: float
    time_improvement: float
    ai_cost: float
    manual_cost: Optional[float] = None
    cost_savings: float
    ai_quality: Optional[QualityMetrics] = None


class TaskMetric(BaseModel):
    """A tracked task and the agent executions it contained."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    task_type: TaskType
    description: str
    start_time: datetime = Field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    duration_ms: Optional[float] = None
    agent_metrics: list[AgentMetric] = Field(default_factory=list)
    quality: QualityMetrics = Field(default_factory=QualityMetrics)
    comparison: Optional[ComparisonMetrics] = None
    user_rating: Optional[int] = Field(default=None, ge=1, le=5)
    user_feedback: Optional[str] = None

    def total_cost(self) -> float:
        return sum(m.token_usage.cost for m in self.agent_metrics if m.token_usage)

    def total_agent_duration_ms(self) -> float:
        return sum(m.duration_ms or 0.0 for m in self.agent_metrics)


class TokenUsageRecord(BaseModel):
    """One entry of the token tracker's log."""

    agent: str
    task: str
    tokens: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=utc_now)
    phase: int
    execution_time_ms: float = Field(default=0.0, ge=0.0)
