"""
Aggregates over stored task metrics.
"""

from collections import Counter
from typing import Optional

from pydantic import BaseModel, Field

from devagents.metrics.models import TaskMetric, TaskType


class DashboardSummary(BaseModel):
    total_tasks: int = 0
    average_time_improvement: float = 0.0
    average_quality_score: float = 0.0
    total_cost_savings: float = Field(default=0.0, description="Dollars, manual minus AI cost")
    user_satisfaction: float = Field(default=0.0, description="Average 1-5 rating")


class TimeAnalysis(BaseModel):
    """Durations in minutes."""

    average_task_time: float = 0.0
    fastest_task: Optional[TaskMetric] = None
    slowest_task: Optional[TaskMetric] = None
    time_by_task_type: dict[str, float] = Field(default_factory=dict)


class QualityAnalysis(BaseModel):
    average_quality_score: float = 0.0
    best_quality_task: Optional[TaskMetric] = None


class AgentPerformance(BaseModel):
    tasks_completed: int = 0
    average_time: float = Field(default=0.0, description="Minutes per execution")
    success_rate: float = Field(default=0.0, description="Percent")


class AgentAnalysis(BaseModel):
    most_used_agent: Optional[str] = None
    agent_performance: dict[str, AgentPerformance] = Field(default_factory=dict)


class DashboardData(BaseModel):
    summary: DashboardSummary
    task_breakdown: dict[TaskType, int]
    time_analysis: TimeAnalysis
    quality_analysis: QualityAnalysis
    agent_analysis: AgentAnalysis


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def summarize(tasks: list[TaskMetric]) -> DashboardSummary:
    completed = [t for t in tasks if t.end_time is not None]
    compared = [t for t in completed if t.comparison is not None]
    rated = [t for t in completed if t.user_rating]

    return DashboardSummary(
        total_tasks=len(completed),
        average_time_improvement=_mean([t.comparison.time_improvement for t in compared]),
        average_quality_score=_mean(
            [t.quality.code_quality_score for t in completed if t.quality.code_quality_score]
        ),
        total_cost_savings=sum(
            (t.comparison.manual_cost or 0.0) - t.comparison.ai_cost for t in compared
        ),
        user_satisfaction=_mean([float(t.user_rating) for t in rated]),
    )


def analyze_time(tasks: list[TaskMetric]) -> TimeAnalysis:
    timed = [t for t in tasks if t.duration_ms]
    if not timed:
        return TimeAnalysis()

    by_duration = sorted(timed, key=lambda t: t.duration_ms)
    by_type: dict[str, float] = {}
    for task in timed:
        by_type[task.task_type.value] = by_type.get(task.task_type.value, 0.0) + task.duration_ms / 1000 / 60

    return TimeAnalysis(
        average_task_time=_mean([t.duration_ms for t in timed]) / 1000 / 60,
        fastest_task=by_duration[0],
        slowest_task=by_duration[-1],
        time_by_task_type=by_type,
    )


def analyze_quality(tasks: list[TaskMetric]) -> QualityAnalysis:
    scored = [t for t in tasks if t.quality.code_quality_score]
    if not scored:
        return QualityAnalysis()
    return QualityAnalysis(
        average_quality_score=_mean([t.quality.code_quality_score for t in scored]),
        best_quality_task=max(scored, key=lambda t: t.quality.code_quality_score),
    )


def analyze_agents(tasks: list[TaskMetric]) -> AgentAnalysis:
    """Per-agent execution counts, average time and success rate."""
    runs: Counter[str] = Counter()
    successes: Counter[str] = Counter()
    total_ms: dict[str, float] = {}

    for task in tasks:
        for metric in task.agent_metrics:
            runs[metric.agent_name] += 1
            total_ms[metric.agent_name] = total_ms.get(metric.agent_name, 0.0) + (metric.duration_ms or 0.0)
            if metric.success:
                successes[metric.agent_name] += 1

    performance = {
        agent: AgentPerformance(
            tasks_completed=successes[agent],
            average_time=total_ms[agent] / count / 1000 / 60,
            success_rate=successes[agent] / count * 100,
        )
        for agent, count in runs.items()
    }
    most_used = runs.most_common(1)[0][0] if runs else None
    return AgentAnalysis(most_used_agent=most_used, agent_performance=performance)


def build_dashboard(tasks: list[TaskMetric]) -> DashboardData:
    """
    Build every dashboard aggregate from a list of tasks.

    Args:
        tasks: Task metrics, usually MetricsStorage.load().

    Returns:
        DashboardData with summary, breakdown and analyses.
    """
    breakdown = {task_type: 0 for task_type in TaskType}
    for task in tasks:
        breakdown[task.task_type] += 1

    return DashboardData(
        summary=summarize(tasks),
        task_breakdown=breakdown,
        time_analysis=analyze_time(tasks),
        quality_analysis=analyze_quality(tasks),
        agent_analysis=analyze_agents(tasks),
    )
