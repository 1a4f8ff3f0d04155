"""
Task, agent and token metrics with ROI estimates.
"""

from devagents.metrics.collector import MetricsCollector, synthesize_comparison
from devagents.metrics.dashboard import DashboardData, build_dashboard
from devagents.metrics.models import (
    AgentMetric,
    AgentTokenUsage,
    ComparisonMetrics,
    QualityMetrics,
    TaskMetric,
    TaskType,
    TokenUsageRecord,
)
from devagents.metrics.storage import MetricsStorage
from devagents.metrics.token_tracker import TokenTracker

__all__ = [
    "AgentMetric",
    "AgentTokenUsage",
    "ComparisonMetrics",
    "DashboardData",
    "MetricsCollector",
    "MetricsStorage",
    "QualityMetrics",
    "TaskMetric",
    "TaskType",
    "TokenTracker",
    "TokenUsageRecord",
    "build_dashboard",
    "synthesize_comparison",
]
