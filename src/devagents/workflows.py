"""
Canned multi-step workflows.

Each workflow turns a request (bug report, feature request, pull request)
into an ordered list of tasks and runs them through the orchestrator inside
a tracked metrics task.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from devagents.agents.orchestrator import Orchestrator
from devagents.metrics.collector import MetricsCollector
from devagents.metrics.models import TaskMetric, TaskType


class BugReport(BaseModel):
    id: str
    title: str
    description: str
    steps_to_reproduce: list[str] = Field(default_factory=list)
    expected_behavior: str = "System should work correctly"
    actual_behavior: str = ""
    severity: Literal["critical", "major", "minor"] = "major"


class FeatureRequest(BaseModel):
    id: str
    title: str
    description: str
    requirements: list[str] = Field(default_factory=list)
    acceptance_criteria: list[str] = Field(default_factory=list)
    priority: Literal["high", "medium", "low"] = "medium"


class PullRequest(BaseModel):
    id: str
    title: str
    description: str = ""
    files: list[str] = Field(default_factory=list)
    author: str = ""
    additions: int = 0
    deletions: int = 0


class WorkflowResult(BaseModel):
    """Results of a tracked workflow and the metric recorded for it."""

    task_type: TaskType
    description: str
    results: list[dict[str, Any]]
    metric: Optional[TaskMetric] = None


def bug_fix_tasks(bug: BugReport) -> list[str]:
    """Investigate, reproduce, fix, verify, review, document."""
    actual = bug.actual_behavior or bug.description
    return [
        f"investigate bug: {bug.description}. Find the root cause in the codebase",
        f"create a test that reproduces the bug: {actual}",
        f"implement a fix for: {bug.description}. Expected behavior: {bug.expected_behavior}",
        "test that the bug is fixed and no regressions were introduced",
        "review the bug fix for code quality and potential side effects",
        "document the bug fix and update any affected API documentation",
    ]


def feature_tasks(feature: FeatureRequest) -> list[str]:
    """Research, plan, implement, test, review, document."""
    requirements = ", ".join(feature.requirements) or "none specified"
    return [
        f"research existing patterns and best practices for: {feature.description}",
        f"create a detailed plan to implement: {feature.title} with requirements: {requirements}",
        f"implement the feature: {feature.title} based on the plan and requirements",
        f"create comprehensive tests for: {feature.title} covering all acceptance criteria",
        f"review the implementation of {feature.title} for quality, security, and performance",
        f"create user documentation and API docs for: {feature.title}",
    ]


def code_review_tasks(pr: PullRequest) -> list[str]:
    """Analyze, review, verify tests, check documentation."""
    files = ", ".join(pr.files) or pr.title
    return [
        f'analyze code changes in PR "{pr.title}" for patterns and best practices',
        f"review code quality, security vulnerabilities, and performance issues in: {files}",
        f"verify test coverage and suggest additional tests for the changes in PR: {pr.title}",
        f"check if documentation needs updates based on changes: {pr.description or pr.title}",
    ]


def review_status(score: float, issues: list[dict[str, Any]]) -> str:
    """
    Verdict for a code review.

    Any critical issue rejects; otherwise the score decides.
    """
    if any(issue.get("severity") == "critical" for issue in issues):
        return "rejected"
    if score < 60:
        return "needs_work"
    if score < 80:
        return "approved_with_comments"
    return "approved"


async def run_tracked_workflow(
    orchestrator: Orchestrator,
    collector: MetricsCollector,
    task_type: TaskType | str,
    description: str,
    tasks: list[str],
) -> WorkflowResult:
    """
    Run a workflow inside a metrics task.

    The metrics task is closed and stored even when a step fails; the
    failure then propagates.

    Args:
        orchestrator: Orchestrator with registered agents. Its collector
            should be ``collector`` so agent timings land in the task.
        collector: Metrics collector.
        task_type: Metrics task type.
        description: Metrics task description.
        tasks: Tasks in execution order.

    Returns:
        WorkflowResult with the step results and the stored metric.
    """
    task_type = TaskType(task_type)
    collector.start_task(task_type, description)
    try:
        results = await orchestrator.process_workflow(tasks)
    finally:
        metric = collector.end_task()
    return WorkflowResult(task_type=task_type, description=description, results=results, metric=metric)


async def run_bug_fix(orchestrator: Orchestrator, collector: MetricsCollector, bug: BugReport) -> WorkflowResult:
    return await run_tracked_workflow(orchestrator, collector, TaskType.BUG_FIX, bug.title, bug_fix_tasks(bug))


async def run_feature(
    orchestrator: Orchestrator, collector: MetricsCollector, feature: FeatureRequest
) -> WorkflowResult:
    return await run_tracked_workflow(
        orchestrator, collector, TaskType.FEATURE, feature.title, feature_tasks(feature)
    )


async def run_code_review(orchestrator: Orchestrator, collector: MetricsCollector, pr: PullRequest) -> WorkflowResult:
    return await run_tracked_workflow(orchestrator, collector, TaskType.REVIEW, pr.title, code_review_tasks(pr))
