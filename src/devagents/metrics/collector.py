"""
Task and agent timing, token cost attribution and AI vs manual comparison.
"""

import itertools
import time
from contextlib import contextmanager
from typing import Optional
from uuid import uuid4

from pydantic import ValidationError

from devagents.config import ComparisonSettings, get_settings
from devagents.logging import EventType, get_agent_logger
from devagents.memory.models import utc_now
from devagents.metrics.models import (
    AgentMetric,
    AgentTokenUsage,
    ComparisonMetrics,
    QualityMetrics,
    TaskMetric,
    TaskType,
)
from devagents.metrics.storage import MetricsStorage, export_json, import_json


def synthesize_comparison(
    task: TaskMetric,
    settings: Optional[ComparisonSettings] = None,
) -> ComparisonMetrics:
    """
    Estimate the manual effort a task would have taken.

    Manual time is a fixed multiple of the summed agent time with a floor,
    the improvement is capped, and costs have floors so that near-zero
    measurements still produce sensible ratios. All constants are
    heuristics from ComparisonSettings.

    Args:
        task: Task with its agent metrics.
        settings: Comparison constants.

    Returns:
        ComparisonMetrics in minutes and dollars.
    """
    settings = settings or get_settings().comparison

    ai_time = max(settings.min_ai_minutes, task.total_agent_duration_ms() / 1000 / 60)
    manual_time = max(settings.min_manual_minutes, ai_time * settings.manual_multiplier)
    time_improvement = min(
        settings.max_time_improvement, (manual_time - ai_time) / manual_time * 100
    )

    ai_cost = max(settings.min_ai_cost, task.total_cost())
    manual_cost = manual_time * (settings.developer_hourly_rate / 60)
    cost_savings = (manual_cost - ai_cost) / manual_cost * 100

    return ComparisonMetrics(
        manual_time=manual_time,
        ai_time=ai_time,
        time_improvement=time_improvement,
        ai_cost=ai_cost,
        manual_cost=manual_cost,
        cost_savings=cost_savings,
        ai_quality=task.quality,
    )


class MetricsCollector:
    """
    Brackets one task at a time and the agent executions inside it.

    Agent brackets outside an open task are ignored. Completed tasks are
    appended to storage.

    Example:
        ```python
        collector = MetricsCollector(MetricsStorage(storage_dir=tmp))
        with collector.track_task(TaskType.BUG_FIX, "Fix login"):
            with collector.track_agent("ResearchAgent"):
                ...
        ```
    """

    def __init__(
        self,
        storage: Optional[MetricsStorage] = None,
        settings: Optional[ComparisonSettings] = None,
    ):
        """
        Initialize the collector, loading previously stored metrics.

        Args:
            storage: Metrics storage.
            settings: Comparison constants.
        """
        self.storage = storage or MetricsStorage()
        self.settings = settings or get_settings().comparison
        self._current_task: Optional[TaskMetric] = None
        # Open agent brackets keyed by handle, in start order
        self._agent_timers: dict[str, tuple[AgentMetric, float]] = {}
        self._handles = itertools.count(1)
        self._history: list[TaskMetric] = self.storage.load()
        self._logger = get_agent_logger()

    @property
    def current_task(self) -> Optional[TaskMetric]:
        return self._current_task

    def start_task(self, task_type: TaskType | str, description: str) -> str:
        """
        Open a new task.

        An already open task is abandoned without being stored.

        Returns:
            The new task id.
        """
        if self._current_task is not None:
            self._logger.warning(
                f"Abandoning open task {self._current_task.id}",
                data={"task_id": self._current_task.id},
            )
            self._agent_timers.clear()

        task_id = f"task-{int(time.time() * 1000)}-{uuid4().hex[:8]}"
        self._current_task = TaskMetric(
            id=task_id,
            task_type=TaskType(task_type),
            description=description,
        )
        return task_id

    def end_task(
        self,
        quality: Optional[QualityMetrics] = None,
        comparison: Optional[ComparisonMetrics] = None,
    ) -> Optional[TaskMetric]:
        """
        Close the open task and store it.

        Args:
            quality: Quality measurements for the task.
            comparison: Explicit comparison; synthesized from agent metrics when omitted.

        Returns:
            The completed TaskMetric, or None if no task was open.
        """
        task = self._current_task
        if task is None:
            return None

        task.end_time = utc_now()
        task.duration_ms = (task.end_time - task.start_time).total_seconds() * 1000
        if quality is not None:
            task.quality = quality
        if comparison is not None:
            task.comparison = comparison
        elif task.agent_metrics:
            task.comparison = synthesize_comparison(task, self.settings)

        self._history.append(task)
        self.storage.append(task)
        self._current_task = None
        self._agent_timers.clear()

        self._logger.log_metric(
            "task.duration_ms",
            task.duration_ms,
            task_id=task.id,
            task_type=task.task_type.value,
            agents=len(task.agent_metrics),
        )
        return task

    def start_agent(self, agent_name: str) -> Optional[str]:
        """
        Start timing one execution of an agent.

        Several executions of the same agent may be open at once; each gets
        its own handle.

        Returns:
            Handle to pass to end_agent, or None when no task is open.
        """
        if self._current_task is None:
            self._logger.debug(f"No open task, ignoring start of {agent_name}")
            return None
        handle = f"{agent_name}-{next(self._handles)}"
        self._agent_timers[handle] = (AgentMetric(agent_name=agent_name), time.perf_counter())
        return handle

    def end_agent(
        self,
        agent_name: str,
        success: bool = True,
        error: Optional[str] = None,
        handle: Optional[str] = None,
    ) -> None:
        """
        Stop timing an agent and attach the metric to the open task.

        Without a handle the agent's earliest open execution is closed.
        """
        if self._current_task is None:
            self._logger.debug(f"No open task, ignoring end of {agent_name}")
            return
        if handle is None:
            handle = next(
                (h for h, (m, _) in self._agent_timers.items() if m.agent_name == agent_name),
                None,
            )
        timer = self._agent_timers.pop(handle, None)
        if timer is None:
            return

        metric, started = timer
        metric.end_time = utc_now()
        metric.duration_ms = (time.perf_counter() - started) * 1000
        metric.success = success
        metric.error = error
        self._current_task.agent_metrics.append(metric)

    def add_token_usage(self, agent_name: str, input_tokens: int, output_tokens: int, cost: float) -> None:
        """
        Attribute token usage to an agent's open metric, or its latest completed one.

        Usage from several calls within one execution accumulates.
        """
        if self._current_task is None:
            return

        open_metrics = [m for m, _ in self._agent_timers.values() if m.agent_name == agent_name]
        metric: Optional[AgentMetric] = None
        if open_metrics:
            metric = open_metrics[-1]
        else:
            for candidate in reversed(self._current_task.agent_metrics):
                if candidate.agent_name == agent_name:
                    metric = candidate
                    break
        if metric is None:
            return

        usage = metric.token_usage or AgentTokenUsage()
        metric.token_usage = AgentTokenUsage(
            input=usage.input + input_tokens,
            output=usage.output + output_tokens,
            cost=usage.cost + cost,
        )

    @contextmanager
    def track_task(self, task_type: TaskType | str, description: str):
        """Open a task for the duration of the block; the completed task is stored even on error."""
        self.start_task(task_type, description)
        try:
            yield self._current_task
        finally:
            self.end_task()

    @contextmanager
    def track_agent(self, agent_name: str):
        """Time an agent for the duration of the block, recording failure on exception."""
        handle = self.start_agent(agent_name)
        try:
            yield
        except Exception as e:
            self.end_agent(agent_name, success=False, error=str(e), handle=handle)
            raise
        self.end_agent(agent_name, success=True, handle=handle)

    def rate_task(self, task_id: str, rating: int, feedback: Optional[str] = None) -> bool:
        """
        Record a 1-5 user rating on a completed task.

        Returns:
            True if the task was found.

        Raises:
            ValueError: If the rating is outside 1-5.
        """
        if not 1 <= rating <= 5:
            raise ValueError(f"Rating must be between 1 and 5, got {rating}")
        for task in self._history:
            if task.id == task_id:
                task.user_rating = rating
                task.user_feedback = feedback
                self.storage.save(self._history)
                return True
        return False

    def get_all_metrics(self) -> list[TaskMetric]:
        return list(self._history)

    def get_task_metrics(self, task_id: str) -> Optional[TaskMetric]:
        return next((t for t in self._history if t.id == task_id), None)

    def clear_metrics(self) -> None:
        self._history = []
        self._current_task = None
        self._agent_timers.clear()
        self.storage.clear()

    def export_metrics(self) -> str:
        return export_json(self._history)

    def import_metrics(self, data: str) -> bool:
        """Replace in-memory history with exported JSON. Invalid input is logged and ignored."""
        try:
            self._history = import_json(data)
        except ValidationError as e:
            self._logger.error(
                "Failed to import metrics",
                event_type=EventType.ERROR,
                error=str(e),
            )
            return False
        return True
