"""
Token usage log and ROI estimates used to judge phase transitions.

The ROI model here is independent of the comparison synthesized by the
metrics collector and uses its own constants from ROISettings.
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from devagents.config import MetricsStorageSettings, PhaseSettings, ROISettings, get_settings
from devagents.errors import MemoryIOError
from devagents.logging import EventType, get_agent_logger
from devagents.metrics.models import TokenUsageRecord
from devagents.phases import get_phase_config

_record_list = TypeAdapter(list[TokenUsageRecord])


class TokenTracker:
    """Flat, persisted log of token usage per agent execution."""

    def __init__(
        self,
        storage_dir: Optional[Path] = None,
        roi_settings: Optional[ROISettings] = None,
        phase_settings: Optional[PhaseSettings] = None,
        storage_settings: Optional[MetricsStorageSettings] = None,
    ):
        """
        Initialize the tracker and load the existing log.

        Args:
            storage_dir: Directory for the usage log.
            roi_settings: ROI constants.
            phase_settings: Active phase selection.
            storage_settings: Metrics storage settings.
        """
        settings = get_settings()
        storage_settings = storage_settings or settings.metrics
        self.roi = roi_settings or settings.roi
        self.phase_settings = phase_settings or settings.phase
        self.storage_dir = Path(storage_dir or storage_settings.storage_dir)
        self.history_path = self.storage_dir / storage_settings.token_usage_file
        self._history: list[TokenUsageRecord] = []
        self._logger = get_agent_logger()

        self._load_history()

    @property
    def history(self) -> list[TokenUsageRecord]:
        return list(self._history)

    def track_usage(self, agent: str, task: str, tokens: int, execution_time_ms: float) -> TokenUsageRecord:
        """
        Record token usage for one execution and warn if the phase ceiling is exceeded.

        Returns:
            The stored record.
        """
        phase = get_phase_config(self.phase_settings)
        record = TokenUsageRecord(
            agent=agent,
            task=task,
            tokens=tokens,
            phase=phase.phase,
            execution_time_ms=execution_time_ms,
        )
        self._history.append(record)
        self._save_history()

        metrics = self.get_metrics()
        limit = phase.targets.max_token_multiplier
        if metrics["token_multiplier"] > limit:
            self._logger.warning(
                f"Token usage ({metrics['token_multiplier']:.1f}x) exceeds phase {phase.phase} limit ({limit}x)",
                event_type=EventType.TOKEN_BUDGET_EXCEEDED,
                data={"token_multiplier": metrics["token_multiplier"], "limit": limit},
            )
        return record

    def get_metrics(self) -> dict[str, Any]:
        """Totals, per-agent tokens, average per task and multiplier vs baseline."""
        total_tokens = sum(u.tokens for u in self._history)
        tasks_completed = len(self._history)

        tokens_by_agent: dict[str, int] = {}
        for usage in self._history:
            tokens_by_agent[usage.agent] = tokens_by_agent.get(usage.agent, 0) + usage.tokens

        average = total_tokens / tasks_completed if tasks_completed else 0.0
        return {
            "total_tokens": total_tokens,
            "tokens_by_agent": tokens_by_agent,
            "average_tokens_per_task": average,
            "token_multiplier": average / self.roi.baseline_tokens,
            "tasks_completed": tasks_completed,
        }

    def _estimated_manual_ms(self, task: str) -> float:
        lowered = task.lower()
        is_complex = any(keyword in lowered for keyword in self.roi.complex_task_keywords)
        minutes = self.roi.complex_task_minutes if is_complex else self.roi.simple_task_minutes
        return minutes * 60 * 1000

    def get_roi_metrics(self) -> dict[str, float]:
        """
        Estimate time saved and return on token spend.

        Returns:
            Dict with total_time_saved_ms, average_time_saved_percent,
            tokens_per_hour_saved and estimated_roi (percent).
        """
        manual_ms = sum(self._estimated_manual_ms(u.task) for u in self._history)
        actual_ms = sum(u.execution_time_ms for u in self._history)
        saved_ms = manual_ms - actual_ms
        average_saved_percent = saved_ms / manual_ms * 100 if manual_ms > 0 else 0.0

        hours_saved = saved_ms / (1000 * 60 * 60)
        total_tokens = self.get_metrics()["total_tokens"]
        tokens_per_hour_saved = total_tokens / hours_saved if hours_saved > 0 else 0.0

        token_cost = total_tokens / 1000 * self.roi.cost_per_1k_tokens
        value_saved = hours_saved * self.roi.developer_hourly_rate
        estimated_roi = (value_saved - token_cost) / token_cost * 100 if token_cost > 0 else 0.0

        return {
            "total_time_saved_ms": saved_ms,
            "average_time_saved_percent": average_saved_percent,
            "tokens_per_hour_saved": tokens_per_hour_saved,
            "estimated_roi": estimated_roi,
        }

    def transition_readiness(self) -> dict[str, bool]:
        """Which criteria for leaving the active phase are met."""
        phase = get_phase_config(self.phase_settings)
        metrics = self.get_metrics()
        roi = self.get_roi_metrics()
        return {
            "time_reduction_met": roi["average_time_saved_percent"] >= phase.targets.target_time_reduction,
            "token_usage_within_limit": metrics["token_multiplier"] <= phase.targets.max_token_multiplier,
            "sufficient_sample": metrics["tasks_completed"] >= self.roi.min_tasks_for_transition,
        }

    def generate_report(self) -> str:
        """Plain-text usage, ROI and phase readiness report."""
        phase = get_phase_config(self.phase_settings)
        metrics = self.get_metrics()
        roi = self.get_roi_metrics()
        readiness = self.transition_readiness()

        def mark(ok: bool) -> str:
            return "[x]" if ok else "[ ]"

        lines = [
            f"=== Token Usage Report - Phase {phase.phase} ===",
            "",
            "Token Metrics:",
            f"- Total tokens used: {metrics['total_tokens']:,}",
            f"- Tasks completed: {metrics['tasks_completed']}",
            f"- Average tokens/task: {round(metrics['average_tokens_per_task']):,}",
            f"- Token multiplier: {metrics['token_multiplier']:.1f}x baseline",
            f"- Phase {phase.phase} limit: {phase.targets.max_token_multiplier}x",
            "",
            "Token Usage by Agent:",
            *(f"- {agent}: {tokens:,} tokens" for agent, tokens in metrics["tokens_by_agent"].items()),
            "",
            "ROI Metrics:",
            f"- Time saved: {round(roi['total_time_saved_ms'] / 1000 / 60)} minutes",
            f"- Average time reduction: {roi['average_time_saved_percent']:.1f}%",
            f"- Tokens per hour saved: {round(roi['tokens_per_hour_saved']):,}",
            f"- Estimated ROI: {roi['estimated_roi']:.0f}%",
            "",
            "Phase Transition Readiness:",
            f"{mark(readiness['time_reduction_met'])} Time reduction target ({phase.targets.target_time_reduction}%)",
            f"{mark(readiness['token_usage_within_limit'])} Token usage within limits",
            f"{mark(readiness['sufficient_sample'])} Sufficient task sample size",
        ]
        return "\n".join(lines)

    def reset(self) -> None:
        self._history = []
        self._save_history()

    def _load_history(self) -> None:
        if not self.history_path.exists():
            return
        try:
            self._history = _record_list.validate_json(self.history_path.read_bytes())
        except (OSError, ValidationError, ValueError) as e:
            self._report_io_error(f"Failed to load token history: {e}")

    def _save_history(self) -> None:
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            temp_path = self.history_path.with_suffix(".tmp")
            temp_path.write_bytes(_record_list.dump_json(self._history, indent=2))
            temp_path.replace(self.history_path)
        except OSError as e:
            self._report_io_error(f"Failed to save token history: {e}")

    def _report_io_error(self, message: str) -> None:
        error = MemoryIOError(message, path=str(self.history_path))
        self._logger.error(str(error), event_type=EventType.MEMORY_IO_ERROR, error=message)
