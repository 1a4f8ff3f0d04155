"""
Persistence of completed task metrics.
"""

import csv
import io
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from devagents.config import MetricsStorageSettings, get_settings
from devagents.errors import MemoryIOError
from devagents.logging import EventType, get_agent_logger
from devagents.metrics.models import TaskMetric, TaskType

_task_list = TypeAdapter(list[TaskMetric])

CSV_HEADERS = [
    "ID",
    "Task Type",
    "Description",
    "Start Time",
    "Duration (min)",
    "Agents Used",
    "Quality Score",
    "Time Improvement (%)",
    "Cost Savings (%)",
    "User Rating",
]


class MetricsStorage:
    """JSON file of TaskMetric records under ``<storage_dir>/metrics.json``."""

    def __init__(
        self,
        settings: Optional[MetricsStorageSettings] = None,
        storage_dir: Optional[Path] = None,
    ):
        self.settings = settings or get_settings().metrics
        self.storage_dir = Path(storage_dir or self.settings.storage_dir)
        self.data_file = self.storage_dir / self.settings.metrics_file
        self._logger = get_agent_logger()
        # Set while an unreadable file could not be moved aside
        self._blocked = False

    def save(self, metrics: list[TaskMetric]) -> None:
        """
        Write all metrics to disk, atomically.

        An existing file that cannot be read and could not be moved aside is
        left untouched.
        """
        if self._blocked:
            self._report_io_error("Refusing to overwrite unreadable metrics file")
            return
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            temp_path = self.data_file.with_suffix(".tmp")
            temp_path.write_bytes(_task_list.dump_json(metrics, indent=2))
            temp_path.replace(self.data_file)
        except OSError as e:
            self._report_io_error(f"Failed to save metrics: {e}")

    def load(self) -> list[TaskMetric]:
        """
        Load metrics; a missing or unreadable file yields an empty list.

        An unreadable file is moved aside to ``<name>.corrupt-<epochMillis>``
        so that the next save starts a new file instead of overwriting it.
        """
        if not self.data_file.exists():
            return []
        try:
            metrics = _task_list.validate_json(self.data_file.read_bytes())
        except (OSError, ValidationError, ValueError) as e:
            self._report_io_error(f"Failed to load metrics: {e}")
            self._move_aside()
            return []
        self._blocked = False
        return metrics

    def append(self, metric: TaskMetric) -> None:
        metrics = self.load()
        metrics.append(metric)
        self.save(metrics)

    def _move_aside(self) -> None:
        target = self.data_file.with_name(f"{self.data_file.name}.corrupt-{int(time.time() * 1000)}")
        try:
            self.data_file.replace(target)
        except OSError as e:
            self._report_io_error(f"Failed to move unreadable metrics aside: {e}")
            self._blocked = True
            return
        self._logger.warning(
            f"Moved unreadable metrics file to {target.name}",
            event_type=EventType.MEMORY_IO_ERROR,
            data={"path": str(target)},
        )

    def get_by_date_range(self, start: datetime, end: datetime) -> list[TaskMetric]:
        """Tasks whose start time falls within [start, end]."""
        return [m for m in self.load() if start <= m.start_time <= end]

    def get_by_task_type(self, task_type: TaskType) -> list[TaskMetric]:
        return [m for m in self.load() if m.task_type == task_type]

    def clear(self) -> None:
        try:
            self.data_file.unlink(missing_ok=True)
            self._blocked = False
        except OSError as e:
            self._report_io_error(f"Failed to clear metrics: {e}")

    def export_to_csv(self) -> str:
        """Render stored metrics as CSV; empty string when there are none."""
        metrics = self.load()
        if not metrics:
            return ""

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for m in metrics:
            comparison = m.comparison
            writer.writerow(
                [
                    m.id,
                    m.task_type.value,
                    m.description,
                    m.start_time.isoformat(),
                    f"{m.duration_ms / 1000 / 60:.2f}" if m.duration_ms else "",
                    len(m.agent_metrics),
                    m.quality.code_quality_score if m.quality.code_quality_score is not None else "",
                    f"{comparison.time_improvement:.1f}" if comparison else "",
                    f"{comparison.cost_savings:.1f}" if comparison else "",
                    m.user_rating or "",
                ]
            )
        return buffer.getvalue().rstrip("\n")

    def _report_io_error(self, message: str) -> None:
        error = MemoryIOError(message, path=str(self.data_file))
        self._logger.error(str(error), event_type=EventType.MEMORY_IO_ERROR, error=message)


def export_json(metrics: list[TaskMetric]) -> str:
    return _task_list.dump_json(metrics, indent=2).decode("utf-8")


def import_json(data: str) -> list[TaskMetric]:
    """Parse exported metrics JSON. Raises ValidationError on malformed input."""
    return _task_list.validate_json(data)
