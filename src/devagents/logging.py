"""
Structured logging for agent, memory, provider and metrics operations.

Provides JSON-formatted logging with trace IDs for debugging and observability.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from devagents.config import get_settings


class EventType(str, Enum):
    """Types of events that can be logged."""

    # Agent lifecycle
    AGENT_REGISTERED = "agent.registered"
    AGENT_STARTED = "agent.started"
    AGENT_COMPLETED = "agent.completed"
    AGENT_FAILED = "agent.failed"
    AGENT_FALLBACK = "agent.fallback"

    # Routing and workflows
    TASK_ROUTED = "task.routed"
    TASK_UNROUTABLE = "task.unroutable"
    WORKFLOW_STARTED = "workflow.started"
    WORKFLOW_COMPLETED = "workflow.completed"
    WORKFLOW_FAILED = "workflow.failed"

    # Memory events
    MEMORY_STORED = "memory.stored"
    MEMORY_RECALLED = "memory.recalled"
    MEMORY_PRUNED = "memory.pruned"
    MEMORY_IO_ERROR = "memory.io_error"
    CONTEXT_UPDATED = "context.updated"
    CONTEXT_SHARED = "context.shared"

    # LLM events
    LLM_REQUEST = "llm.request"
    LLM_RESPONSE = "llm.response"
    LLM_RETRY = "llm.retry"
    LLM_ERROR = "llm.error"
    LLM_RATE_LIMITED = "llm.rate_limited"

    # Metrics events
    METRIC_RECORDED = "metric.recorded"
    TOKEN_BUDGET_EXCEEDED = "metric.token_budget_exceeded"

    ERROR = "error"


@dataclass
class LogContext:
    """Context for structured logging."""

    trace_id: str = field(default_factory=lambda: str(uuid4()))
    span_id: str = field(default_factory=lambda: str(uuid4())[:8])
    parent_span_id: str | None = None
    agent_name: str | None = None

    def child_span(self) -> "LogContext":
        """Create a child span context."""
        return LogContext(
            trace_id=self.trace_id,
            span_id=str(uuid4())[:8],
            parent_span_id=self.span_id,
            agent_name=self.agent_name,
        )


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    _extra_fields = (
        "event_type",
        "trace_id",
        "span_id",
        "parent_span_id",
        "agent_name",
        "duration_ms",
        "data",
        "error",
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in self._extra_fields:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["stack_trace"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class AgentLogger:
    """
    Structured logger for agent operations.

    Provides JSON-formatted logging with automatic context tracking.
    """

    def __init__(
        self,
        name: str = "devagents",
        level: str | None = None,
        json_output: bool = True,
    ):
        """
        Initialize the agent logger.

        Args:
            name: Logger name.
            level: Log level (defaults to settings).
            json_output: Whether to use JSON formatting.
        """
        self.logger = logging.getLogger(name)
        self._root: LogContext | None = None
        # Active span per asyncio task; unset means the root context
        self._span: ContextVar[LogContext | None] = ContextVar(f"{name}.span", default=None)

        log_level = level or get_settings().log_level
        self.logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            if json_output:
                handler.setFormatter(JSONFormatter())
            else:
                handler.setFormatter(
                    logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
                )
            self.logger.addHandler(handler)

    def get_context(self) -> LogContext:
        """Get the current logging context, creating the root one if needed."""
        span = self._span.get()
        if span is not None:
            return span
        if self._root is None:
            self._root = LogContext()
        return self._root

    @contextmanager
    def span(self, name: str, agent_name: str | None = None, log_errors: bool = True):
        """
        Create a logging span for tracking nested operations.

        Spans are tracked per asyncio task, so concurrent operations keep
        their own span stacks.

        Args:
            name: Span name.
            agent_name: Agent the span belongs to, if any.
            log_errors: Whether to log exceptions leaving the span.

        Yields:
            Child LogContext for the span.
        """
        child_context = self.get_context().child_span()
        if agent_name:
            child_context.agent_name = agent_name
        token = self._span.set(child_context)

        start_time = time.time()
        try:
            yield child_context
        except Exception as e:
            if log_errors:
                self.error(
                    f"Failed: {name}",
                    event_type=EventType.ERROR,
                    error=str(e),
                    duration_ms=(time.time() - start_time) * 1000,
                )
            raise
        finally:
            self._span.reset(token)

    def _log(
        self,
        level: int,
        message: str,
        event_type: EventType | str | None = None,
        duration_ms: float | None = None,
        data: dict | None = None,
        error: str | None = None,
    ) -> None:
        context = self.get_context()

        extra = {
            "trace_id": context.trace_id,
            "span_id": context.span_id,
            "parent_span_id": context.parent_span_id,
            "agent_name": context.agent_name,
        }
        if event_type:
            extra["event_type"] = event_type.value if isinstance(event_type, EventType) else event_type
        if duration_ms is not None:
            extra["duration_ms"] = duration_ms
        if data:
            extra["data"] = data
        if error:
            extra["error"] = error

        self.logger.log(level, message, extra=extra)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, **kwargs)

    # Convenience methods for common events

    def log_agent_started(self, agent_name: str, task: str, **kwargs) -> None:
        """Log agent start event."""
        self.info(
            f"Agent started: {agent_name}",
            event_type=EventType.AGENT_STARTED,
            data={"agent_name": agent_name, "task": task[:200], **kwargs},
        )

    def log_agent_completed(self, agent_name: str, duration_ms: float, **kwargs) -> None:
        """Log agent completion event."""
        self.info(
            f"Agent completed: {agent_name}",
            event_type=EventType.AGENT_COMPLETED,
            duration_ms=duration_ms,
            data={"agent_name": agent_name, **kwargs},
        )

    def log_agent_failed(
        self,
        agent_name: str,
        error: str,
        duration_ms: float | None = None,
        **kwargs,
    ) -> None:
        """Log agent failure event."""
        self.error(
            f"Agent failed: {agent_name}: {error}",
            event_type=EventType.AGENT_FAILED,
            error=error,
            duration_ms=duration_ms,
            data={"agent_name": agent_name, **kwargs},
        )

    def log_task_routed(self, task: str, agent_name: str, priority: str) -> None:
        """Log routing decision."""
        self.info(
            f"Task routed to {agent_name}",
            event_type=EventType.TASK_ROUTED,
            data={"task": task[:200], "agent_name": agent_name, "priority": priority},
        )

    def log_memory_stored(self, memory_id: str, agent_name: str, memory_type: str) -> None:
        """Log memory write."""
        self.debug(
            f"Memory stored: {memory_id}",
            event_type=EventType.MEMORY_STORED,
            data={"memory_id": memory_id, "agent_name": agent_name, "type": memory_type},
        )

    def log_llm_request(
        self,
        provider: str,
        model: str,
        prompt_tokens: int | None = None,
        **kwargs,
    ) -> None:
        """Log LLM request."""
        self.debug(
            f"LLM request: {provider}/{model}",
            event_type=EventType.LLM_REQUEST,
            data={"provider": provider, "model": model, "prompt_tokens": prompt_tokens, **kwargs},
        )

    def log_llm_response(
        self,
        provider: str,
        model: str,
        duration_ms: float,
        completion_tokens: int | None = None,
        **kwargs,
    ) -> None:
        """Log LLM response."""
        self.debug(
            f"LLM response: {provider}/{model}",
            event_type=EventType.LLM_RESPONSE,
            duration_ms=duration_ms,
            data={
                "provider": provider,
                "model": model,
                "completion_tokens": completion_tokens,
                **kwargs,
            },
        )

    def log_llm_error(self, provider: str, error: str, **kwargs) -> None:
        """Log LLM failure."""
        self.error(
            f"LLM error: {provider}",
            event_type=EventType.LLM_ERROR,
            error=error,
            data={"provider": provider, **kwargs},
        )

    def log_metric(self, name: str, value: float, **kwargs) -> None:
        """Log a recorded metric value."""
        self.debug(
            f"Metric: {name}={value}",
            event_type=EventType.METRIC_RECORDED,
            data={"metric": name, "value": value, **kwargs},
        )


# Global logger instance
_agent_logger: AgentLogger | None = None


def get_agent_logger() -> AgentLogger:
    """Get the global agent logger instance."""
    global _agent_logger
    if _agent_logger is None:
        _agent_logger = AgentLogger()
    return _agent_logger


def configure_agent_logging(level: str = "INFO", json_output: bool = True) -> AgentLogger:
    """
    Configure agent logging.

    Args:
        level: Log level.
        json_output: Whether to use JSON formatting.

    Returns:
        Configured AgentLogger instance.
    """
    global _agent_logger
    _agent_logger = AgentLogger(level=level, json_output=json_output)
    return _agent_logger
