"""
Exceptions for the devagents system.

Provides a hierarchy of exceptions:
- DevAgentsError (base)
  - NoCapableAgentError
  - ProviderError
    - InvalidKeyError
    - RateLimitError
    - NetworkError
    - InvalidRequestError
  - ParseError
  - MemoryIOError

All exceptions carry optional details that are rendered into the message.
"""

from typing import Any


class DevAgentsError(Exception):
    """Base exception for the devagents system.

    Attributes:
        details: Additional error details.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize error.

        Args:
            message: Human-readable error message.
            details: Additional context as key-value pairs.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"Details: {details_str}")
        return " | ".join(parts)


class NoCapableAgentError(DevAgentsError):
    """No registered agent can handle the task."""

    def __init__(self, task: str, registered: list[str] | None = None):
        details = {"registered": ", ".join(registered)} if registered else None
        super().__init__(f"No agent can handle task: {task}", details)
        self.task = task


class ProviderError(DevAgentsError):
    """AI provider call failed.

    Attributes:
        provider: Name of the provider that failed.
        code: Error code (RATE_LIMIT, INVALID_KEY, NETWORK, INVALID_REQUEST, UNKNOWN).
        retryable: Whether the call may succeed if repeated.
    """

    code = "UNKNOWN"
    retryable = False

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        code: str | None = None,
        retryable: bool | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.provider = provider
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.provider:
            parts.append(f"Provider: {self.provider}")
        parts.append(f"Code: {self.code}")
        return " | ".join(parts)


class InvalidKeyError(ProviderError):
    """API key missing or rejected."""

    code = "INVALID_KEY"
    retryable = False


class RateLimitError(ProviderError):
    """Provider rejected the call because of rate limits."""

    code = "RATE_LIMIT"
    retryable = True


class NetworkError(ProviderError):
    """Connection failure or timeout talking to the provider."""

    code = "NETWORK"
    retryable = True


class InvalidRequestError(ProviderError):
    """Provider rejected the request as malformed."""

    code = "INVALID_REQUEST"
    retryable = False


class ParseError(DevAgentsError):
    """Model output could not be parsed as structured JSON."""


class MemoryIOError(DevAgentsError):
    """Memory or metrics persistence failed."""

    def __init__(self, message: str, path: str | None = None, **kwargs: Any):
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.path = path
