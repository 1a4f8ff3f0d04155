"""
Unit tests for errors.py.
"""

import pytest

from devagents.errors import (
    DevAgentsError,
    InvalidKeyError,
    InvalidRequestError,
    MemoryIOError,
    NetworkError,
    NoCapableAgentError,
    ParseError,
    ProviderError,
    RateLimitError,
)


class TestDevAgentsError:
    """Tests for the base exception."""

    def test_message_only(self):
        """Test string form without details."""
        assert str(DevAgentsError("boom")) == "boom"

    def test_details_rendered(self):
        """Test details are appended to the string form."""
        error = DevAgentsError("boom", details={"key": "value"})
        assert str(error) == "boom | Details: key=value"
        assert error.details == {"key": "value"}

    @pytest.mark.parametrize(
        "error",
        [
            NoCapableAgentError("task"),
            ProviderError("x"),
            ParseError("x"),
            MemoryIOError("x"),
        ],
    )
    def test_hierarchy(self, error):
        """Test every error derives from DevAgentsError."""
        assert isinstance(error, DevAgentsError)


class TestNoCapableAgentError:
    """Tests for routing failures."""

    def test_carries_task(self):
        """Test the unroutable task is kept and rendered."""
        error = NoCapableAgentError("paint the fence", registered=["ResearchAgent"])
        assert error.task == "paint the fence"
        assert "paint the fence" in str(error)
        assert "ResearchAgent" in str(error)


class TestProviderError:
    """Tests for provider errors."""

    @pytest.mark.parametrize(
        "cls,code,retryable",
        [
            (InvalidKeyError, "INVALID_KEY", False),
            (RateLimitError, "RATE_LIMIT", True),
            (NetworkError, "NETWORK", True),
            (InvalidRequestError, "INVALID_REQUEST", False),
            (ProviderError, "UNKNOWN", False),
        ],
    )
    def test_codes_and_retryability(self, cls, code, retryable):
        """Test each subclass declares its code and retryability."""
        error = cls("failed", provider="Anthropic")
        assert error.code == code
        assert error.retryable is retryable
        assert isinstance(error, ProviderError)

    def test_overrides(self):
        """Test code and retryability can be overridden per instance."""
        error = ProviderError("server error", provider="OpenAI", retryable=True, code="SERVER")
        assert error.retryable is True
        assert error.code == "SERVER"

    def test_string_form(self):
        """Test provider and code appear in the string form."""
        text = str(RateLimitError("slow down", provider="OpenAI"))
        assert "slow down" in text
        assert "Provider: OpenAI" in text
        assert "Code: RATE_LIMIT" in text


class TestMemoryIOError:
    """Tests for persistence errors."""

    def test_path_in_details(self):
        """Test the failing path is recorded."""
        error = MemoryIOError("write failed", path="/tmp/x.json")
        assert error.path == "/tmp/x.json"
        assert error.details["path"] == "/tmp/x.json"
