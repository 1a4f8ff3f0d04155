"""
Unit tests for messages, capabilities, response parsing and the agent execution chain.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from devagents.agents.agent import Agent, Middleware
from devagents.agents.capability import keyword_capability
from devagents.agents.memory_layer import MemoryMiddleware
from devagents.agents.messages import Message, MessagePayload, MessageType, Priority
from devagents.agents.mock_handler import MockHandler
from devagents.agents.parsing import parse_json, structure_response
from devagents.config import AgentSettings
from devagents.errors import ParseError
from devagents.logging import EventType


class RecordingMiddleware(Middleware):
    """Appends its name to a shared log before and after the next layer."""

    def __init__(self, name: str, log: list[str]):
        self.name = name
        self.log = log

    async def execute(self, message, call_next, invocation):
        self.log.append(f"{self.name}:before")
        response = await call_next(message.with_context({**(message.payload.context or {}), self.name: True}))
        self.log.append(f"{self.name}:after")
        return response


class ShortCircuitMiddleware(Middleware):
    """Answers without calling the next layer."""

    async def execute(self, message, call_next, invocation):
        return message.reply({"task": "short-circuited"})


# =============================================================================
# Message Tests
# =============================================================================


class TestMessage:
    """Tests for request and response messages."""

    def test_request(self):
        """Test request construction."""
        message = Message.request("orchestrator", "ResearchAgent", "research auth", "high")
        assert message.type == MessageType.REQUEST
        assert message.payload.priority == Priority.HIGH
        assert message.timestamp.tzinfo is not None

    def test_reply_swaps_parties(self):
        """Test replies are addressed back to the sender."""
        request = Message.request("orchestrator", "ResearchAgent", "x")
        reply = request.reply({"task": "done", "findings": ["a"]})
        assert (reply.sender, reply.recipient) == ("ResearchAgent", "orchestrator")
        assert reply.type == MessageType.RESPONSE
        assert reply.payload.findings == ["a"]

    def test_immutable(self):
        """Test messages and payloads cannot be modified in place."""
        message = Message.request("a", "b", "x")
        with pytest.raises(ValidationError):
            message.sender = "c"
        with pytest.raises(ValidationError):
            message.payload.task = "y"

    def test_with_context_copies(self):
        """Test replacing context leaves the original untouched."""
        message = Message.request("a", "b", "x", context={"k": 1})
        updated = message.with_context({"k": 2})
        assert message.payload.context == {"k": 1}
        assert updated.payload.context == {"k": 2}

    def test_payload_to_dict(self):
        """Test extras are kept and unset optionals dropped."""
        payload = MessagePayload(task="x", score=88)
        assert payload.to_dict() == {"task": "x", "priority": "medium", "score": 88}


# =============================================================================
# Capability Tests
# =============================================================================


class TestCapability:
    """Tests for keyword capabilities."""

    def test_keyword_match_case_insensitive(self):
        """Test keywords match anywhere in the task, ignoring case."""
        capability = keyword_capability(["research", "break down"])
        assert capability.can_handle("Research the auth module")
        assert capability.can_handle("please BREAK DOWN this epic")
        assert not capability.can_handle("deploy it")

    def test_time_estimate_scopes(self):
        """Test the first matching scope sets the estimate."""
        capability = keyword_capability(["x"], default_minutes=5, scopes={"entire codebase": 30, "module": 15})
        assert capability.estimate_time("scan the entire codebase module by module") == 30
        assert capability.estimate_time("scan this module") == 15
        assert capability.estimate_time("scan") == 5

    def test_dependencies_default_empty(self):
        """Test dependencies default to an empty list."""
        assert keyword_capability(["x"]).dependencies == []


# =============================================================================
# Parsing Tests
# =============================================================================


class TestParseJson:
    """Tests for JSON extraction from model output."""

    def test_plain_object(self):
        """Test a bare object parses."""
        assert parse_json('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        """Test markdown fences are stripped."""
        assert parse_json('```json\n{"a": 1}\n```') == {"a": 1}
        assert parse_json('```\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '"text"'])
    def test_rejects_non_objects(self, content):
        """Test non-object content raises ParseError."""
        with pytest.raises(ParseError):
            parse_json(content)


class TestStructureResponse:
    """Tests for building response payloads."""

    def _request(self, **kwargs) -> MessagePayload:
        return MessagePayload(task="research auth", priority=Priority.HIGH, **kwargs)

    def test_json_spread(self):
        """Test JSON fields are spread into the payload."""
        payload = structure_response("ResearchAgent", '{"findings": ["a"]}', self._request(), "Mock")
        assert payload["findings"] == ["a"]
        assert payload["task"] == "ResearchAgent completed: research auth"
        assert payload["priority"] == "high"
        assert payload["context"]["model"] == "Mock"
        assert "timestamp" in payload["context"]

    def test_json_task_and_context_kept(self):
        """Test a string task and dict context from the model are kept."""
        content = json.dumps({"task": "custom", "context": {"note": "n"}, "constraints": ["c"]})
        payload = structure_response("A", content, self._request(), "Mock")
        assert payload["task"] == "custom"
        assert payload["context"]["note"] == "n"
        assert payload["constraints"] == ["c"]

    def test_invalid_constraints_dropped(self):
        """Test constraints that aren't a list of strings are dropped."""
        payload = structure_response("A", '{"constraints": "none"}', self._request(), "Mock")
        assert "constraints" not in payload
        MessagePayload.model_validate(payload)

    def test_text_wrapped(self):
        """Test non-JSON output is wrapped and never raises."""
        payload = structure_response("A", "plain words", self._request(), "Mock")
        assert payload["response"] == "plain words"
        assert payload["task"] == "A completed: research auth"


# =============================================================================
# Agent Tests
# =============================================================================


class TestAgent:
    """Tests for the middleware chain."""

    @pytest.mark.asyncio
    async def test_layers_run_in_order(self, make_agent):
        """Test middlewares wrap each other outermost first."""
        log: list[str] = []
        agent = make_agent(
            "ResearchAgent",
            ["research"],
            middlewares=[RecordingMiddleware("outer", log), RecordingMiddleware("inner", log)],
        )
        response = await agent.execute(Message.request("orchestrator", "ResearchAgent", "research auth"))

        assert log == ["outer:before", "inner:before", "inner:after", "outer:after"]
        assert response.payload.task == "ResearchAgent handled: research auth"
        handled = agent.handler.messages[0]
        assert handled.payload.context == {"outer": True, "inner": True}

    @pytest.mark.asyncio
    async def test_short_circuit(self, make_agent):
        """Test a layer may answer without calling the handler."""
        agent = make_agent("A", ["x"], middlewares=[ShortCircuitMiddleware()])
        response = await agent.execute(Message.request("o", "A", "x"))
        assert response.payload.task == "short-circuited"
        assert agent.handler.messages == []

    @pytest.mark.asyncio
    async def test_errors_propagate(self, make_agent):
        """Test handler errors reach the caller."""
        agent = make_agent("A", ["x"], error=RuntimeError("boom"))
        with pytest.raises(RuntimeError, match="boom"):
            await agent.execute(Message.request("o", "A", "x"))

    @pytest.mark.asyncio
    async def test_failure_logged_once(self, make_agent):
        """Test a failed execution produces a single agent.failed error record."""
        agent = make_agent("A", ["x"], error=RuntimeError("boom"))
        with patch.object(agent._logger, "error") as error:
            with pytest.raises(RuntimeError):
                await agent.execute(Message.request("o", "A", "x"))
        assert error.call_count == 1
        assert error.call_args.kwargs["event_type"] == EventType.AGENT_FAILED

    def test_capability_delegation(self, make_agent):
        """Test routing helpers delegate to the capability."""
        agent = make_agent("A", ["research"])
        assert agent.can_handle("research x")
        assert agent.estimate_time("research x") == 5.0
        assert agent.dependencies == []

    def test_ai_toggle(self, make_agent):
        """Test AI can be switched off and on."""
        agent = make_agent("A", ["x"])
        agent.disable_ai()
        assert agent.ai_enabled is False
        agent.enable_ai()
        assert agent.ai_enabled is True

    def test_get_middleware(self, make_agent):
        """Test layers are found by type."""
        shorty = ShortCircuitMiddleware()
        agent = make_agent("A", ["x"], middlewares=[shorty])
        assert agent.get_middleware(ShortCircuitMiddleware) is shorty
        assert agent.get_middleware(MemoryMiddleware) is None

    def test_memory_helpers_need_memory_layer(self, make_agent):
        """Test memory helpers fail clearly without a memory layer."""
        agent = make_agent("A", ["x"])
        with pytest.raises(ValueError, match="no memory layer"):
            agent.recall_memories("x")


# =============================================================================
# Mock Handler Tests
# =============================================================================


class TestMockHandler:
    """Tests for the canned response handler."""

    @pytest.mark.asyncio
    async def test_canned_response(self):
        """Test the handler answers with a structured canned response."""
        sleep = AsyncMock()
        handler = MockHandler(AgentSettings(mock_min_latency_ms=0, mock_max_latency_ms=0), sleep=sleep)
        agent = Agent("ImplementationAgent", keyword_capability(["implement"]), handler=handler)
        response = await agent.execute(Message.request("o", "ImplementationAgent", "implement login"))

        assert response.payload.files[0]["path"] == "src/implementation/solution.py"
        assert response.payload.task == "ImplementationAgent completed: implement login"
        assert response.payload.context["model"] == "mock"
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generic_text_response(self):
        """Test unmatched tasks get a wrapped text response."""
        handler = MockHandler(AgentSettings(mock_min_latency_ms=0, mock_max_latency_ms=0), sleep=AsyncMock())
        agent = Agent("PlanningAgent", keyword_capability(["plan"]), handler=handler)
        response = await agent.execute(Message.request("o", "PlanningAgent", "plan the sprint"))
        assert response.payload.response.startswith("Mock AI response for: plan the sprint")

    def test_prompt_excludes_memory(self):
        """Test the prompt omits injected memory context."""
        handler = MockHandler(AgentSettings())
        message = Message.request("o", "A", "x", context={"memory": {"big": 1}, "file": "a.py"})
        prompt = handler.build_prompt("A", message)
        assert "You are the A" in prompt
        assert '"file": "a.py"' in prompt
        assert "big" not in prompt
