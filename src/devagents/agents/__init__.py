"""
Agents: execution contract, middleware layers, catalogue and orchestrator.
"""

from devagents.agents.agent import Agent, Handler, Invocation, Middleware
from devagents.agents.capability import Capability, KeywordMatcher, TimeEstimator, keyword_capability
from devagents.agents.messages import Message, MessagePayload, MessageType, Priority
from devagents.agents.memory_layer import LoadedContext, MemoryMiddleware
from devagents.agents.ai_layer import AIMiddleware
from devagents.agents.mock_handler import MockHandler
from devagents.agents.parsing import parse_json, structure_response
from devagents.agents.catalog import AGENT_CATALOG, AgentSpec, build_agent, create_default_agents
from devagents.agents.orchestrator import Orchestrator

__all__ = [
    "AGENT_CATALOG",
    "AIMiddleware",
    "Agent",
    "AgentSpec",
    "Capability",
    "Handler",
    "Invocation",
    "KeywordMatcher",
    "LoadedContext",
    "MemoryMiddleware",
    "Message",
    "MessagePayload",
    "MessageType",
    "Middleware",
    "MockHandler",
    "Orchestrator",
    "Priority",
    "TimeEstimator",
    "build_agent",
    "create_default_agents",
    "keyword_capability",
    "parse_json",
    "structure_response",
]
