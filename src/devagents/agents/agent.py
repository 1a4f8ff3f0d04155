"""
Agent execution contract.

An Agent pairs a capability descriptor with an ordered stack of middleware
that terminates in a handler. Each middleware may inspect or rewrite the
request, call the next layer, and inspect the response:

    MemoryMiddleware -> AIMiddleware -> MockHandler

The stack is configured per agent instance.
"""

import inspect
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from devagents.agents.capability import Capability
from devagents.agents.messages import Message
from devagents.logging import get_agent_logger

if TYPE_CHECKING:
    from devagents.agents.memory_layer import LoadedContext

ChunkCallback = Callable[[str], Any]
NextLayer = Callable[[Message], Awaitable[Message]]
M = TypeVar("M", bound="Middleware")


@dataclass
class Invocation:
    """State shared by the layers of a single execution.

    Attributes:
        agent: Agent being executed.
        on_chunk: Streaming callback, if the caller asked for streaming.
        memory_context: Context loaded by the memory layer, if present.
    """

    agent: "Agent"
    on_chunk: Optional[ChunkCallback] = None
    memory_context: Optional["LoadedContext"] = None

    async def emit(self, chunk: str) -> None:
        """Pass a chunk to the streaming callback, awaiting it if it is async."""
        if self.on_chunk is None:
            return
        result = self.on_chunk(chunk)
        if inspect.isawaitable(result):
            await result


class Middleware(ABC):
    """A layer wrapping the rest of the execution stack."""

    @abstractmethod
    async def execute(self, message: Message, call_next: NextLayer, invocation: Invocation) -> Message:
        """
        Run this layer.

        Args:
            message: Request message.
            call_next: Runs the remaining layers.
            invocation: Per-execution state.

        Returns:
            Response message.
        """


class Handler(ABC):
    """Terminal layer producing the agent's response."""

    @abstractmethod
    async def handle(self, message: Message, invocation: Invocation) -> Message:
        """Produce a response for the request."""


class Agent:
    """
    A named worker with a capability and a middleware stack.

    Example:
        ```python
        agent = Agent(
            "ResearchAgent",
            keyword_capability(["research", "analyze"]),
            handler=MockHandler(),
            middlewares=[MemoryMiddleware(store, aggregator), AIMiddleware(provider)],
        )
        response = await agent.execute(Message.request("orchestrator", agent.name, "research auth"))
        ```
    """

    def __init__(
        self,
        name: str,
        capability: Capability,
        handler: Handler,
        middlewares: Optional[list[Middleware]] = None,
        ai_enabled: bool = True,
    ):
        """
        Initialize the agent.

        Args:
            name: Unique agent name.
            capability: Routing predicate, time estimator and dependencies.
            handler: Terminal layer.
            middlewares: Layers in outermost-first order.
            ai_enabled: Whether the AI layer may call its provider.
        """
        self.name = name
        self.capability = capability
        self.handler = handler
        self.middlewares = list(middlewares or [])
        self.ai_enabled = ai_enabled
        self._logger = get_agent_logger()

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r}, layers={[type(m).__name__ for m in self.middlewares]})"

    def can_handle(self, task: str) -> bool:
        return self.capability.can_handle(task)

    def estimate_time(self, task: str) -> float:
        return self.capability.estimate_time(task)

    @property
    def dependencies(self) -> list[str]:
        return self.capability.dependencies

    def enable_ai(self) -> None:
        self.ai_enabled = True

    def disable_ai(self) -> None:
        self.ai_enabled = False

    def get_middleware(self, middleware_type: type[M]) -> Optional[M]:
        """First layer of the given type, if the stack has one."""
        for middleware in self.middlewares:
            if isinstance(middleware, middleware_type):
                return middleware
        return None

    async def execute(self, message: Message, on_chunk: Optional[ChunkCallback] = None) -> Message:
        """
        Run the request through the middleware stack.

        Args:
            message: Request message.
            on_chunk: Optional streaming callback for AI output chunks.

        Returns:
            Response message.
        """
        invocation = Invocation(agent=self, on_chunk=on_chunk)

        async def run(index: int, current: Message) -> Message:
            if index == len(self.middlewares):
                return await self.handler.handle(current, invocation)
            return await self.middlewares[index].execute(
                current, lambda next_message: run(index + 1, next_message), invocation
            )

        with self._logger.span(f"execute {self.name}", agent_name=self.name, log_errors=False):
            self._logger.log_agent_started(self.name, message.payload.task)
            start_time = time.perf_counter()
            try:
                response = await run(0, message)
            except Exception as e:
                self._logger.log_agent_failed(
                    self.name, str(e), duration_ms=(time.perf_counter() - start_time) * 1000
                )
                raise
            self._logger.log_agent_completed(self.name, (time.perf_counter() - start_time) * 1000)
        return response

    async def stream_execute(self, message: Message, on_chunk: ChunkCallback) -> Message:
        """Execute while streaming AI output chunks to ``on_chunk``."""
        return await self.execute(message, on_chunk=on_chunk)

    # Memory layer helpers

    def _memory_layer(self):
        from devagents.agents.memory_layer import MemoryMiddleware

        layer = self.get_middleware(MemoryMiddleware)
        if layer is None:
            raise ValueError(f"Agent {self.name} has no memory layer")
        return layer

    def share_knowledge(self, topic: str, facts: list[str], target_agent: Optional[str] = None) -> None:
        self._memory_layer().share_knowledge(self.name, topic, facts, target_agent)

    def recall_memories(self, query: str, limit: int = 5):
        return self._memory_layer().recall_memories(self.name, query, limit)

    def clear_memories(self) -> None:
        self._memory_layer().clear_memories(self.name)
