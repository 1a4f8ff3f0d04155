"""
AI middleware: answers requests with a Provider and falls back to the next
layer when the provider fails.
"""

import json
import time
from typing import Any, Optional

from devagents.agents.agent import Invocation, Middleware, NextLayer
from devagents.agents.messages import Message
from devagents.agents.parsing import structure_response
from devagents.config import AgentSettings, get_settings
from devagents.errors import ProviderError
from devagents.logging import EventType, get_agent_logger
from devagents.metrics.collector import MetricsCollector
from devagents.metrics.token_tracker import TokenTracker
from devagents.providers.base import Provider, RequestOptions, TokenUsage

JSON_INSTRUCTION = "Please provide a detailed response in JSON format."


class AIMiddleware(Middleware):
    """
    Generates responses with an AI provider.

    Prompt sections are assembled from the request and the context injected
    by the memory layer. Provider errors never reach the caller: they are
    logged and the request is passed to the next layer instead.
    """

    def __init__(
        self,
        provider: Provider,
        settings: Optional[AgentSettings] = None,
        collector: Optional[MetricsCollector] = None,
        token_tracker: Optional[TokenTracker] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ):
        """
        Initialize the AI layer.

        Args:
            provider: Provider used for generation.
            settings: Agent settings.
            collector: Receives token usage of successful calls.
            token_tracker: Receives token totals of successful calls.
            model: Model override; the provider default otherwise.
            temperature: Sampling temperature, clamped to [0, 1].
            max_tokens: Output limit, clamped to the provider's context window.
            system_prompt: Agent-specific system prompt.
        """
        self.provider = provider
        self.settings = settings or get_settings().agent
        self.collector = collector
        self.token_tracker = token_tracker
        self.model = model
        self.temperature = provider.settings.temperature
        self.max_tokens = provider.settings.max_tokens
        self.system_prompt = system_prompt or self.settings.system_prompt
        self._logger = get_agent_logger()

        if temperature is not None:
            self.set_temperature(temperature)
        if max_tokens is not None:
            self.set_max_tokens(max_tokens)

    def set_model(self, model: Optional[str]) -> None:
        self.model = model

    def set_temperature(self, temperature: float) -> None:
        self.temperature = max(0.0, min(1.0, temperature))

    def set_max_tokens(self, max_tokens: int) -> None:
        self.max_tokens = min(max_tokens, self.provider.get_max_tokens())

    async def test_connection(self) -> bool:
        return await self.provider.test_connection()

    def request_options(self) -> RequestOptions:
        return RequestOptions(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            system_prompt=self.system_prompt,
            response_format=self.settings.response_format,
        )

    def build_prompt(self, message: Message) -> str:
        """
        Assemble the prompt for a request.

        Sections appear only when they have content: task, caller context,
        ranked prior work, shared knowledge and constraints, followed by
        the JSON instruction.
        """
        payload = message.payload
        context = dict(payload.context or {})
        memory = context.pop("memory", None) or {}

        sections = [f"Task: {payload.task}\n"]
        if context:
            sections.append(f"\nProvided Context:\n{json.dumps(context, indent=2, default=str)}\n")

        ranked = memory.get("ranked_memories") or []
        if ranked:
            preview = self.settings.memory_preview_chars
            lines = [
                f"{i}. {json.dumps(m.get('content'), default=str)[:preview]}..."
                for i, m in enumerate(ranked, start=1)
            ]
            sections.append("\nRelevant Previous Work:\n" + "\n".join(lines) + "\n")

        shared = memory.get("shared_knowledge") or {}
        if shared:
            sections.append(f"\nShared Knowledge:\n{json.dumps(shared, indent=2, default=str)}\n")

        if payload.constraints:
            sections.append("\nConstraints:\n" + "\n".join(payload.constraints) + "\n")

        sections.append(f"\n{JSON_INSTRUCTION}")
        return "".join(sections)

    async def execute(self, message: Message, call_next: NextLayer, invocation: Invocation) -> Message:
        agent = invocation.agent
        if not agent.ai_enabled:
            return await call_next(message)

        prompt = self.build_prompt(message)
        options = self.request_options()
        start_time = time.perf_counter()
        try:
            if invocation.on_chunk is not None and self.provider.supports_streaming:
                content, usage, cost, model = await self._stream(prompt, options, invocation)
            else:
                response = await self.provider.generate_response(prompt, options)
                content, usage, cost, model = response.content, response.usage, response.cost, response.model
        except ProviderError as e:
            self._logger.warning(
                f"{agent.name} AI call failed, falling back: {e}",
                event_type=EventType.AGENT_FALLBACK,
                error=str(e),
                data={"agent_name": agent.name, "provider": self.provider.provider_name, "code": e.code},
            )
            return await call_next(message)

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._record_usage(agent.name, message.payload.task, usage, cost, duration_ms)
        self._logger.debug(
            f"{agent.name} answered by {self.provider.provider_name}/{model}",
            event_type=EventType.LLM_RESPONSE,
            duration_ms=duration_ms,
            data={"agent_name": agent.name, "total_tokens": usage.total_tokens},
        )

        payload = structure_response(agent.name, content, message.payload, self.provider.provider_name)
        return message.reply(payload)

    async def _stream(
        self, prompt: str, options: RequestOptions, invocation: Invocation
    ) -> tuple[str, TokenUsage, float, str]:
        chunks: list[str] = []
        async for chunk in self.provider.stream_response(prompt, options):
            chunks.append(chunk)
            await invocation.emit(chunk)
        content = "".join(chunks)

        # Streams report no usage, estimate it
        model = options.model or self.provider.model_name
        input_tokens = self.provider.get_token_count(prompt)
        output_tokens = self.provider.get_token_count(content)
        usage = TokenUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )
        cost = self.provider.calculate_cost(model, input_tokens, output_tokens)
        return content, usage, cost, model

    def _record_usage(
        self, agent_name: str, task: str, usage: TokenUsage, cost: float, duration_ms: float
    ) -> None:
        if self.collector is not None:
            self.collector.add_token_usage(agent_name, usage.input_tokens, usage.output_tokens, cost)
        if self.token_tracker is not None:
            self.token_tracker.track_usage(agent_name, task, usage.total_tokens, duration_ms)

    def describe(self) -> dict[str, Any]:
        """Current generation settings, for diagnostics."""
        return {
            "provider": self.provider.provider_name,
            "model": self.model or self.provider.model_name,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
