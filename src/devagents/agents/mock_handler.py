"""
Terminal handler producing canned responses with simulated latency.

This is the base layer of every agent and the fallback when the AI layer
is disabled or its provider fails.
"""

import asyncio
import json
import random
from collections.abc import Awaitable, Callable
from typing import Optional

from devagents.agents.agent import Handler, Invocation
from devagents.agents.messages import Message
from devagents.agents.parsing import structure_response
from devagents.config import AgentSettings, ResponseFormat, get_settings
from devagents.providers.mock_provider import canned_response, simulated_latency_ms


class MockHandler(Handler):
    """Keyword-selected canned responses, parsed like AI output."""

    model_name = "mock"

    def __init__(
        self,
        settings: Optional[AgentSettings] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the handler.

        Args:
            settings: Agent settings with latency bounds.
            rng: Random source, seedable for tests.
            sleep: Sleep function, replaceable in tests.
        """
        self.settings = settings or get_settings().agent
        self._rng = rng or random.Random()
        self._sleep = sleep

    def build_prompt(self, agent_name: str, message: Message) -> str:
        context = {k: v for k, v in (message.payload.context or {}).items() if k != "memory"}
        return (
            f"You are the {agent_name}, a specialized agent in a modular system.\n\n"
            f"Task: {message.payload.task}\n"
            f"Context: {json.dumps(context, default=str)}"
        )

    async def handle(self, message: Message, invocation: Invocation) -> Message:
        agent_name = invocation.agent.name
        prompt = self.build_prompt(agent_name, message)
        delay_ms = simulated_latency_ms(
            prompt,
            self.settings.mock_min_latency_ms,
            self.settings.mock_max_latency_ms,
            self._rng,
            self.settings.mock_complexity_chars,
            self.settings.mock_complexity_factor,
        )
        await self._sleep(delay_ms / 1000)

        content = canned_response(message.payload.task, ResponseFormat.TEXT)
        payload = structure_response(agent_name, content, message.payload, self.model_name)
        return message.reply(payload)
