"""
Orchestrator routing tasks to registered agents.

Routing picks the first agent, in registration order, whose capability
accepts the task. Workflows run their tasks strictly one after another.
"""

import time
from typing import Any, Optional

from devagents.agents.agent import Agent
from devagents.agents.messages import Message, Priority
from devagents.errors import NoCapableAgentError
from devagents.logging import EventType, get_agent_logger
from devagents.metrics.collector import MetricsCollector


class Orchestrator:
    """
    Registry of agents with first-match routing.

    Example:
        ```python
        orchestrator = Orchestrator(collector)
        orchestrator.register_agent(research_agent)
        result = await orchestrator.process_task("research the auth flow")
        ```
    """

    NAME = "orchestrator"

    def __init__(self, collector: Optional[MetricsCollector] = None):
        """
        Initialize the orchestrator.

        Args:
            collector: When given, every agent call is bracketed with
                start_agent/end_agent on it.
        """
        self.collector = collector
        self._agents: dict[str, Agent] = {}
        self._logger = get_agent_logger()

    def register_agent(self, agent: Agent) -> None:
        """Register an agent. A later agent with the same name replaces the earlier one in place."""
        self._agents[agent.name] = agent
        self._logger.debug(
            f"Agent registered: {agent.name}",
            event_type=EventType.AGENT_REGISTERED,
            data={"agent_name": agent.name, "dependencies": agent.dependencies},
        )

    def registered_agents(self) -> list[str]:
        return list(self._agents)

    def get_agent(self, name: str) -> Optional[Agent]:
        return self._agents.get(name)

    def find_agent(self, task: str) -> Optional[Agent]:
        """First registered agent able to handle the task."""
        return next((agent for agent in self._agents.values() if agent.can_handle(task)), None)

    async def process_task(self, task: str, priority: Priority | str = Priority.MEDIUM) -> dict[str, Any]:
        """
        Route a task to the first capable agent and run it.

        Args:
            task: Natural-language task.
            priority: Request priority.

        Returns:
            The response payload as a dictionary.

        Raises:
            NoCapableAgentError: If no registered agent accepts the task.
        """
        agent = self.find_agent(task)
        if agent is None:
            self._logger.warning(
                "No agent can handle task",
                event_type=EventType.TASK_UNROUTABLE,
                data={"task": task[:200], "registered": self.registered_agents()},
            )
            raise NoCapableAgentError(task, registered=self.registered_agents())

        priority = Priority(priority)
        self._logger.log_task_routed(task, agent.name, priority.value)
        message = Message.request(self.NAME, agent.name, task, priority=priority)

        if self.collector is None:
            response = await agent.execute(message)
            return response.payload.to_dict()

        handle = self.collector.start_agent(agent.name)
        try:
            response = await agent.execute(message)
        except Exception as e:
            self.collector.end_agent(agent.name, success=False, error=str(e), handle=handle)
            raise
        self.collector.end_agent(agent.name, success=True, handle=handle)
        return response.payload.to_dict()

    async def process_workflow(self, tasks: list[str]) -> list[dict[str, Any]]:
        """
        Run tasks in order, one at a time.

        The first failure aborts the workflow and propagates; completed
        steps are not rolled back.

        Args:
            tasks: Tasks in execution order.

        Returns:
            Response payloads in task order.
        """
        self._logger.info(
            f"Starting workflow with {len(tasks)} tasks",
            event_type=EventType.WORKFLOW_STARTED,
            data={"num_tasks": len(tasks)},
        )
        start_time = time.perf_counter()
        results = []
        for index, task in enumerate(tasks):
            try:
                results.append(await self.process_task(task))
            except Exception as e:
                self._logger.error(
                    f"Workflow aborted at step {index + 1}: {e}",
                    event_type=EventType.WORKFLOW_FAILED,
                    error=str(e),
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    data={"step": index + 1, "task": task[:200]},
                )
                raise

        self._logger.info(
            "Workflow completed",
            event_type=EventType.WORKFLOW_COMPLETED,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            data={"num_tasks": len(tasks)},
        )
        return results
