#!/usr/bin/env python3
"""
Workflow Example

This example demonstrates a full run of the agent system:
1. Build a wired system from settings
2. Route single tasks to agents
3. Run a bug fix workflow with metrics tracking
4. Print the dashboard and token usage report

Without DEVAGENTS_LLM_API_KEY (or a provider-specific key) the offline
mock provider answers every request.
"""

import asyncio
import tempfile
from pathlib import Path

from devagents import Settings, create_system
from devagents.config import AgentSettings, MemorySettings, MetricsStorageSettings, PhaseSettings
from devagents.metrics.dashboard import build_dashboard
from devagents.workflows import BugReport, run_bug_fix


async def main():
    workdir = Path(tempfile.mkdtemp(prefix="devagents-demo-"))
    settings = Settings(
        agent=AgentSettings(mock_min_latency_ms=50, mock_max_latency_ms=200),
        memory=MemorySettings(storage_dir=workdir / "memory"),
        metrics=MetricsStorageSettings(storage_dir=workdir / "metrics"),
        phase=PhaseSettings(current=3),
        log_level="WARNING",
    )

    print("=" * 60)
    print("devagents - Workflow Example")
    print("=" * 60)

    system = create_system(settings)
    async with system:
        print(f"\nProvider: {system.provider.provider_name} ({system.provider.model_name})")
        print(f"Agents: {', '.join(system.orchestrator.registered_agents())}")

        # Single tasks
        print("\n" + "-" * 60)
        print("Single Tasks")
        print("-" * 60)
        for task in ["research the authentication module", "implement input validation"]:
            agent = system.orchestrator.find_agent(task)
            result = await system.orchestrator.process_task(task)
            print(f"\n{task!r} -> {agent.name} (est. {agent.estimate_time(task):.0f} min)")
            print(f"  {result['task']}")

        # Bug fix workflow
        print("\n" + "-" * 60)
        print("Bug Fix Workflow")
        print("-" * 60)
        bug = BugReport(
            id="BUG-1",
            title="Login rejects valid users",
            description="login fails with valid credentials",
            actual_behavior="users see 'invalid password'",
        )
        outcome = await run_bug_fix(system.orchestrator, system.collector, bug)
        for step in outcome.metric.agent_metrics:
            print(f"  {step.agent_name:<22} {step.duration_ms:8.1f} ms  success={step.success}")

        comparison = outcome.metric.comparison
        print(f"\n  AI time:          {comparison.ai_time:.2f} min")
        print(f"  Manual estimate:  {comparison.manual_time:.2f} min")
        print(f"  Time improvement: {comparison.time_improvement:.1f}%")
        print(f"  Cost savings:     {comparison.cost_savings:.1f}%")

    # Dashboard
    print("\n" + "-" * 60)
    print("Dashboard")
    print("-" * 60)
    dashboard = build_dashboard(system.collector.get_all_metrics())
    print(f"  Tasks: {dashboard.summary.total_tasks}")
    print(f"  Most used agent: {dashboard.agent_analysis.most_used_agent}")

    print("\n" + system.token_tracker.generate_report())
    print(f"\nState written to: {workdir}")


if __name__ == "__main__":
    asyncio.run(main())
