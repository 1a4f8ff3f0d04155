"""
Turning model output into structured response payloads.
"""

import json
import re
from typing import Any

from devagents.agents.messages import MessagePayload
from devagents.errors import ParseError
from devagents.memory.models import utc_now

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_json(content: str) -> dict[str, Any]:
    """
    Parse a JSON object from model output, tolerating a markdown code fence.

    Raises:
        ParseError: If the content is not a JSON object.
    """
    text = content.strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError("Response is not valid JSON", details={"error": e.msg}) from e
    if not isinstance(parsed, dict):
        raise ParseError("Response JSON is not an object", details={"type": type(parsed).__name__})
    return parsed


def structure_response(
    agent_name: str,
    content: str,
    request: MessagePayload,
    model: str,
) -> dict[str, Any]:
    """
    Build a response payload from raw model output.

    JSON objects are spread into the payload; anything else is wrapped in a
    ``response`` field. Never raises on unparseable content.

    Args:
        agent_name: Responding agent.
        content: Raw model output.
        request: Request payload being answered.
        model: Provider or model name recorded in the payload context.

    Returns:
        Dictionary suitable for MessagePayload validation.
    """
    default_task = f"{agent_name} completed: {request.task}"
    stamp = {"model": model, "timestamp": utc_now().isoformat()}

    try:
        parsed = parse_json(content)
    except ParseError:
        return {
            "task": default_task,
            "response": content,
            "context": stamp,
            "priority": request.priority.value,
        }

    task = parsed.get("task")
    parsed_context = parsed.get("context")
    constraints = parsed.get("constraints")
    payload = {
        **parsed,
        "task": task if isinstance(task, str) and task else default_task,
        "context": {**(parsed_context if isinstance(parsed_context, dict) else {}), **stamp},
        "priority": request.priority.value,
    }
    if not (isinstance(constraints, list) and all(isinstance(c, str) for c in constraints)):
        payload.pop("constraints", None)
    return payload
