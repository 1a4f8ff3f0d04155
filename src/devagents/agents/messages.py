"""
Messages exchanged between the orchestrator and agents.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from devagents.memory.models import utc_now


class MessageType(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    EVENT = "event"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MessagePayload(BaseModel):
    """
    Body of a message.

    Structured agent responses carry arbitrary additional fields
    (findings, files, tests, ...) alongside the standard ones.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    task: str
    context: Optional[dict[str, Any]] = None
    priority: Priority = Priority.MEDIUM
    constraints: Optional[list[str]] = None

    def to_dict(self) -> dict[str, Any]:
        """Plain dictionary including extra fields, without unset optionals."""
        return self.model_dump(mode="json", exclude_none=True)


class Message(BaseModel):
    """An immutable message between two parties."""

    model_config = ConfigDict(frozen=True)

    sender: str
    recipient: str
    type: MessageType
    payload: MessagePayload
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def request(
        cls,
        sender: str,
        recipient: str,
        task: str,
        priority: Priority | str = Priority.MEDIUM,
        context: Optional[dict[str, Any]] = None,
        constraints: Optional[list[str]] = None,
    ) -> "Message":
        return cls(
            sender=sender,
            recipient=recipient,
            type=MessageType.REQUEST,
            payload=MessagePayload(
                task=task,
                priority=Priority(priority),
                context=context,
                constraints=constraints,
            ),
        )

    def reply(self, payload: MessagePayload | dict[str, Any]) -> "Message":
        """Build a response message addressed back to the sender."""
        if isinstance(payload, dict):
            payload = MessagePayload.model_validate(payload)
        return Message(
            sender=self.recipient,
            recipient=self.sender,
            type=MessageType.RESPONSE,
            payload=payload,
        )

    def with_context(self, context: dict[str, Any]) -> "Message":
        """Copy of the message whose payload context is replaced."""
        return self.model_copy(update={"payload": self.payload.model_copy(update={"context": context})})
