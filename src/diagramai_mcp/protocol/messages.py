"""Wire messages exchanged with the DiagramAI WebSocket endpoint.

Outbound messages are operations sent by this agent. Each carries a unique
``request_id`` so the service can echo it back on the reply.

Inbound messages are either:
- Replies: carry the ``request_id`` of an outstanding operation
- Notifications: no ``request_id`` (diagram changes pushed by the service)

Example (outbound):
    {
        "type": "agent_operation",
        "operation": "add_node",
        "diagram_uuid": "6f1c...",
        "data": {"type": "process", "label": "Start", "position": {"x": 0, "y": 0}},
        "agent_id": "mcp-agent-1718000000000",
        "request_id": "req_1718000000123_k3j9x0a1b",
        "timestamp": "2024-06-10T06:13:20.123000+00:00"
    }

Example (reply):
    {
        "type": "agent_operation_result",
        "request_id": "req_1718000000123_k3j9x0a1b",
        "result": {"node_id": "node_7"}
    }
"""

from __future__ import annotations

import json
import secrets
import string
import time
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import MessageParseError

_BASE36 = string.digits + string.ascii_lowercase


class MessageType(str, Enum):
    """Message types used by the bridge."""

    AGENT_OPERATION = "agent_operation"
    ERROR = "error"


def generate_request_id() -> str:
    """Create a correlation id: millisecond timestamp plus random suffix."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def generate_agent_id() -> str:
    """Create the per-process agent identity."""
    return f"mcp-agent-{int(time.time() * 1000)}"


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


class OutboundMessage(BaseModel):
    """An operation sent to the DiagramAI service."""

    type: str = MessageType.AGENT_OPERATION.value
    operation: str | None = None
    diagram_uuid: str | None = None
    data: Any = None
    agent_id: str | None = None
    request_id: str | None = None
    timestamp: str | None = None

    @classmethod
    def operation_message(
        cls,
        operation: str,
        data: Any = None,
        diagram_uuid: str | None = None,
    ) -> OutboundMessage:
        """Factory for an ``agent_operation`` message."""
        return cls(
            type=MessageType.AGENT_OPERATION.value,
            operation=operation,
            diagram_uuid=diagram_uuid,
            data=data,
        )

    def to_json(self) -> str:
        """Serialize to a JSON text frame, omitting unset fields."""
        return self.model_dump_json(exclude_none=True)


class InboundMessage(BaseModel):
    """A frame received from the DiagramAI service.

    Unknown keys are preserved so domain fields pass through untouched.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    request_id: str | None = None
    error: Any = None
    result: Any = None
    success: bool | None = None
    diagram_uuid: str | None = None
    changes: Any = None
    updated_by: str | None = None
    timestamp: Any = None

    def is_reply(self) -> bool:
        """Check if this message answers a correlated request."""
        return self.request_id is not None

    def is_error(self) -> bool:
        """Check if the service reported a failure."""
        return self.type == MessageType.ERROR.value or bool(self.error)

    def error_message(self) -> str:
        """Human-readable error text, "Unknown error" when none was given."""
        if not self.error:
            return "Unknown error"
        if isinstance(self.error, dict):
            return str(self.error.get("message", self.error))
        return str(self.error)

    @classmethod
    def from_frame(cls, frame: str | bytes) -> InboundMessage:
        """Decode a WebSocket frame.

        Raises:
            MessageParseError: If the frame is not a JSON object with a ``type``
        """
        try:
            text = frame.decode("utf-8") if isinstance(frame, bytes) else frame
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MessageParseError(f"Invalid JSON frame: {e}") from e

        if not isinstance(data, dict):
            raise MessageParseError(f"Expected a JSON object, got {type(data).__name__}")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MessageParseError(f"Invalid message: {e}") from e
