"""Wire protocol for the DiagramAI WebSocket endpoint.

Key concepts:
- Outbound messages: agent operations tagged with a request_id
- Inbound messages: replies carrying that request_id, or notifications without one
- Correlation: the request_id links a reply back to its operation
"""

from .messages import (
    InboundMessage,
    MessageType,
    OutboundMessage,
    generate_agent_id,
    generate_request_id,
)

__all__ = [
    "InboundMessage",
    "MessageType",
    "OutboundMessage",
    "generate_agent_id",
    "generate_request_id",
]
