"""Exception hierarchy for the DiagramAI bridge.

Every error derives from DiagramBridgeError and from the closest builtin,
so callers can catch either the bridge-specific class or the generic one
(e.g. ``except ConnectionError`` still sees a dropped WebSocket).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocol.messages import InboundMessage


class DiagramBridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigError(DiagramBridgeError, ValueError):
    """Invalid or missing configuration."""


class ConnectionFailedError(DiagramBridgeError, ConnectionError):
    """The WebSocket could not be opened after all retries."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class ConnectionLostError(DiagramBridgeError, ConnectionError):
    """The connection dropped (or was never open) while a request was in flight."""


class RequestTimeoutError(DiagramBridgeError, TimeoutError):
    """No reply arrived for a request within the timeout."""

    def __init__(self, request_id: str, timeout: float) -> None:
        super().__init__(f"Request {request_id} timed out after {timeout:g}s")
        self.request_id = request_id
        self.timeout = timeout


class OperationError(DiagramBridgeError):
    """The remote service answered with an explicit error payload."""

    def __init__(self, message: str, reply: InboundMessage | None = None) -> None:
        super().__init__(message)
        self.reply = reply


class ToolValidationError(DiagramBridgeError, ValueError):
    """Unknown tool name or arguments that fail the tool's schema."""


class AuthError(DiagramBridgeError, PermissionError):
    """Not authenticated, permission denied, or rate limit exceeded."""


class MessageParseError(DiagramBridgeError, ValueError):
    """An inbound frame could not be decoded. Never leaves the connection layer."""
