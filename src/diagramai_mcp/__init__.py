"""DiagramAI MCP bridge.

Exposes DiagramAI diagram operations as MCP tools. Each tool call becomes
an operation message on a persistent WebSocket, correlated with its reply
by request_id.

Key components:
- ConnectionManager: WebSocket lifecycle, retries, inbound routing
- RequestCorrelator: request_id generation and reply matching
- ToolDispatcher: argument validation, authorization, auditing
- DiagramBridgeServer: the MCP-facing server
"""

from .config import BridgeConfig
from .connection import ConnectionManager, ConnectionState
from .correlator import RequestCorrelator
from .errors import (
    AuthError,
    ConfigError,
    ConnectionFailedError,
    ConnectionLostError,
    DiagramBridgeError,
    MessageParseError,
    OperationError,
    RequestTimeoutError,
    ToolValidationError,
)
from .registry import PendingRequestRegistry
from .server import DiagramBridgeServer

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "AuthError",
    "BridgeConfig",
    "ConfigError",
    "ConnectionFailedError",
    "ConnectionLostError",
    "ConnectionManager",
    "ConnectionState",
    "DiagramBridgeError",
    "DiagramBridgeServer",
    "MessageParseError",
    "OperationError",
    "PendingRequestRegistry",
    "RequestCorrelator",
    "RequestTimeoutError",
    "ToolValidationError",
]
