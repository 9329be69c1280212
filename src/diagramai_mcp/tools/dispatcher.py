"""Tool dispatch: validate, authorize, send, audit.

The dispatcher turns a named tool call into an operation message, waits
for the correlated reply and reports the outcome. Every call is audited
exactly once, whether it succeeds or fails. Failures propagate to the
caller after auditing.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from ..correlator import RequestCorrelator
from ..errors import AuthError, ToolValidationError
from ..protocol.messages import utc_now
from .catalog import TOOL_CATALOG, ToolDefinition

logger = logging.getLogger(__name__)

NEW_TARGET = "new"
UNKNOWN_TARGET = "unknown"


@runtime_checkable
class Authorizer(Protocol):
    """Authorization checks consulted before every dispatch."""

    def is_authenticated(self) -> bool: ...

    def check_permission(self, capability: str) -> bool: ...

    def check_rate_limit(self, tool_name: str) -> bool: ...


@runtime_checkable
class AuditSink(Protocol):
    """Receives one record per tool call."""

    def log_operation(
        self,
        tool: str,
        target: str,
        arguments: dict[str, Any],
        result: Any,
        success: bool,
        duration_ms: int,
    ) -> None: ...


class ToolDispatcher:
    """Executes catalog tools over the request correlator."""

    def __init__(
        self,
        correlator: RequestCorrelator,
        authorizer: Authorizer,
        audit: AuditSink,
        catalog: Mapping[str, ToolDefinition] | None = None,
    ) -> None:
        self.correlator = correlator
        self.authorizer = authorizer
        self.audit = audit
        self._catalog = catalog if catalog is not None else TOOL_CATALOG

    @property
    def tools(self) -> list[ToolDefinition]:
        """Available tools, in catalog order."""
        return list(self._catalog.values())

    @property
    def tool_count(self) -> int:
        return len(self._catalog)

    async def execute_tool(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Run a tool and return its result envelope.

        Returns:
            {"success": True, "result": ..., "tool": name, "duration": ms, "timestamp": iso}

        Raises:
            ToolValidationError: Unknown tool or invalid arguments
            AuthError: Not authenticated, permission denied or rate limited
            OperationError, RequestTimeoutError, ConnectionLostError: From the correlator
        """
        if arguments is None:
            arguments = {}
        start = time.monotonic()

        try:
            tool = self._lookup(name)
            params = tool.validate(arguments)
            self._authorize(tool)
            reply = await self.correlator.send(tool.build_message(params))
        except BaseException:
            duration = self._elapsed_ms(start)
            self._record(name, self._target(arguments, UNKNOWN_TARGET), arguments, None, False, duration)
            raise

        duration = self._elapsed_ms(start)
        self._record(name, self._target(arguments, NEW_TARGET), arguments, reply.result, True, duration)

        return {
            "success": True,
            "result": reply.result,
            "tool": name,
            "duration": duration,
            "timestamp": utc_now(),
        }

    def _lookup(self, name: str) -> ToolDefinition:
        tool = self._catalog.get(name)
        if tool is None:
            raise ToolValidationError(f"Unknown tool: {name}")
        return tool

    def _authorize(self, tool: ToolDefinition) -> None:
        if not self.authorizer.is_authenticated():
            raise AuthError("Not authenticated")
        if not self.authorizer.check_permission(tool.capability):
            raise AuthError(f"Permission denied: {tool.name} requires {tool.capability}")
        if not self.authorizer.check_rate_limit(tool.name):
            raise AuthError(f"Rate limit exceeded for {tool.name}")

    def _record(
        self,
        tool: str,
        target: str,
        arguments: dict[str, Any],
        result: Any,
        success: bool,
        duration_ms: int,
    ) -> None:
        try:
            self.audit.log_operation(tool, target, arguments, result, success, duration_ms)
        except Exception as e:
            logger.error(f"Audit logging failed for {tool}: {e}")

    @staticmethod
    def _target(arguments: dict[str, Any], default: str) -> str:
        if not isinstance(arguments, dict):
            return default
        diagram_uuid = arguments.get("diagram_uuid")
        return str(diagram_uuid) if diagram_uuid else default

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
