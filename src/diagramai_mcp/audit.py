"""Audit trail of tool calls.

One entry per call, written to the ``diagramai_mcp.audit`` logger and kept
in a bounded in-memory buffer for stats and inspection.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any

from .protocol.messages import utc_now

logger = logging.getLogger(__name__)


@dataclass
class AuditEntry:
    tool: str
    target: str
    arguments: dict[str, Any]
    result: Any
    success: bool
    duration_ms: int
    timestamp: str = field(default_factory=utc_now)


class AuditLog:
    """Records tool calls (implements the dispatcher's AuditSink)."""

    def __init__(self, max_entries: int = 1000) -> None:
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)
        self.success_count = 0
        self.failure_count = 0

    def log_operation(
        self,
        tool: str,
        target: str,
        arguments: dict[str, Any],
        result: Any,
        success: bool,
        duration_ms: int,
    ) -> None:
        entry = AuditEntry(
            tool=tool,
            target=target,
            arguments=arguments,
            result=result,
            success=success,
            duration_ms=duration_ms,
        )
        self._entries.append(entry)

        if success:
            self.success_count += 1
            logger.info(f"{tool} on {target} succeeded in {duration_ms}ms")
        else:
            self.failure_count += 1
            logger.warning(f"{tool} on {target} failed after {duration_ms}ms")

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        """Most recent entries, newest last."""
        entries = list(self._entries)[-limit:] if limit > 0 else []
        return [asdict(e) for e in entries]

    def stats(self) -> dict[str, int]:
        return {
            "total": self.success_count + self.failure_count,
            "succeeded": self.success_count,
            "failed": self.failure_count,
        }
