"""Pending-request registry.

Tracks operations that were sent and are waiting for a reply. Each entry
pairs an ``asyncio.Future`` (the caller's completion handle) with the timer
that expires it.

Every entry is removed exactly once. Whichever of reply, timeout or
connection loss comes first pops the entry and completes its future; the
others find nothing and do nothing. All mutations run on the event loop
thread and never await, so no lock is needed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from .errors import RequestTimeoutError
from .protocol.messages import InboundMessage

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """An operation awaiting its reply."""

    request_id: str
    future: asyncio.Future[InboundMessage]
    timeout_handle: asyncio.TimerHandle | None = None

    def settle(self, result: InboundMessage | None = None, error: BaseException | None = None) -> bool:
        """Complete the future and stop the timer. Returns False if already done."""
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None

        if self.future.done():
            return False
        if error is not None:
            self.future.set_exception(error)
        else:
            self.future.set_result(result)  # type: ignore[arg-type]
        return True


class PendingRequestRegistry:
    """Table of outstanding requests keyed by request_id."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def register(
        self,
        request_id: str,
        timeout: float,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> PendingRequest:
        """Create an entry and arm its timeout timer.

        Args:
            request_id: Correlation id, must not already be pending
            timeout: Seconds before the entry expires with RequestTimeoutError
            loop: Event loop owning the future (default: running loop)

        Raises:
            ValueError: If request_id is already pending
        """
        if request_id in self._pending:
            raise ValueError(f"Request {request_id} is already pending")

        loop = loop or asyncio.get_running_loop()
        pending = PendingRequest(request_id=request_id, future=loop.create_future())
        pending.timeout_handle = loop.call_later(timeout, self._expire, request_id, timeout)
        self._pending[request_id] = pending
        return pending

    def resolve(self, request_id: str, message: InboundMessage) -> bool:
        """Complete a pending request with its reply.

        Returns:
            True if a live entry was completed, False for unknown ids
        """
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return False
        return pending.settle(result=message)

    def reject(self, request_id: str, error: BaseException) -> bool:
        """Fail a pending request.

        Returns:
            True if a live entry was failed, False for unknown ids
        """
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return False
        return pending.settle(error=error)

    def discard(self, request_id: str) -> None:
        """Drop an entry without completing it (the caller gave up)."""
        pending = self._pending.pop(request_id, None)
        if pending is not None and pending.timeout_handle is not None:
            pending.timeout_handle.cancel()

    def reject_all(self, error_factory: Callable[[], BaseException]) -> int:
        """Fail every pending request and empty the table.

        Returns:
            Number of requests rejected
        """
        pending_requests = list(self._pending.values())
        self._pending.clear()

        rejected = 0
        for pending in pending_requests:
            if pending.settle(error=error_factory()):
                rejected += 1
        return rejected

    def _expire(self, request_id: str, timeout: float) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return

        pending.timeout_handle = None
        pending.settle(error=RequestTimeoutError(request_id, timeout))
        logger.warning(f"Request {request_id} timed out after {timeout:g}s")
