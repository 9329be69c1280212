"""Request/reply correlation over the DiagramAI connection.

Each outbound operation gets a fresh request_id. The reply carrying the
same id completes the caller's await; an error reply, a timeout or a lost
connection fail it instead. Replies that arrive after their request was
settled are passed on as ordinary notifications.
"""

from __future__ import annotations

import logging

from .connection import ConnectionManager
from .errors import ConnectionLostError, OperationError
from .protocol.messages import InboundMessage, OutboundMessage, generate_request_id, utc_now
from .registry import PendingRequestRegistry

logger = logging.getLogger(__name__)


class RequestCorrelator:
    """Sends operations and matches replies to them by request_id."""

    def __init__(
        self,
        connection: ConnectionManager,
        registry: PendingRequestRegistry | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self.connection = connection
        self.registry = registry if registry is not None else PendingRequestRegistry()
        self.request_timeout = request_timeout or connection.config.request_timeout
        connection.attach(self)

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a reply."""
        return len(self.registry)

    async def send(self, message: OutboundMessage) -> InboundMessage:
        """Send an operation and wait for its reply.

        Args:
            message: Operation to send. request_id, agent_id and timestamp are
                filled in here.

        Returns:
            The reply message

        Raises:
            OperationError: The service replied with an error
            RequestTimeoutError: No reply within the request timeout
            ConnectionLostError: The connection is closed or dropped
        """
        request_id = generate_request_id()
        while request_id in self.registry:
            request_id = generate_request_id()

        outbound = message.model_copy(
            update={
                "request_id": request_id,
                "agent_id": self.connection.agent_id,
                "timestamp": utc_now(),
            }
        )

        pending = self.registry.register(request_id, self.request_timeout)
        try:
            await self.connection.transmit(outbound.to_json())
        except BaseException:
            self.registry.discard(request_id)
            if pending.future.done() and not pending.future.cancelled():
                # Settled by a concurrent drop; the send error is what we report
                pending.future.exception()
            raise

        logger.debug(f"Sent {outbound.operation or outbound.type} ({request_id})")

        try:
            return await pending.future
        finally:
            # No-op unless the caller was cancelled while waiting
            self.registry.discard(request_id)

    def on_message(self, message: InboundMessage) -> bool:
        """Settle the pending request this message answers.

        Returns:
            True if the message was a reply to a live request
        """
        request_id = message.request_id
        if not message.is_reply() or request_id not in self.registry:
            return False

        if message.is_error():
            self.registry.reject(request_id, OperationError(message.error_message(), reply=message))
        else:
            self.registry.resolve(request_id, message)
        return True

    def on_connection_lost(self, reason: str) -> int:
        """Fail every pending request with ConnectionLostError."""
        return self.registry.reject_all(lambda: ConnectionLostError(reason))
