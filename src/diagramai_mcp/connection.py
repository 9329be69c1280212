"""WebSocket connection management.

Owns the single persistent connection to the DiagramAI service:
- connect with bounded retries and a per-attempt open timeout
- background reader that decodes frames and routes them
- teardown that fails every in-flight request

Routing: each decoded message is offered to the attached listener (the
request correlator). Messages the listener does not claim are unsolicited
notifications and go to the notification sink.

connect() and disconnect() are serialized by a lock, so at most one socket is
live. There is no implicit reconnect. After a drop the owner calls connect()
again.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any, Protocol

import websockets
from websockets.exceptions import ConnectionClosed

from .config import BridgeConfig
from .errors import ConnectionFailedError, ConnectionLostError, MessageParseError
from .protocol.messages import InboundMessage, generate_agent_id

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


class ConnectionState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


class InboundListener(Protocol):
    """Receiver for messages and connection loss (implemented by the correlator)."""

    def on_message(self, message: InboundMessage) -> bool:
        """Handle a decoded message. Return True if it was consumed as a reply."""
        ...

    def on_connection_lost(self, reason: str) -> int:
        """Fail all in-flight requests. Return how many were failed."""
        ...


async def open_websocket(url: str) -> Any:
    """Open a WebSocket with the ``websockets`` client."""
    # The caller enforces the open timeout
    return await websockets.connect(
        url,
        ping_interval=30,
        ping_timeout=10,
        open_timeout=None,
    )


class ConnectionManager:
    """Lifecycle of the WebSocket to the DiagramAI service.

    Usage:
        manager = ConnectionManager(config)
        correlator = RequestCorrelator(manager)
        async with manager:
            reply = await correlator.send(message)
    """

    def __init__(
        self,
        config: BridgeConfig,
        agent_id: str | None = None,
        connector: Connector | None = None,
        on_notification: Callable[[InboundMessage], None] | None = None,
    ) -> None:
        self.config = config
        self.agent_id = agent_id or generate_agent_id()
        self._connector = connector or open_websocket
        self._on_notification = on_notification

        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._reader_task: asyncio.Task[None] | None = None
        self._listener: InboundListener | None = None
        self._lock = asyncio.Lock()
        self._generation = 0
        self._notifications: asyncio.Queue[InboundMessage] = asyncio.Queue(
            maxsize=max(config.notification_buffer, 1)
        )

    @property
    def url(self) -> str:
        """WebSocket endpoint for this agent."""
        return f"{self.config.ws_url}/ws/diagrams?agent_id={self.agent_id}"

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return self._state == ConnectionState.OPEN

    def attach(self, listener: InboundListener) -> None:
        """Set the listener that receives replies and connection loss."""
        self._listener = listener

    async def connect(self) -> None:
        """Open the connection, retrying up to ``max_retries`` times.

        No-op if already open or connecting. A connect issued while a
        disconnect is closing the socket waits for it to finish.

        Raises:
            ConnectionFailedError: If every attempt failed, or disconnect()
                was called before the handshake completed
        """
        if self._state in (ConnectionState.OPEN, ConnectionState.CONNECTING):
            return

        async with self._lock:
            if self._state == ConnectionState.OPEN:
                return

            generation = self._generation
            self._state = ConnectionState.CONNECTING
            attempts = self.config.max_retries
            last_error: Exception | None = None

            try:
                for attempt in range(1, attempts + 1):
                    if generation != self._generation:
                        raise ConnectionFailedError("Connection aborted by disconnect", attempts=attempt - 1)

                    logger.debug(f"Connecting to DiagramAI WebSocket: {self.url} (attempt {attempt})")
                    try:
                        ws = await asyncio.wait_for(
                            self._connector(self.url),
                            timeout=self.config.request_timeout,
                        )
                    except TimeoutError:
                        last_error = TimeoutError(
                            f"WebSocket connection timeout after {self.config.request_timeout:g}s"
                        )
                    except Exception as e:
                        last_error = e
                    else:
                        if generation != self._generation:
                            # disconnect() ran while the handshake was in flight
                            with contextlib.suppress(Exception):
                                await ws.close()
                            raise ConnectionFailedError("Connection aborted by disconnect", attempts=attempt)
                        self._on_open(ws)
                        return

                    if attempt < attempts:
                        logger.warning(
                            f"WebSocket connection attempt {attempt} failed: {last_error}, retrying..."
                        )
                        await asyncio.sleep(self.config.retry_delay)
            finally:
                if generation == self._generation and self._state == ConnectionState.CONNECTING:
                    self._state = ConnectionState.DISCONNECTED

            logger.error(f"WebSocket connection failed after {attempts} attempts: {last_error}")
            raise ConnectionFailedError(
                f"Failed to connect to {self.config.ws_url} after {attempts} attempts: {last_error}",
                attempts=attempts,
            ) from last_error

    def _on_open(self, ws: Any) -> None:
        self._ws = ws
        self._state = ConnectionState.OPEN
        self._reader_task = asyncio.create_task(self._read_loop(ws))
        logger.info("WebSocket connection established")

    async def disconnect(self) -> None:
        """Close the connection and fail any in-flight requests. Idempotent."""
        # Invalidates any handshake in flight
        self._generation += 1

        if self._state == ConnectionState.CONNECTING:
            # The connecting call holds the lock and closes its own socket
            self._state = ConnectionState.DISCONNECTED
            self._cleanup("WebSocket disconnected")
            return

        async with self._lock:
            was_open = self._ws is not None
            ws, self._ws = self._ws, None
            reader, self._reader_task = self._reader_task, None
            self._state = ConnectionState.CLOSING

            try:
                if reader is not None and reader is not asyncio.current_task():
                    reader.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await reader
                if ws is not None:
                    await ws.close()
            finally:
                self._state = ConnectionState.DISCONNECTED
                self._cleanup("WebSocket disconnected")

        if was_open:
            logger.info("WebSocket disconnected")

    async def transmit(self, payload: str) -> None:
        """Send one text frame.

        Raises:
            ConnectionLostError: If the connection is not open or drops mid-send
        """
        if self._ws is None or self._state != ConnectionState.OPEN:
            raise ConnectionLostError("WebSocket not connected")

        try:
            await self._ws.send(payload)
        except ConnectionClosed as e:
            raise ConnectionLostError(f"WebSocket connection lost: {e}") from e

    async def notifications(self) -> AsyncIterator[InboundMessage]:
        """Yield unsolicited notifications while connected."""
        while self.is_connected or not self._notifications.empty():
            try:
                yield await asyncio.wait_for(self._notifications.get(), timeout=1.0)
            except TimeoutError:
                continue

    async def _read_loop(self, ws: Any) -> None:
        """Background task reading frames until the socket closes."""
        try:
            async for frame in ws:
                self._handle_frame(frame)
            logger.info("WebSocket connection closed by remote")
        except asyncio.CancelledError:
            pass
        except ConnectionClosed as e:
            logger.info(f"WebSocket connection closed: {e}")
        except Exception as e:
            logger.error(f"WebSocket read loop error: {e}")
        finally:
            # Only a drop of the live connection is handled here; disconnect()
            # cleans up after itself
            if self._ws is ws and self._state == ConnectionState.OPEN:
                self._ws = None
                self._reader_task = None
                self._state = ConnectionState.DISCONNECTED
                self._cleanup("WebSocket connection lost")
                # Stops keepalive pings on a half-closed or broken socket
                with contextlib.suppress(Exception):
                    await ws.close()

    def _handle_frame(self, frame: str | bytes) -> None:
        try:
            message = InboundMessage.from_frame(frame)
        except MessageParseError as e:
            logger.warning(f"Error parsing WebSocket message: {e}")
            return

        logger.debug(f"Received message: {message.type}")

        if self._listener is not None and self._listener.on_message(message):
            return
        self._publish(message)

    def _publish(self, message: InboundMessage) -> None:
        """Hand an unsolicited message to the notification sink."""
        if self._notifications.full():
            dropped = self._notifications.get_nowait()
            logger.debug(f"Notification buffer full, dropping {dropped.type}")
        self._notifications.put_nowait(message)

        if self._on_notification is not None:
            try:
                self._on_notification(message)
            except Exception as e:
                logger.error(f"Notification callback failed: {e}")

    def _cleanup(self, reason: str) -> None:
        if self._listener is None:
            return
        failed = self._listener.on_connection_lost(reason)
        if failed:
            logger.warning(f"{reason}: failed {failed} pending request(s)")

    async def __aenter__(self) -> ConnectionManager:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()
