"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from diagramai_mcp.config import BridgeConfig
from diagramai_mcp.connection import ConnectionManager
from diagramai_mcp.correlator import RequestCorrelator


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection.

    Frames pushed with feed()/feed_raw() are yielded by async iteration.
    close() ends iteration cleanly; fail() ends it with an exception.
    """

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.send_error: BaseException | None = None
        self._frames: asyncio.Queue[Any] = asyncio.Queue()

    async def send(self, payload: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(payload)

    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(p) for p in self.sent]

    def feed(self, message: dict[str, Any]) -> None:
        self.feed_raw(json.dumps(message))

    def feed_raw(self, frame: str | bytes) -> None:
        self._frames.put_nowait(frame)

    def fail(self, exc: BaseException) -> None:
        self._frames.put_nowait(exc)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._frames.put_nowait(None)

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> Any:
        item = await self._frames.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


async def settle() -> None:
    """Let background tasks (the reader loop) process queued frames."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(
        api_url="http://diagrams.test",
        api_key="da_test_key",
        request_timeout=1.0,
        max_retries=3,
        retry_delay=0.01,
    )


@pytest.fixture
def fake_ws() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def connector(fake_ws: FakeWebSocket):
    """Connector that always hands out the shared fake socket."""

    async def connect(url: str) -> FakeWebSocket:
        connect.urls.append(url)
        return fake_ws

    connect.urls = []
    return connect


@pytest.fixture
def manager(config: BridgeConfig, connector) -> ConnectionManager:
    return ConnectionManager(config, agent_id="mcp-agent-test", connector=connector)


@pytest.fixture
def correlator(manager: ConnectionManager) -> RequestCorrelator:
    return RequestCorrelator(manager)


def health_transport(status: int = 200, seen: list | None = None) -> httpx.MockTransport:
    """HTTP transport answering every request with ``status``."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json={"status": "ok"})

    return httpx.MockTransport(handler)
