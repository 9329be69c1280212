"""Unit tests for authentication, permissions and rate limiting."""

from __future__ import annotations

from dataclasses import replace

import httpx
import pytest
from conftest import health_transport

from diagramai_mcp.auth import AuthService, SlidingWindowCounter
from diagramai_mcp.config import CAN_EDIT_DIAGRAMS, CAN_READ_DIAGRAMS
from diagramai_mcp.errors import AuthError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSlidingWindowCounter:
    def test_allows_up_to_limit(self):
        counter = SlidingWindowCounter(window_size_seconds=60, max_requests=3, clock=FakeClock())

        assert [counter.try_acquire() for _ in range(4)] == [True, True, True, False]

    def test_previous_window_decays(self):
        clock = FakeClock()
        counter = SlidingWindowCounter(window_size_seconds=60, max_requests=2, clock=clock)
        counter.try_acquire()
        counter.try_acquire()

        # Halfway through the next window one of the two previous calls still counts
        clock.advance(90)
        assert counter.effective_count() == pytest.approx(1.0)
        assert counter.try_acquire() is True
        assert counter.try_acquire() is False

    def test_idle_windows_reset(self):
        clock = FakeClock()
        counter = SlidingWindowCounter(window_size_seconds=60, max_requests=1, clock=clock)
        counter.try_acquire()

        clock.advance(180)

        assert counter.effective_count() == 0
        assert counter.try_acquire() is True


class TestAuthService:
    @pytest.mark.asyncio
    async def test_initialize_accepts_prefixed_key(self, config):
        auth = AuthService(config)
        await auth.initialize()

        assert auth.is_ready()
        assert auth.is_authenticated()

    @pytest.mark.asyncio
    async def test_initialize_rejects_bad_key(self, config):
        auth = AuthService(replace(config, api_key="sk_nope"))

        with pytest.raises(AuthError, match='should start with "da_"'):
            await auth.initialize()
        assert not auth.is_authenticated()

    def test_auth_headers(self, config):
        headers = AuthService(config).get_auth_headers()

        assert headers["Authorization"] == "Bearer da_test_key"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_connection_ok(self, config):
        seen: list[httpx.Request] = []
        auth = AuthService(config, transport=health_transport(seen=seen))

        assert await auth.test_connection() is True
        assert str(seen[0].url) == "http://diagrams.test/api/health"
        assert seen[0].headers["Authorization"] == "Bearer da_test_key"
        await auth.close()

    @pytest.mark.asyncio
    async def test_connection_bad_status(self, config):
        auth = AuthService(config, transport=health_transport(status=503))

        assert await auth.test_connection() is False
        await auth.close()

    @pytest.mark.asyncio
    async def test_connection_unreachable(self, config):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        auth = AuthService(config, transport=httpx.MockTransport(refuse))

        assert await auth.test_connection() is False
        await auth.close()

    @pytest.mark.asyncio
    async def test_authenticated_request(self, config):
        auth = AuthService(config, transport=health_transport())

        response = await auth.make_authenticated_request("/api/diagrams", method="GET")

        assert response.json() == {"status": "ok"}
        await auth.close()

    @pytest.mark.asyncio
    async def test_authenticated_request_failure(self, config):
        auth = AuthService(config, transport=health_transport(status=401))

        with pytest.raises(AuthError, match="API request failed: 401"):
            await auth.make_authenticated_request("/api/diagrams")
        await auth.close()

    def test_permissions(self, config):
        auth = AuthService(replace(config, permissions=frozenset({CAN_READ_DIAGRAMS})))

        assert auth.check_permission(CAN_READ_DIAGRAMS) is True
        assert auth.check_permission(CAN_EDIT_DIAGRAMS) is False

    def test_rate_limit_is_per_tool(self, config):
        auth = AuthService(replace(config, rate_limit=2), clock=FakeClock())

        assert auth.check_rate_limit("add_node") is True
        assert auth.check_rate_limit("add_node") is True
        assert auth.check_rate_limit("add_node") is False
        assert auth.check_rate_limit("delete_node") is True

    @pytest.mark.asyncio
    async def test_close_resets_readiness(self, config):
        auth = AuthService(config, transport=health_transport())
        await auth.initialize()
        await auth.test_connection()

        await auth.close()
        await auth.close()

        assert not auth.is_ready()
