"""Authentication and authorization for the DiagramAI API.

AuthService validates the API key, checks that the HTTP API is reachable,
and answers the dispatcher's authorization questions: is the agent
authenticated, does it hold a capability, and is a tool within its rate
limit.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from .config import API_KEY_PREFIX, BridgeConfig
from .errors import AuthError

logger = logging.getLogger(__name__)


@dataclass
class SlidingWindowCounter:
    """Sliding window rate counter.

    The effective count blends the current window with the unexpired share
    of the previous one:

        effective = current + previous * (1 - progress)

    where progress is how far into the current window we are (0.0 to 1.0).
    """

    window_size_seconds: float
    max_requests: int
    clock: Callable[[], float] = time.monotonic

    _current_count: int = field(init=False, default=0)
    _previous_count: int = field(init=False, default=0)
    _window_start: float = field(init=False)

    def __post_init__(self) -> None:
        self._window_start = self.clock()

    def _window_progress(self) -> float:
        elapsed = self.clock() - self._window_start

        if elapsed >= self.window_size_seconds:
            windows_passed = int(elapsed / self.window_size_seconds)
            if windows_passed >= 2:
                self._previous_count = 0
            else:
                self._previous_count = self._current_count
            self._current_count = 0
            self._window_start += windows_passed * self.window_size_seconds
            elapsed = self.clock() - self._window_start

        return min(elapsed / self.window_size_seconds, 1.0)

    def effective_count(self) -> float:
        progress = self._window_progress()
        return self._current_count + self._previous_count * (1.0 - progress)

    def try_acquire(self) -> bool:
        """Count one request if it fits in the window."""
        if self.effective_count() + 1 > self.max_requests:
            return False
        self._current_count += 1
        return True


class AuthService:
    """API key handling, permission checks and per-tool rate limiting."""

    def __init__(
        self,
        config: BridgeConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._transport = transport
        self._clock = clock
        self._ready = False
        self._http_client: httpx.AsyncClient | None = None
        self._limiters: dict[str, SlidingWindowCounter] = {}

    async def initialize(self) -> None:
        """Validate the API key and mark the service ready.

        Raises:
            AuthError: If the key does not have the expected prefix
        """
        if not self.config.api_key.startswith(API_KEY_PREFIX):
            raise AuthError(
                f'Invalid API key format. API key should start with "{API_KEY_PREFIX}"'
            )
        self._ready = True

    def get_auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.api_url,
                headers=self.get_auth_headers(),
                timeout=self.config.request_timeout,
                transport=self._transport,
            )
        return self._http_client

    async def test_connection(self) -> bool:
        """Check that the DiagramAI HTTP API answers its health endpoint."""
        try:
            response = await self._client().get("/api/health")
        except httpx.HTTPError as e:
            logger.error(f"API connection test failed: {e}")
            return False

        if not response.is_success:
            logger.error(f"API connection test failed: HTTP {response.status_code}")
        return response.is_success

    async def make_authenticated_request(
        self,
        endpoint: str,
        method: str = "GET",
        **kwargs: Any,
    ) -> httpx.Response:
        """Call the DiagramAI HTTP API with the agent's credentials.

        Raises:
            AuthError: If the API answers with a non-success status
        """
        response = await self._client().request(method, endpoint, **kwargs)
        if not response.is_success:
            raise AuthError(
                f"API request failed: {response.status_code} {response.reason_phrase}"
            )
        return response

    def is_ready(self) -> bool:
        return self._ready

    # Authorizer protocol

    def is_authenticated(self) -> bool:
        return self._ready

    def check_permission(self, capability: str) -> bool:
        allowed = capability in self.config.permissions
        if not allowed:
            logger.warning(f"Permission denied: {capability}")
        return allowed

    def check_rate_limit(self, tool_name: str) -> bool:
        limiter = self._limiters.get(tool_name)
        if limiter is None:
            limiter = SlidingWindowCounter(
                window_size_seconds=self.config.rate_limit_window,
                max_requests=self.config.rate_limit,
                clock=self._clock,
            )
            self._limiters[tool_name] = limiter

        allowed = limiter.try_acquire()
        if not allowed:
            logger.warning(f"Rate limit exceeded for {tool_name}")
        return allowed

    async def close(self) -> None:
        self._ready = False
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
