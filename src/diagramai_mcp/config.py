"""Bridge configuration.

Values come from the environment (see ``BridgeConfig.from_env``) or from the
CLI. Durations are stored in seconds; the environment variables carry
milliseconds for compatibility with existing DiagramAI deployments.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .errors import ConfigError

API_KEY_PREFIX = "da_"

# Capabilities granted to the agent unless the config narrows them
CAN_CREATE_DIAGRAMS = "canCreateDiagrams"
CAN_READ_DIAGRAMS = "canReadDiagrams"
CAN_LIST_DIAGRAMS = "canListDiagrams"
CAN_EDIT_DIAGRAMS = "canEditDiagrams"

DEFAULT_PERMISSIONS = frozenset(
    {CAN_CREATE_DIAGRAMS, CAN_READ_DIAGRAMS, CAN_LIST_DIAGRAMS, CAN_EDIT_DIAGRAMS}
)


def derive_ws_url(api_url: str) -> str:
    """Swap the scheme of an HTTP(S) URL for its WebSocket counterpart."""
    return re.sub(r"^http", "ws", api_url)


@dataclass
class BridgeConfig:
    """Configuration for the DiagramAI bridge."""

    api_url: str
    api_key: str
    ws_url: str | None = None
    debug: bool = False

    # Connection and request handling
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0

    # Authorization
    permissions: frozenset[str] = DEFAULT_PERMISSIONS
    rate_limit: int = 60  # calls per window, per tool
    rate_limit_window: float = 60.0

    # Unsolicited notifications kept for notifications() consumers
    notification_buffer: int = 100

    def __post_init__(self) -> None:
        self.api_url = self.api_url.rstrip("/")
        if not self.ws_url:
            self.ws_url = derive_ws_url(self.api_url)
        self.ws_url = self.ws_url.rstrip("/")

    def validate(self) -> BridgeConfig:
        """Check required values and ranges. Returns self for chaining."""
        if not self.api_url:
            raise ConfigError("DIAGRAMAI_API_URL is required")
        if not self.api_key:
            raise ConfigError("DIAGRAMAI_API_KEY is required")
        if not self.api_key.startswith(API_KEY_PREFIX):
            raise ConfigError(
                f'Invalid API key format. API key should start with "{API_KEY_PREFIX}"'
            )
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")
        if self.retry_delay < 0:
            raise ConfigError("retry_delay must not be negative")
        if self.rate_limit < 1:
            raise ConfigError("rate_limit must be at least 1")
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeConfig:
        """Build a config from environment variables.

        Recognized variables:
            DIAGRAMAI_API_URL: DiagramAI instance URL (required)
            DIAGRAMAI_API_KEY: API key, must start with "da_" (required)
            DIAGRAMAI_WS_URL: WebSocket URL (defaults to the API URL)
            DEBUG: "true" enables debug logging
            REQUEST_TIMEOUT: request timeout in ms (default 30000)
            MAX_RETRIES: connection attempts (default 3)
            RETRY_DELAY: delay between attempts in ms (default 1000)
            RATE_LIMIT: calls per minute per tool (default 60)
        """
        env = os.environ if environ is None else environ

        try:
            return cls(
                api_url=env.get("DIAGRAMAI_API_URL", ""),
                api_key=env.get("DIAGRAMAI_API_KEY", ""),
                ws_url=env.get("DIAGRAMAI_WS_URL") or None,
                debug=env.get("DEBUG", "").lower() == "true",
                request_timeout=int(env.get("REQUEST_TIMEOUT", "30000")) / 1000,
                max_retries=int(env.get("MAX_RETRIES", "3")),
                retry_delay=int(env.get("RETRY_DELAY", "1000")) / 1000,
                rate_limit=int(env.get("RATE_LIMIT", "60")),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

    def public_view(self) -> dict[str, Any]:
        """Configuration without the API key (safe to log or report)."""
        return {
            "api_url": self.api_url,
            "ws_url": self.ws_url,
            "debug": self.debug,
            "request_timeout": self.request_timeout,
            "max_retries": self.max_retries,
            "retry_delay": self.retry_delay,
        }
