"""MCP server exposing the DiagramAI tools.

DiagramBridgeServer wires the collaborators together:

    AuthService ─┐
    AuditLog ────┼─> ToolDispatcher -> RequestCorrelator -> ConnectionManager -> WebSocket
                 │
    MCP call_tool ┘

call_tool() is the outer boundary: it never raises. Failures come back as
an error result carrying {"success": false, "error", "tool", "timestamp"}.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from .audit import AuditLog
from .auth import AuthService
from .config import BridgeConfig
from .connection import ConnectionManager
from .correlator import RequestCorrelator
from .errors import ConnectionFailedError
from .protocol.messages import utc_now
from .tools.dispatcher import AuditSink, ToolDispatcher

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-server-diagramai"


def _text_result(payload: dict[str, Any], is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=json.dumps(payload, indent=2, default=str))],
        isError=is_error,
    )


class DiagramBridgeServer:
    """Owns the bridge components and serves MCP tool requests."""

    def __init__(
        self,
        config: BridgeConfig,
        connection: ConnectionManager | None = None,
        auth: AuthService | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self.config = config
        self.auth = auth or AuthService(config)
        self.audit = audit or AuditLog()
        self.connection = connection or ConnectionManager(config)
        self.correlator = RequestCorrelator(self.connection)
        self.dispatcher = ToolDispatcher(
            self.correlator,
            self.auth,
            self.audit,
        )
        self._initialized = False
        self._started_at = time.monotonic()

        logger.debug(f"Configuration: {config.public_view()}")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Validate credentials, check the API and open the WebSocket.

        Raises:
            AuthError: Invalid API key
            ConnectionFailedError: API unreachable or WebSocket connect failed
        """
        if self._initialized:
            return

        logger.info("Initializing DiagramAI MCP server...")

        await self.auth.initialize()
        logger.info("Authentication service initialized")

        if not await self.auth.test_connection():
            raise ConnectionFailedError(f"Failed to connect to DiagramAI API at {self.config.api_url}")
        logger.info("API connection verified")

        await self.connection.connect()
        logger.info(f"{self.dispatcher.tool_count} diagram tools ready")

        self._initialized = True
        logger.info("DiagramAI MCP server initialization complete")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Server not initialized")

    async def list_tools(self) -> list[types.Tool]:
        """MCP tool definitions for every catalog tool."""
        self._require_initialized()

        tools = [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
            )
            for tool in self.dispatcher.tools
        ]
        logger.debug(f"Listed {len(tools)} available tools")
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        """Execute a tool. Never raises; failures become error results."""
        try:
            self._require_initialized()
            logger.info(f"Executing tool: {name}")
            logger.debug(f"Arguments for {name}: {arguments}")

            result = await self.dispatcher.execute_tool(name, arguments)
        except Exception as e:
            logger.error(f"Tool execution failed: {name}: {e}")
            return _text_result(
                {
                    "success": False,
                    "error": str(e) or type(e).__name__,
                    "tool": name,
                    "timestamp": utc_now(),
                },
                is_error=True,
            )

        logger.debug(f"Tool execution successful: {name}")
        return _text_result(result)

    async def close(self) -> None:
        """Disconnect and release resources. Errors are logged, not raised."""
        logger.info("Closing DiagramAI MCP server...")
        self._initialized = False
        try:
            await self.connection.disconnect()
            logger.info("WebSocket connection closed")
        except Exception as e:
            logger.error(f"Error closing WebSocket: {e}")
        try:
            await self.auth.close()
        except Exception as e:
            logger.error(f"Error closing authentication service: {e}")
        logger.info("DiagramAI MCP server closed")

    def health_check(self) -> bool:
        return self._initialized and self.connection.is_connected and self.auth.is_ready()

    def get_stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            "initialized": self._initialized,
            "websocket_connected": self.connection.is_connected,
            "connection_state": self.connection.state.value,
            "auth_service_ready": self.auth.is_ready(),
            "available_tools": self.dispatcher.tool_count,
            "pending_requests": self.correlator.pending_count,
            "uptime": round(time.monotonic() - self._started_at, 3),
            "config": self.get_config(),
        }
        if isinstance(self.audit, AuditLog):
            stats["operations"] = self.audit.stats()
        return stats

    def get_config(self) -> dict[str, Any]:
        """Configuration without the API key."""
        return self.config.public_view()


def build_mcp_server(bridge: DiagramBridgeServer) -> Server:
    """Register the bridge's handlers on an MCP low-level server."""
    from . import __version__

    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return await bridge.list_tools()

    # Arguments are validated by the dispatcher so errors share one format
    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        return await bridge.call_tool(name, arguments)

    return server


async def run_stdio(bridge: DiagramBridgeServer) -> None:
    """Serve MCP over stdin/stdout until the client disconnects."""
    server = build_mcp_server(bridge)
    async with stdio_server() as (read_stream, write_stream):
        logger.info("Listening for MCP requests via stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
