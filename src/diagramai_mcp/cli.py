"""DiagramAI MCP bridge CLI.

Default mode serves MCP over stdio. stdout carries the protocol, so all
logging goes to stderr.

Usage:
    diagramai-mcp                         # Serve MCP over stdio
    diagramai-mcp --debug                 # Same, with debug logging
    diagramai-mcp check                   # Connect once, print status, exit
    diagramai-mcp tools                   # List the available tools
    diagramai-mcp tools --format json     # Tool definitions with schemas

Every option can also be set through its environment variable
(DIAGRAMAI_API_URL, DIAGRAMAI_API_KEY, DIAGRAMAI_WS_URL, DEBUG,
REQUEST_TIMEOUT, MAX_RETRIES, RETRY_DELAY, RATE_LIMIT).
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from typing import Any

import click

from .config import BridgeConfig
from .errors import ConfigError
from .tools.catalog import TOOLS

logger = logging.getLogger(__name__)

FORMAT_TABLE = "table"
FORMAT_JSON = "json"


def configure_logging(debug: bool) -> None:
    """Send all logging to stderr so stdout stays reserved for MCP."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(stderr_handler)
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Routine MCP session chatter
    logging.getLogger("mcp.server").setLevel(logging.WARNING)


def _build_config(options: dict[str, Any]) -> BridgeConfig:
    try:
        return BridgeConfig(
            api_url=options["api_url"] or "",
            api_key=options["api_key"] or "",
            ws_url=options["ws_url"],
            debug=options["debug"],
            request_timeout=options["request_timeout"] / 1000,
            max_retries=options["max_retries"],
            retry_delay=options["retry_delay"] / 1000,
            rate_limit=options["rate_limit"],
        ).validate()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--api-url", envvar="DIAGRAMAI_API_URL", help="DiagramAI instance URL (required)")
@click.option("--api-key", envvar="DIAGRAMAI_API_KEY", help="DiagramAI API key, starts with da_ (required)")
@click.option("--ws-url", envvar="DIAGRAMAI_WS_URL", help="WebSocket URL (default: derived from --api-url)")
@click.option("--debug", is_flag=True, envvar="DEBUG", help="Enable debug logging")
@click.option(
    "--request-timeout",
    envvar="REQUEST_TIMEOUT",
    type=click.IntRange(min=1),
    default=30000,
    show_default=True,
    help="Request timeout in ms",
)
@click.option(
    "--max-retries",
    envvar="MAX_RETRIES",
    type=click.IntRange(min=1),
    default=3,
    show_default=True,
    help="WebSocket connection attempts",
)
@click.option(
    "--retry-delay",
    envvar="RETRY_DELAY",
    type=click.IntRange(min=0),
    default=1000,
    show_default=True,
    help="Delay between connection attempts in ms",
)
@click.option(
    "--rate-limit",
    envvar="RATE_LIMIT",
    type=click.IntRange(min=1),
    default=60,
    show_default=True,
    help="Calls per minute allowed for each tool",
)
@click.pass_context
def main(ctx: click.Context, **options: Any) -> None:
    """DiagramAI MCP bridge - diagram tools for AI agents.

    By default, serves the Model Context Protocol over stdio.
    """
    ctx.obj = options

    # If a subcommand is invoked, let it handle everything
    if ctx.invoked_subcommand is not None:
        return

    config = _build_config(options)
    configure_logging(config.debug)
    logger.info("Starting DiagramAI MCP server...")

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception as e:
        logger.error(f"Failed to start DiagramAI MCP server: {e}")
        sys.exit(1)


async def _serve(config: BridgeConfig) -> None:
    from .server import DiagramBridgeServer, run_stdio

    bridge = DiagramBridgeServer(config)

    # SIGTERM cancels the serve task; close() runs either way
    task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    if task is not None:
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGTERM, task.cancel)

    try:
        await bridge.initialize()
        logger.info(f"Connected to DiagramAI at {config.api_url}")
        await run_stdio(bridge)
    except asyncio.CancelledError:
        logger.info("Shutdown requested")
    finally:
        await bridge.close()


@main.command()
@click.pass_obj
def check(options: dict[str, Any]) -> None:
    """Connect to DiagramAI once, print the bridge status and exit.

    Exits with status 1 if the API or WebSocket cannot be reached.
    """
    from .server import DiagramBridgeServer

    config = _build_config(options)
    configure_logging(config.debug)

    async def run() -> dict[str, Any]:
        bridge = DiagramBridgeServer(config)
        try:
            await bridge.initialize()
            return bridge.get_stats()
        finally:
            await bridge.close()

    try:
        stats = asyncio.run(run())
    except Exception as e:
        click.echo(f"DiagramAI bridge check failed: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(stats, indent=2, default=str))


@main.command()
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
def tools(output_format: str) -> None:
    """List the tools the bridge exposes.

    Examples:

        # Names and descriptions
        diagramai-mcp tools

        # Full definitions with input schemas
        diagramai-mcp tools --format json
    """
    if output_format == FORMAT_JSON:
        definitions = [
            {
                "name": tool.name,
                "description": tool.description,
                "capability": tool.capability,
                "inputSchema": tool.input_schema,
            }
            for tool in TOOLS
        ]
        click.echo(json.dumps(definitions, indent=2))
        return

    click.echo(f"{'Tool':<16} {'Capability':<18} Description")
    click.echo("-" * 80)
    for tool in TOOLS:
        click.echo(f"{tool.name:<16} {tool.capability:<18} {tool.description}")
    click.echo(f"\nTotal: {len(TOOLS)} tool(s)")


if __name__ == "__main__":
    main()
