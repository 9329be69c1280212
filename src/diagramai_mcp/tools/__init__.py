"""Diagram tools exposed over MCP."""

from .catalog import TOOL_CATALOG, TOOLS, ToolDefinition
from .dispatcher import AuditSink, Authorizer, ToolDispatcher

__all__ = [
    "TOOL_CATALOG",
    "TOOLS",
    "AuditSink",
    "Authorizer",
    "ToolDefinition",
    "ToolDispatcher",
]
