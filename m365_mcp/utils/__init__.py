"""Utility modules."""

from m365_mcp.utils.logger import bind_context, get_logger, unbind_context
from m365_mcp.utils.tracing import get_tracer, init_tracing, shutdown_tracing, tool_span

__all__ = [
    "bind_context",
    "get_logger",
    "get_tracer",
    "init_tracing",
    "shutdown_tracing",
    "tool_span",
    "unbind_context",
]
