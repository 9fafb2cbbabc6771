"""Serve mode: run the MCP server over stdio or streamable HTTP."""

import typer

from m365_mcp.auth import AuthConfigurationError, resolve_strategy
from m365_mcp.config import MCP_HOST, MCP_PORT, MCP_TRANSPORT
from m365_mcp.context import ServerContext
from m365_mcp.server import build_server
from m365_mcp.utils.tracing import init_tracing

from .shared import console, load_settings, logger

TRANSPORTS = ("stdio", "streamable-http", "sse")


def serve(
    transport: str = typer.Option(MCP_TRANSPORT, "--transport", "-t", help="stdio, streamable-http or sse"),
    host: str = typer.Option(MCP_HOST, "--host", help="Bind address for HTTP transports"),
    port: int = typer.Option(MCP_PORT, "--port", "-p", help="Port for HTTP transports"),
) -> None:
    """Run the Microsoft 365 MCP server."""
    log = logger.bind(command="serve", transport=transport)
    if transport not in TRANSPORTS:
        console.print(f"[red]Unknown transport {transport!r}; expected one of: {', '.join(TRANSPORTS)}[/red]")
        raise typer.Exit(1)

    settings = load_settings()
    try:
        strategy = resolve_strategy(settings)
    except AuthConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        log.error("serve.auth_not_configured")
        raise typer.Exit(1) from e

    init_tracing()
    context = ServerContext(settings)
    mcp = build_server(context, host=host, port=port)
    log.info(
        "serve.start",
        strategy=type(strategy).__name__,
        cloud=settings.cloud_type.value,
        host=host if transport != "stdio" else None,
        port=port if transport != "stdio" else None,
    )
    try:
        mcp.run(transport=transport)
    finally:
        context.close()
        log.info("serve.stop")
