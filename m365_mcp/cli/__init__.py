"""CLI commands: serve (default), login, logout, version."""

import typer
from typer import Typer

from m365_mcp import __version__
from m365_mcp.cli import auth_mode, serve_mode
from m365_mcp.config import MCP_HOST, MCP_PORT, MCP_TRANSPORT

app = Typer(help="Microsoft 365 MCP server", no_args_is_help=False)


@app.callback(invoke_without_command=True)
def _default(ctx: typer.Context) -> None:
    """Start the MCP server when no subcommand is given."""
    if ctx.invoked_subcommand is None:
        serve_mode.serve(transport=MCP_TRANSPORT, host=MCP_HOST, port=MCP_PORT)


def version() -> None:
    """Print the server version."""
    typer.echo(__version__)


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command()(serve_mode.serve)
    app.command()(auth_mode.login)
    app.command()(auth_mode.logout)
    app.command()(version)


register_commands()
