"""Terminal sign-in: device-code login and logout outside of MCP."""

import asyncio

import typer

from m365_mcp.auth import AuthConfigurationError, AuthError
from m365_mcp.auth.session import AlreadyAuthenticated, LoginSessionManager, LoginState
from m365_mcp.context import ServerContext

from .shared import console, load_settings, logger


def _sessions_or_exit() -> tuple[ServerContext, LoginSessionManager]:
    context = ServerContext(load_settings())
    try:
        sessions = context.auth.sessions
    except AuthConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    return context, sessions


def login() -> None:
    """Sign in with a device code and cache the token for the MCP server."""
    log = logger.bind(command="login")
    context, sessions = _sessions_or_exit()
    try:
        console.print("Authenticating with Microsoft...")
        try:
            outcome = asyncio.run(sessions.start())
        except AuthError as e:
            console.print(f"[red]{e}[/red]")
            log.error("login.start_failed", error_type=type(e).__name__)
            raise typer.Exit(1) from e

        if isinstance(outcome, AlreadyAuthenticated):
            console.print(f"Already authenticated as: [bold]{outcome.username}[/bold]")
            console.print("[dim]Run `m365-mcp logout` first to switch accounts.[/dim]")
            return

        console.print(outcome.device_code.message)
        status = sessions.wait()
        if status.state is not LoginState.SUCCEEDED:
            console.print(f"[red]Authentication failed: {status.reason}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Authenticated as: {status.username}[/green]")
        console.print("Token cached. You can now start the MCP server.")
    finally:
        context.close()


def logout() -> None:
    """Remove every cached account and delete the persisted token cache."""
    context, sessions = _sessions_or_exit()
    try:
        removed = sessions.logout()
    finally:
        context.close()
    console.print(f"Logged out. Removed {removed} cached account(s). Token cache cleared.")
