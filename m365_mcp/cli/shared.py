"""Shared CLI helpers: console, logger, settings loading."""

import typer
from rich.console import Console

from m365_mcp.config import Settings
from m365_mcp.utils.logger import get_logger

# stderr: with the stdio transport stdout belongs to the MCP protocol
console = Console(stderr=True)
logger = get_logger("m365_mcp.cli")


def load_settings() -> Settings:
    """Read settings from the environment, exiting with a readable message if invalid."""
    try:
        return Settings.from_env()
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        logger.error("settings.invalid", error=str(e))
        raise typer.Exit(1) from e
