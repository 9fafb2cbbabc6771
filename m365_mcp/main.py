"""Entry point: delegates to the CLI app (serve, login, logout, version)."""

from rich.traceback import install

from m365_mcp.cli import app
from m365_mcp.utils.tracing import shutdown_tracing


def main() -> None:
    try:
        install(show_locals=False, max_frames=5, word_wrap=True)
        app()
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    main()
