"""Server utility tools."""

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from m365_mcp import __version__
from m365_mcp.tools.formatting import format_response


def register_system_tools(mcp: FastMCP) -> None:
    @mcp.tool(
        name="get-version",
        description="Get the current m365-mcp server version.",
        annotations=ToolAnnotations(readOnlyHint=True),
    )
    def get_version() -> str:
        return format_response({"version": __version__})
