"""FastMCP server assembly."""

from mcp.server.fastmcp import FastMCP

from m365_mcp.config import MCP_HOST, MCP_PORT, SERVER_NAME
from m365_mcp.context import ServerContext
from m365_mcp.tools import register_auth_tools, register_system_tools, register_user_tools

INSTRUCTIONS = (
    "Microsoft 365 tools backed by Microsoft Graph. If a tool reports that no account is "
    "signed in, call 'login', relay the URL and code to the user, then call 'login-status' "
    "after they finish."
)


def build_server(context: ServerContext, host: str = MCP_HOST, port: int = MCP_PORT) -> FastMCP:
    """Create the FastMCP instance with every tool bound to ``context``."""
    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS, host=host, port=port)
    register_auth_tools(mcp, context)
    register_system_tools(mcp)
    register_user_tools(mcp, context)
    return mcp
