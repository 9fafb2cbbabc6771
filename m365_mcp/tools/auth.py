"""Sign-in tools: login, login-status, logout."""

from mcp.server.fastmcp import FastMCP

from m365_mcp.auth import AuthConfigurationError
from m365_mcp.context import ServerContext
from m365_mcp.utils.logger import get_logger
from m365_mcp.utils.tracing import tool_span

logger = get_logger("m365_mcp.tools.auth")


def register_auth_tools(mcp: FastMCP, context: ServerContext) -> None:
    """Register the device-code sign-in tools on ``mcp``."""

    @mcp.tool(
        name="login",
        description=(
            "Start Microsoft 365 authentication. Returns a URL and code for the user to open "
            "in their browser. After the user completes sign-in, call 'login-status' to confirm."
        ),
    )
    async def login() -> str:
        with tool_span("login"):
            try:
                auth = context.auth
            except AuthConfigurationError as e:
                return str(e)
            return await auth.login()

    @mcp.tool(
        name="login-status",
        description="Check if the user has completed the Microsoft 365 sign-in started by 'login'.",
    )
    async def login_status() -> str:
        with tool_span("login-status"):
            try:
                auth = context.auth
            except AuthConfigurationError as e:
                return str(e)
            return auth.login_status()

    @mcp.tool(name="logout", description="Sign out of Microsoft 365 and clear cached tokens.")
    async def logout() -> str:
        with tool_span("logout"):
            try:
                auth = context.auth
            except AuthConfigurationError as e:
                return str(e)
            return auth.logout()
