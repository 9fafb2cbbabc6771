"""User profile tools."""

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from msgraph.generated.models.o_data_errors.o_data_error import ODataError

from m365_mcp.auth import AuthError
from m365_mcp.context import ServerContext
from m365_mcp.tools.formatting import format_error, format_message, format_response
from m365_mcp.utils.logger import get_logger
from m365_mcp.utils.tracing import tool_span

logger = get_logger("m365_mcp.tools.users")


async def get_current_user(context: ServerContext) -> str:
    try:
        user = await context.graph_client().me.get()
    except ODataError as e:
        logger.warning("tools.get_current_user.graph_error", status=e.response_status_code)
        return format_error(e)
    except AuthError as e:
        logger.warning("tools.get_current_user.auth_error", error_type=type(e).__name__)
        return format_message(str(e), error=True)
    return format_response(user)


def register_user_tools(mcp: FastMCP, context: ServerContext) -> None:
    @mcp.tool(
        name="get-current-user",
        description="Get the currently authenticated user's profile from Microsoft 365.",
        annotations=ToolAnnotations(readOnlyHint=True),
    )
    async def get_current_user_tool() -> str:
        with tool_span("get-current-user"):
            return await get_current_user(context)
