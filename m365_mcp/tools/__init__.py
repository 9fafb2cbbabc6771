"""MCP tools, one module per Microsoft 365 area."""

from m365_mcp.tools.auth import register_auth_tools
from m365_mcp.tools.system import register_system_tools
from m365_mcp.tools.users import register_user_tools

__all__ = [
    "register_auth_tools",
    "register_system_tools",
    "register_user_tools",
]
