"""MCP server exposing Microsoft 365 (Microsoft Graph) operations as tools."""

__version__ = "0.1.0"
