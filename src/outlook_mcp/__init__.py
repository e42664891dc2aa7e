"""Outlook MCP server: calendar and mail tools over Microsoft Graph."""

__version__ = "0.3.0"
