"""MCP application instance.

This module exists to avoid circular import issues when running with `python -m`.
All tool modules should import `mcp` from here, not from server.py.
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    "NeTEx Calendar",
    instructions="Resolve NeTEx service calendars into GTFS calendars, holidays and service dates",
)
