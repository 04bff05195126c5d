"""Shared MCP application instance.

Tool modules register against `mcp` from here so that server.py can import
them without an import cycle.
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    "Route Impact",
    instructions=(
        "Matches traffic disruptions (coordinates and/or location text) to the "
        "Go North East bus routes they affect"
    ),
)
