"""SQL bridge MCP server.

Schema introspection, read-only SQL execution and LLM-assisted SQL
generation over SQL Server, MySQL, Oracle, PostgreSQL and SQLite.
"""

from sqlbridge_mcp.client import ProtocolClient
from sqlbridge_mcp.server import SqlBridgeServer, cli_entry, main

__version__ = "1.0.0"

__all__ = ["SqlBridgeServer", "ProtocolClient", "main", "cli_entry"]
