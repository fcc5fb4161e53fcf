"""Allow running as ``python -m sqlbridge_mcp``."""

from sqlbridge_mcp.server import cli_entry

if __name__ == "__main__":
    cli_entry()
