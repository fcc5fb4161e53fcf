"""Core services: read-only guard, query execution, schema reads, SQL generation."""

from sqlbridge_mcp.core.executor import QueryService
from sqlbridge_mcp.core.generator import SqlGenerationService
from sqlbridge_mcp.core.inspector import SchemaService
from sqlbridge_mcp.core.safety import check_read_only, is_read_only

__all__ = [
    "QueryService",
    "SchemaService",
    "SqlGenerationService",
    "check_read_only",
    "is_read_only",
]
