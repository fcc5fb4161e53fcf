"""Pydantic models for schema snapshots, queries, LLM calls and the protocol."""

from .config import ServerConfig
from .database import DbKind
from .llm import GeneratedSql, LlmMessage, LlmProvider, LlmRequestOptions
from .metadata import ConnectionRecord, QueryHistoryEntry, StoredColumn, StoredTable
from .query import QueryOptions, QueryResult, ResultColumn
from .schema import SchemaColumn, SchemaRelation, SchemaSnapshot, SchemaTable

__all__ = [
    "ServerConfig",
    "DbKind",
    "LlmProvider",
    "LlmMessage",
    "LlmRequestOptions",
    "GeneratedSql",
    "ConnectionRecord",
    "StoredTable",
    "StoredColumn",
    "QueryHistoryEntry",
    "QueryOptions",
    "QueryResult",
    "ResultColumn",
    "SchemaColumn",
    "SchemaTable",
    "SchemaRelation",
    "SchemaSnapshot",
]
