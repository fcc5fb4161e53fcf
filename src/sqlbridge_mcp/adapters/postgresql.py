"""PostgreSQL connector."""

from typing import Optional

from sqlalchemy.engine import URL

from sqlbridge_mcp.adapters.base import LimitClauseConnector
from sqlbridge_mcp.models.database import DbKind


class PostgresConnector(LimitClauseConnector):
    """PostgreSQL through asyncpg. Reads every non-system schema."""

    dialect_names = ("postgresql", "postgres")
    async_driver = "asyncpg"
    read_all_schemas = True
    system_schemas = frozenset({"information_schema", "pg_catalog", "pg_toast"})

    @property
    def kind(self) -> DbKind:
        return DbKind.POSTGRESQL

    def build_url(self, connection_string: str) -> URL:
        url = super().build_url(connection_string)
        # SQLAlchemy only registers the long dialect name
        if url.drivername.startswith("postgres+"):
            url = url.set(drivername="postgresql+" + url.drivername.split("+", 1)[1])
        return url

    def _is_system_schema(self, schema: str) -> bool:
        return super()._is_system_schema(schema) or schema.startswith("pg_temp")

    def session_timeout_statement(self, timeout_seconds: int) -> Optional[str]:
        return f"SET statement_timeout = {timeout_seconds * 1000}"
