"""MySQL connector."""

from typing import Optional

from sqlbridge_mcp.adapters.base import LimitClauseConnector
from sqlbridge_mcp.models.database import DbKind


class MySqlConnector(LimitClauseConnector):
    """MySQL and MariaDB through aiomysql. Reads the connection's default database."""

    dialect_names = ("mysql", "mariadb")
    async_driver = "aiomysql"

    @property
    def kind(self) -> DbKind:
        return DbKind.MYSQL

    def session_timeout_statement(self, timeout_seconds: int) -> Optional[str]:
        return f"SET SESSION max_execution_time = {timeout_seconds * 1000}"
