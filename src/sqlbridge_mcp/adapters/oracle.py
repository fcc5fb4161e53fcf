"""Oracle connector."""

from sqlbridge_mcp.adapters.base import SqlAlchemyConnector
from sqlbridge_mcp.models.database import DbKind


class OracleConnector(SqlAlchemyConnector):
    """Oracle through python-oracledb in async mode.

    Rows are limited with ``FETCH FIRST n ROWS ONLY`` (Oracle 12c and later).
    """

    dialect_names = ("oracle",)
    async_driver = "oracledb"
    check_query = "SELECT 1 FROM DUAL"

    @property
    def kind(self) -> DbKind:
        return DbKind.ORACLE

    def apply_row_limit(self, query: str, max_rows: int) -> str:
        if self.has_row_limit(query):
            return query
        return self._append_clause(query, f"FETCH FIRST {max_rows} ROWS ONLY")
