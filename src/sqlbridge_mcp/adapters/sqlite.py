"""SQLite connector."""

from sqlalchemy.engine import URL

from sqlbridge_mcp.adapters.base import LimitClauseConnector
from sqlbridge_mcp.models.database import DbKind


class SqliteConnector(LimitClauseConnector):
    """SQLite through aiosqlite. Accepts URLs or a bare database file path."""

    dialect_names = ("sqlite",)
    async_driver = "aiosqlite"

    @property
    def kind(self) -> DbKind:
        return DbKind.SQLITE

    def _url_from_native(self, connection_string: str) -> URL:
        return URL.create(f"sqlite+{self.async_driver}", database=connection_string)
