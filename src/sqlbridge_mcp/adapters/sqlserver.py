"""SQL Server connector."""

import re
from typing import Optional

from sqlalchemy.engine import URL

from sqlbridge_mcp.adapters.base import SqlAlchemyConnector, mask_literals
from sqlbridge_mcp.models.database import DbKind

ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

_SELECT_MODIFIER = re.compile(r"\s+(DISTINCT|ALL)\b", re.IGNORECASE)


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def find_top_level_select(query: str) -> Optional[int]:
    """
    Locate the end of the first SELECT keyword outside parentheses, quotes
    and comments.

    CTE bodies sit inside parentheses, so for ``WITH x AS (SELECT ...) SELECT``
    this finds the outer SELECT.

    Returns:
        Index just past the keyword, or None if there is no top-level SELECT
    """
    masked = mask_literals(query)
    depth = 0
    n = len(masked)

    for i, ch in enumerate(masked):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif (
            depth == 0
            and ch in "sS"
            and masked[i : i + 6].upper() == "SELECT"
            and (i == 0 or not _is_word_char(masked[i - 1]))
            and (i + 6 >= n or not _is_word_char(masked[i + 6]))
        ):
            return i + 6

    return None


class SqlServerConnector(SqlAlchemyConnector):
    """SQL Server through aioodbc.

    Accepts SQLAlchemy ``mssql://`` URLs as well as ADO/ODBC style strings
    (``Server=host;Database=db;User Id=...;Password=...``). Reads every
    non-system schema; tables outside ``dbo`` are reported as ``schema.table``.
    """

    dialect_names = ("mssql",)
    async_driver = "aioodbc"
    read_all_schemas = True
    system_schemas = frozenset(
        {
            "sys",
            "information_schema",
            "guest",
            "db_owner",
            "db_accessadmin",
            "db_securityadmin",
            "db_ddladmin",
            "db_backupoperator",
            "db_datareader",
            "db_datawriter",
            "db_denydatareader",
            "db_denydatawriter",
        }
    )

    @property
    def kind(self) -> DbKind:
        return DbKind.SQLSERVER

    def _url_from_native(self, connection_string: str) -> URL:
        odbc = connection_string
        if "driver=" not in odbc.lower():
            odbc = f"DRIVER={{{ODBC_DRIVER}}};{odbc}"
        return URL.create(
            f"mssql+{self.async_driver}", query={"odbc_connect": odbc}
        )

    def apply_row_limit(self, query: str, max_rows: int) -> str:
        if self.has_row_limit(query):
            return query

        pos = find_top_level_select(query)
        if pos is None:
            return query

        modifier = _SELECT_MODIFIER.match(query, pos)
        insert_at = modifier.end() if modifier else pos
        return f"{query[:insert_at]} TOP {max_rows}{query[insert_at:]}"
