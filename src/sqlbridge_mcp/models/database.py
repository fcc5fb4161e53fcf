"""Database kind enumeration used to select connectors."""

from enum import Enum
from typing import Union

from sqlbridge_mcp.errors import UnsupportedCapabilityError


class DbKind(str, Enum):
    """Closed set of relational backends with a registered connector."""

    SQLSERVER = "sqlserver"
    MYSQL = "mysql"
    ORACLE = "oracle"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, value: Union["DbKind", str]) -> "DbKind":
        """
        Parse a database kind case-insensitively.

        Accepts enum members, their values, and display names such as
        ``SqlServer`` or ``MySql``.

        Raises:
            UnsupportedCapabilityError: If the value names no known kind
        """
        if isinstance(value, DbKind):
            return value

        normalized = str(value).strip().lower().replace("_", "").replace(" ", "")
        aliases = {
            "mssql": cls.SQLSERVER,
            "postgres": cls.POSTGRESQL,
        }
        if normalized in aliases:
            return aliases[normalized]
        for member in cls:
            if member.value == normalized:
                return member

        raise UnsupportedCapabilityError(
            "database kind", str(value), [m.value for m in cls]
        )

    @property
    def display_name(self) -> str:
        return {
            DbKind.SQLSERVER: "SqlServer",
            DbKind.MYSQL: "MySql",
            DbKind.ORACLE: "Oracle",
            DbKind.POSTGRESQL: "PostgreSql",
            DbKind.SQLITE: "Sqlite",
        }[self]
