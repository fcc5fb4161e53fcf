"""Database connectors keyed by database kind."""

from typing import Mapping, Optional, Union

from sqlbridge_mcp.adapters.base import (
    BaseConnector,
    LimitClauseConnector,
    SqlAlchemyConnector,
)
from sqlbridge_mcp.adapters.mysql import MySqlConnector
from sqlbridge_mcp.adapters.oracle import OracleConnector
from sqlbridge_mcp.adapters.postgresql import PostgresConnector
from sqlbridge_mcp.adapters.sqlite import SqliteConnector
from sqlbridge_mcp.adapters.sqlserver import SqlServerConnector
from sqlbridge_mcp.errors import UnsupportedCapabilityError
from sqlbridge_mcp.models.database import DbKind

__all__ = [
    "BaseConnector",
    "SqlAlchemyConnector",
    "LimitClauseConnector",
    "SqlServerConnector",
    "MySqlConnector",
    "OracleConnector",
    "PostgresConnector",
    "SqliteConnector",
    "CONNECTOR_REGISTRY",
    "ConnectorFactory",
    "create_connector",
]

CONNECTOR_REGISTRY: dict[DbKind, type[BaseConnector]] = {
    DbKind.SQLSERVER: SqlServerConnector,
    DbKind.MYSQL: MySqlConnector,
    DbKind.ORACLE: OracleConnector,
    DbKind.POSTGRESQL: PostgresConnector,
    DbKind.SQLITE: SqliteConnector,
}


class ConnectorFactory:
    """Resolves a database kind to a fresh connector instance."""

    def __init__(
        self, registry: Optional[Mapping[DbKind, type[BaseConnector]]] = None
    ):
        self._registry = dict(CONNECTOR_REGISTRY if registry is None else registry)

    @property
    def supported_kinds(self) -> list[DbKind]:
        return list(self._registry)

    def create(self, kind: Union[DbKind, str]) -> BaseConnector:
        """
        Create the connector registered for a database kind.

        Args:
            kind: Database kind or its name (case-insensitive)

        Returns:
            New connector instance

        Raises:
            UnsupportedCapabilityError: If no connector is registered for kind
        """
        db_kind = DbKind.parse(kind)
        connector_class = self._registry.get(db_kind)

        if connector_class is None:
            raise UnsupportedCapabilityError(
                "database kind",
                db_kind.value,
                [k.value for k in self._registry],
            )

        return connector_class()


def create_connector(kind: Union[DbKind, str]) -> BaseConnector:
    """Factory function to create the connector for a database kind."""
    return ConnectorFactory().create(kind)
