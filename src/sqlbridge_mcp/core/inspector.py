"""Connectivity tests and schema reads."""

from typing import Union

from sqlbridge_mcp.adapters import ConnectorFactory
from sqlbridge_mcp.models.database import DbKind
from sqlbridge_mcp.models.schema import SchemaSnapshot


class SchemaService:
    """Delegates to the connector registered for a database kind."""

    def __init__(self, connector_factory: ConnectorFactory):
        self.connector_factory = connector_factory

    async def test(self, connection_string: str, db_kind: Union[DbKind, str]) -> None:
        """
        Raises:
            ConnectivityError: If the backend cannot be reached
        """
        await self.connector_factory.create(db_kind).test(connection_string)

    async def read_schema(
        self, connection_string: str, db_kind: Union[DbKind, str]
    ) -> SchemaSnapshot:
        return await self.connector_factory.create(db_kind).read_schema(
            connection_string
        )
