"""Guarded query execution."""

import logging
from typing import Union

from sqlbridge_mcp.adapters import ConnectorFactory
from sqlbridge_mcp.core.safety import check_read_only
from sqlbridge_mcp.errors import UnsafeQueryError
from sqlbridge_mcp.models.database import DbKind
from sqlbridge_mcp.models.query import QueryOptions, QueryResult

logger = logging.getLogger(__name__)


class QueryService:
    """Runs the read-only guard, then hands the query to the right connector."""

    def __init__(self, connector_factory: ConnectorFactory):
        self.connector_factory = connector_factory

    async def execute(
        self,
        connection_string: str,
        query: str,
        options: QueryOptions,
        db_kind: Union[DbKind, str],
    ) -> QueryResult:
        """
        Execute a query after it passes the read-only guard.

        Args:
            connection_string: Backend connection string
            query: SQL text, executed exactly as given once allowed
            options: Timeout and row cap
            db_kind: Kind selecting the connector

        Returns:
            Query result

        Raises:
            UnsafeQueryError: If the guard rejects the query; no connector is
                created and nothing reaches the backend
            UnsupportedCapabilityError: If db_kind has no connector
        """
        reason = check_read_only(query)
        if reason is not None:
            logger.warning(f"Blocked query: {reason}")
            raise UnsafeQueryError(reason)

        connector = self.connector_factory.create(db_kind)
        result = await connector.execute(connection_string, query, options)
        logger.info(
            f"Executed {connector.kind.display_name} query: {result.row_count} rows "
            f"in {result.duration_ms:.1f}ms"
        )
        return result

    def apply_row_limit(
        self, query: str, db_kind: Union[DbKind, str], max_rows: int
    ) -> str:
        """Add the dialect's row-limit clause unless the query already has one."""
        return self.connector_factory.create(db_kind).apply_row_limit(query, max_rows)
