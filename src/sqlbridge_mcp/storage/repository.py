"""Metadata repository: connections, curated schema and query history."""

import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Union

from sqlbridge_mcp.models.metadata import (
    ConnectionRecord,
    QueryHistoryEntry,
    StoredColumn,
    StoredTable,
)
from sqlbridge_mcp.models.schema import SchemaSnapshot
from sqlbridge_mcp.utils import loads

logger = logging.getLogger(__name__)


class MetadataRepository(ABC):
    """Persistent store the protocol server reads and appends to."""

    @abstractmethod
    async def list_connections(self) -> list[ConnectionRecord]: ...

    @abstractmethod
    async def get_connection(
        self, connection_id: uuid.UUID
    ) -> Optional[ConnectionRecord]: ...

    @abstractmethod
    async def list_tables(self, connection_id: uuid.UUID) -> list[StoredTable]: ...

    @abstractmethod
    async def save_schema(
        self, connection_id: uuid.UUID, snapshot: SchemaSnapshot
    ) -> list[StoredTable]:
        """
        Replace the stored tables of a connection with a fresh snapshot.

        Display names and descriptions already curated for a table or column
        of the same name are kept.
        """
        ...

    @abstractmethod
    async def list_query_history(self, limit: int) -> list[QueryHistoryEntry]:
        """Latest entries, newest first."""
        ...

    @abstractmethod
    async def add_query_history(self, entry: QueryHistoryEntry) -> None: ...


class InMemoryMetadataRepository(MetadataRepository):
    """Dict-backed repository for development and tests."""

    def __init__(
        self,
        connections: Iterable[ConnectionRecord] = (),
        tables: Iterable[StoredTable] = (),
        history: Iterable[QueryHistoryEntry] = (),
    ):
        self._connections: dict[uuid.UUID, ConnectionRecord] = {
            c.id: c for c in connections
        }
        self._tables: dict[uuid.UUID, list[StoredTable]] = {}
        for table in tables:
            self._tables.setdefault(table.connection_id, []).append(table)
        self._history: list[QueryHistoryEntry] = list(history)

    @classmethod
    def load_file(cls, path: Union[str, Path]) -> "InMemoryMetadataRepository":
        """
        Load a repository from a JSON document.

        Expected shape::

            {"connections": [...], "tables": [...], "query_history": [...]}

        Each list holds objects in the shape of the matching record model.
        """
        data = loads(Path(path).read_bytes())
        repo = cls(
            connections=[
                ConnectionRecord.model_validate(c) for c in data.get("connections", [])
            ],
            tables=[StoredTable.model_validate(t) for t in data.get("tables", [])],
            history=[
                QueryHistoryEntry.model_validate(h)
                for h in data.get("query_history", [])
            ],
        )
        logger.info(
            f"Loaded metadata from {path}: {len(repo._connections)} connections"
        )
        return repo

    def add_connection(self, connection: ConnectionRecord) -> None:
        self._connections[connection.id] = connection

    async def list_connections(self) -> list[ConnectionRecord]:
        return sorted(self._connections.values(), key=lambda c: c.name)

    async def get_connection(
        self, connection_id: uuid.UUID
    ) -> Optional[ConnectionRecord]:
        return self._connections.get(connection_id)

    async def list_tables(self, connection_id: uuid.UUID) -> list[StoredTable]:
        return list(self._tables.get(connection_id, []))

    async def save_schema(
        self, connection_id: uuid.UUID, snapshot: SchemaSnapshot
    ) -> list[StoredTable]:
        existing = {t.name: t for t in self._tables.get(connection_id, [])}
        stored: list[StoredTable] = []

        for table in snapshot.tables:
            previous = existing.get(table.name)
            previous_cols = (
                {c.name: c for c in previous.columns} if previous else {}
            )
            table_id = previous.id if previous else uuid.uuid4()
            columns = []
            for col in table.columns:
                prior = previous_cols.get(col.name)
                columns.append(
                    StoredColumn(
                        id=prior.id if prior else uuid.uuid4(),
                        table_id=table_id,
                        name=col.name,
                        data_type=col.data_type,
                        is_nullable=col.is_nullable,
                        display_name=prior.display_name if prior else None,
                        description=prior.description if prior else None,
                    )
                )
            stored.append(
                StoredTable(
                    id=table_id,
                    connection_id=connection_id,
                    name=table.name,
                    display_name=previous.display_name if previous else None,
                    description=previous.description if previous else None,
                    columns=columns,
                )
            )

        self._tables[connection_id] = stored
        return list(stored)

    async def list_query_history(self, limit: int) -> list[QueryHistoryEntry]:
        ordered = sorted(self._history, key=lambda h: h.executed_at, reverse=True)
        return ordered[:limit]

    async def add_query_history(self, entry: QueryHistoryEntry) -> None:
        self._history.append(entry)
