"""Base connector classes for database-specific implementations."""

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Iterator, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine
from sqlalchemy.pool import NullPool

from sqlbridge_mcp.errors import (
    ConnectivityError,
    QueryExecutionError,
    QueryTimeoutError,
)
from sqlbridge_mcp.models.database import DbKind
from sqlbridge_mcp.models.query import QueryOptions, QueryResult, ResultColumn
from sqlbridge_mcp.models.schema import (
    SchemaColumn,
    SchemaRelation,
    SchemaSnapshot,
    SchemaTable,
)
from sqlbridge_mcp.utils import convert_rows_to_json_safe

logger = logging.getLogger(__name__)

_LIMIT_PATTERNS = (
    re.compile(r"\bLIMIT\s+\d+", re.IGNORECASE),
    re.compile(r"\bTOP\s*\(?\s*\d+", re.IGNORECASE),
    re.compile(r"\bFETCH\s+(FIRST|NEXT)\b", re.IGNORECASE),
)

_CLOSING_QUOTE = {"'": "'", '"': '"', "`": "`", "[": "]"}


def _skipped_spans(query: str) -> Iterator[tuple[int, int, bool]]:
    """
    Yield (start, end, is_comment) for every quoted literal, quoted
    identifier and comment. Quoted spans exclude their delimiters; a doubled
    closing character is an escaped one. Unterminated spans run to the end.
    """
    i = 0
    n = len(query)
    while i < n:
        ch = query[i]
        if ch in _CLOSING_QUOTE:
            closing = _CLOSING_QUOTE[ch]
            j = i + 1
            while j < n:
                if query[j] == closing:
                    if query[j + 1 : j + 2] == closing:
                        j += 2
                        continue
                    break
                j += 1
            yield i + 1, j, False
            i = j + 1
        elif query.startswith("--", i):
            end = query.find("\n", i)
            end = n if end == -1 else end
            yield i, end, True
            i = end
        elif query.startswith("/*", i):
            end = query.find("*/", i + 2)
            end = n if end == -1 else end + 2
            yield i, end, True
            i = end
        else:
            i += 1


def mask_literals(query: str) -> str:
    """Blank out literals, quoted identifiers and comments, keeping offsets."""
    chars = list(query)
    for start, end, _ in _skipped_spans(query):
        chars[start:end] = " " * (end - start)
    return "".join(chars)


def _ends_in_line_comment(query: str) -> bool:
    return any(
        is_comment and end == len(query) and query.startswith("--", start)
        for start, end, is_comment in _skipped_spans(query)
    )


class BaseConnector(ABC):
    """Contract every database kind implements.

    Connectors hold no connection state. The connection string is supplied
    on every call, so one instance can serve concurrent callers.
    """

    @property
    @abstractmethod
    def kind(self) -> DbKind:
        """Database kind this connector serves."""
        ...

    @abstractmethod
    async def test(self, connection_string: str) -> None:
        """
        Open a connection and perform the cheapest round trip.

        Raises:
            ConnectivityError: If the backend is unreachable or the check query fails
        """
        ...

    @abstractmethod
    async def read_schema(self, connection_string: str) -> SchemaSnapshot:
        """
        Enumerate tables, views, columns and foreign keys.

        Raises:
            ConnectivityError: If the catalog cannot be read
        """
        ...

    @abstractmethod
    async def execute(
        self, connection_string: str, query: str, options: QueryOptions
    ) -> QueryResult:
        """
        Execute exactly the given text. No safety filtering happens here.

        Raises:
            ConnectivityError: If the connection cannot be opened
            QueryTimeoutError: If execution exceeds options.timeout_seconds
            QueryExecutionError: If the backend rejects the statement
        """
        ...

    @abstractmethod
    def apply_row_limit(self, query: str, max_rows: int) -> str:
        """Add this dialect's row-limit clause unless one is present."""
        ...

    def has_row_limit(self, query: str) -> bool:
        """
        Check whether the query already carries a LIMIT, TOP or FETCH clause.

        Text inside literals, quoted identifiers and comments does not count.
        """
        masked = mask_literals(query)
        return any(p.search(masked) for p in _LIMIT_PATTERNS)

    def _append_clause(self, query: str, clause: str) -> str:
        """Append a trailing clause after any statement terminator."""
        query = query.rstrip().rstrip(";").rstrip()
        # A clause after a trailing line comment would be commented out
        separator = "\n" if _ends_in_line_comment(query) else " "
        return f"{query}{separator}{clause}"


class SqlAlchemyConnector(BaseConnector):
    """Connector built on SQLAlchemy async engines.

    Each operation creates its own engine with ``NullPool``, opens a single
    connection and disposes the engine on exit, whatever the outcome.
    """

    # SQLAlchemy backend names accepted for this kind; the first is canonical
    dialect_names: tuple[str, ...] = ()
    # Async driver used when the URL names no driver
    async_driver: str = ""
    check_query: str = "SELECT 1"
    # Read every non-system schema instead of only the default one
    read_all_schemas: bool = False
    system_schemas: frozenset[str] = frozenset()

    def build_url(self, connection_string: str) -> URL:
        """
        Turn a connection string into an async SQLAlchemy URL for this kind.

        Raises:
            ConnectivityError: If the string is empty, unparseable or names
                another database dialect
        """
        cs = connection_string.strip()
        if not cs:
            raise ConnectivityError(
                f"Empty connection string for {self.kind.display_name}"
            )

        try:
            url = make_url(cs)
        except ArgumentError:
            url = self._url_from_native(cs)

        backend, _, driver = url.drivername.partition("+")
        if backend not in self.dialect_names:
            raise ConnectivityError(
                f"Connection string dialect '{backend}' does not match database "
                f"kind {self.kind.display_name}"
            )
        if not driver:
            url = url.set(drivername=f"{self.dialect_names[0]}+{self.async_driver}")
        return url

    def _url_from_native(self, connection_string: str) -> URL:
        """Hook for kinds that accept non-URL connection strings."""
        raise ConnectivityError(
            f"Invalid connection string for {self.kind.display_name}: "
            "expected a SQLAlchemy URL"
        )

    def session_timeout_statement(self, timeout_seconds: int) -> Optional[str]:
        """Statement that caps server-side execution time, if the dialect has one."""
        return None

    @asynccontextmanager
    async def _connect(
        self, connection_string: str
    ) -> AsyncGenerator[AsyncConnection, None]:
        url = self.build_url(connection_string)

        try:
            engine = create_async_engine(url, poolclass=NullPool)
        except (SQLAlchemyError, ImportError) as e:
            raise ConnectivityError(
                f"Cannot create {self.kind.display_name} engine: {e}"
            ) from e

        try:
            try:
                conn = await engine.connect()
            except (SQLAlchemyError, OSError) as e:
                raise ConnectivityError(
                    f"Could not connect to {self.kind.display_name}: {e}"
                ) from e
            try:
                yield conn
            finally:
                await conn.close()
        finally:
            await engine.dispose()

    async def test(self, connection_string: str) -> None:
        async with self._connect(connection_string) as conn:
            try:
                await conn.execute(text(self.check_query))
            except SQLAlchemyError as e:
                raise ConnectivityError(
                    f"{self.kind.display_name} connectivity check failed: {e}"
                ) from e
        logger.debug(f"{self.kind.display_name} connection test succeeded")

    async def read_schema(self, connection_string: str) -> SchemaSnapshot:
        async with self._connect(connection_string) as conn:
            try:
                # Two sequential passes over the same connection
                tables = await conn.run_sync(self._reflect_tables)
                relations = await conn.run_sync(self._reflect_relations, tables)
            except SQLAlchemyError as e:
                raise ConnectivityError(
                    f"{self.kind.display_name} schema read failed: {e}"
                ) from e

        logger.info(
            f"Read {self.kind.display_name} schema: {len(tables)} tables, "
            f"{len(relations)} relations"
        )
        return SchemaSnapshot(
            tables=tuple(table for table, _, _ in tables),
            relations=tuple(relations),
        )

    def _schemas_to_read(self, inspector: Any) -> list[Optional[str]]:
        if not self.read_all_schemas:
            return [None]
        return [
            schema
            for schema in inspector.get_schema_names()
            if not self._is_system_schema(schema)
        ]

    def _is_system_schema(self, schema: str) -> bool:
        return schema in self.system_schemas or schema.lower() in self.system_schemas

    def _qualified_name(
        self, name: str, schema: Optional[str], default_schema: Optional[str]
    ) -> str:
        if schema is None or schema == default_schema:
            return name
        return f"{schema}.{name}"

    def _reflect_tables(
        self, sync_conn: Any
    ) -> list[tuple[SchemaTable, str, Optional[str]]]:
        """Enumerate tables then views with their columns.

        Returns (table, raw name, schema) triples so the foreign key pass can
        address each table without re-parsing qualified names.
        """
        inspector = sa_inspect(sync_conn)
        default_schema = inspector.default_schema_name
        result: list[tuple[SchemaTable, str, Optional[str]]] = []

        for schema in self._schemas_to_read(inspector):
            for is_view, names in (
                (False, inspector.get_table_names(schema=schema)),
                (True, inspector.get_view_names(schema=schema)),
            ):
                for name in names:
                    columns = tuple(
                        SchemaColumn(
                            name=col["name"],
                            data_type=self._type_name(col["type"]),
                            is_nullable=bool(col.get("nullable", True)),
                        )
                        for col in inspector.get_columns(name, schema=schema)
                    )
                    table = SchemaTable(
                        name=self._qualified_name(name, schema, default_schema),
                        columns=columns,
                        is_view=is_view,
                    )
                    result.append((table, name, schema))

        return result

    def _reflect_relations(
        self,
        sync_conn: Any,
        tables: list[tuple[SchemaTable, str, Optional[str]]],
    ) -> list[SchemaRelation]:
        inspector = sa_inspect(sync_conn)
        default_schema = inspector.default_schema_name
        relations: list[SchemaRelation] = []

        for table, name, schema in tables:
            if table.is_view:
                continue
            for fk in inspector.get_foreign_keys(name, schema=schema):
                referred_schema = fk.get("referred_schema") or schema
                to_table = self._qualified_name(
                    fk["referred_table"], referred_schema, default_schema
                )
                for from_col, to_col in zip(
                    fk["constrained_columns"], fk["referred_columns"]
                ):
                    relations.append(
                        SchemaRelation(
                            from_table=table.name,
                            from_column=from_col,
                            to_table=to_table,
                            to_column=to_col,
                        )
                    )

        return relations

    @staticmethod
    def _type_name(col_type: Any) -> str:
        try:
            return str(col_type)
        except Exception:
            # Some reflected types cannot compile without a dialect
            return type(col_type).__name__

    async def execute(
        self, connection_string: str, query: str, options: QueryOptions
    ) -> QueryResult:
        async with self._connect(connection_string) as conn:
            timeout_sql = self.session_timeout_statement(options.timeout_seconds)
            if timeout_sql:
                try:
                    await conn.execute(text(timeout_sql))
                except SQLAlchemyError as e:
                    raise QueryExecutionError(
                        f"Could not apply statement timeout: {e}"
                    ) from e

            start_time = time.perf_counter()
            try:
                columns, rows, truncated = await asyncio.wait_for(
                    self._fetch(conn, query, options.max_rows),
                    timeout=options.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise QueryTimeoutError(
                    f"Query exceeded {options.timeout_seconds}s timeout"
                ) from e
            except SQLAlchemyError as e:
                orig = getattr(e, "orig", None)
                raise QueryExecutionError(str(orig or e)) from e
            duration_ms = (time.perf_counter() - start_time) * 1000

        return QueryResult(
            query=query,
            columns=columns,
            rows=rows,
            row_count=len(rows),
            duration_ms=duration_ms,
            truncated=truncated,
        )

    async def _fetch(
        self, conn: AsyncConnection, query: str, max_rows: int
    ) -> tuple[list[ResultColumn], list[dict[str, Any]], bool]:
        # Raw driver execution: the text runs exactly as given, with no
        # bind-parameter parsing of colons or percent signs
        result = await conn.exec_driver_sql(
            query, execution_options={"no_parameters": True}
        )
        try:
            if not result.returns_rows:
                return [], [], False

            names = list(result.keys())
            fetched = result.fetchmany(max_rows + 1)
        finally:
            result.close()

        truncated = len(fetched) > max_rows
        raw_rows = [dict(zip(names, row)) for row in fetched[:max_rows]]
        columns = [
            ResultColumn(name=name, type_name=self._observed_type(raw_rows, name))
            for name in names
        ]
        return columns, convert_rows_to_json_safe(raw_rows), truncated

    @staticmethod
    def _observed_type(rows: list[dict[str, Any]], column: str) -> str:
        for row in rows:
            value = row.get(column)
            if value is not None:
                return type(value).__name__
        return "unknown"


class LimitClauseConnector(SqlAlchemyConnector):
    """Dialects that limit rows with a trailing ``LIMIT n``."""

    def apply_row_limit(self, query: str, max_rows: int) -> str:
        if self.has_row_limit(query):
            return query
        return self._append_clause(query, f"LIMIT {max_rows}")
