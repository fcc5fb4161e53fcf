"""Pytest configuration and shared fixtures for sqlbridge tests"""

import sys
import uuid
from typing import Any, Callable

import httpx
import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, text

from sqlbridge_mcp.adapters import (
    CONNECTOR_REGISTRY,
    ConnectorFactory,
    MySqlConnector,
    SqlAlchemyConnector,
    SqlServerConnector,
)
from sqlbridge_mcp.llm import LlmClientFactory
from sqlbridge_mcp.models import (
    ConnectionRecord,
    DbKind,
    QueryOptions,
    QueryResult,
    ResultColumn,
    SchemaColumn,
    SchemaSnapshot,
    SchemaTable,
    ServerConfig,
    StoredColumn,
    StoredTable,
)
from sqlbridge_mcp.server import SqlBridgeServer
from sqlbridge_mcp.storage import InMemoryMetadataRepository

# Load environment variables
load_dotenv()

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())  # type: ignore[attr-defined]

CUSTOMER_COUNT = 150

SQLSERVER_CONNECTION_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
MYSQL_CONNECTION_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
SQLITE_CONNECTION_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")

LIVE_SNAPSHOT = SchemaSnapshot(
    tables=(
        SchemaTable(
            name="Customers",
            columns=(
                SchemaColumn(name="Id", data_type="int", is_nullable=False),
                SchemaColumn(name="Name", data_type="nvarchar(100)", is_nullable=False),
                SchemaColumn(name="created_at", data_type="datetime2", is_nullable=True),
            ),
        ),
    ),
    relations=(),
)


# ==================== Data Fixtures ====================


@pytest.fixture(scope="session")
def customer_count() -> int:
    return CUSTOMER_COUNT


@pytest.fixture(scope="session")
def customer_rows() -> list[dict[str, Any]]:
    """Rows of the Customers table used by the recording connectors"""
    return [
        {"Id": i, "Name": f"Customer {i}", "created_at": f"2024-01-{(i % 28) + 1:02d}"}
        for i in range(1, CUSTOMER_COUNT + 1)
    ]


@pytest.fixture
def customers_db(tmp_path) -> str:
    """SQLite database file with Customers, Orders and a view"""
    path = tmp_path / "customers.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE Customers ("
                " Id INTEGER PRIMARY KEY,"
                " Name VARCHAR(100) NOT NULL,"
                " Email VARCHAR(200),"
                " created_at VARCHAR(30))"
            )
        )
        conn.execute(
            text(
                "CREATE TABLE Orders ("
                " Id INTEGER PRIMARY KEY,"
                " CustomerId INTEGER NOT NULL REFERENCES Customers(Id),"
                " Total NUMERIC(10, 2))"
            )
        )
        conn.execute(
            text(
                "CREATE VIEW RecentCustomers AS"
                " SELECT Id, Name FROM Customers WHERE created_at >= '2024-01-15'"
            )
        )
        conn.execute(
            text(
                "INSERT INTO Customers (Id, Name, Email, created_at)"
                " VALUES (:id, :name, :email, :created_at)"
            ),
            [
                {
                    "id": i,
                    "name": f"Customer {i}",
                    "email": None if i % 10 == 0 else f"c{i}@example.com",
                    "created_at": f"2024-01-{(i % 28) + 1:02d}",
                }
                for i in range(1, CUSTOMER_COUNT + 1)
            ],
        )
        conn.execute(
            text("INSERT INTO Orders (Id, CustomerId, Total) VALUES (1, 1, 19.99)")
        )
    engine.dispose()
    return str(path)


# ==================== Connector Fixtures ====================


def recording_connector(
    base: type[SqlAlchemyConnector],
    executed: list[str],
    rows: list[dict[str, Any]],
) -> type[SqlAlchemyConnector]:
    """Connector of a real kind whose I/O is replaced by an in-memory table.

    Row-limit rewriting stays the real implementation; execute records the
    exact text it receives.
    """

    class RecordingConnector(base):  # type: ignore[misc, valid-type]
        async def test(self, connection_string: str) -> None:
            return None

        async def read_schema(self, connection_string: str) -> SchemaSnapshot:
            return LIVE_SNAPSHOT

        async def execute(
            self, connection_string: str, query: str, options: QueryOptions
        ) -> QueryResult:
            executed.append(query)
            capped = rows[: options.max_rows]
            return QueryResult(
                query=query,
                columns=[ResultColumn(name=name, type_name="str") for name in rows[0]],
                rows=capped,
                row_count=len(capped),
                duration_ms=1.5,
                truncated=len(rows) > options.max_rows,
            )

    RecordingConnector.__name__ = f"Recording{base.__name__}"
    return RecordingConnector


@pytest.fixture
def executed_queries() -> list[str]:
    return []


@pytest.fixture
def connector_factory(
    executed_queries: list[str], customer_rows: list[dict[str, Any]]
) -> ConnectorFactory:
    """Real registry with SQL Server and MySQL swapped for recording connectors"""
    registry = dict(CONNECTOR_REGISTRY)
    registry[DbKind.SQLSERVER] = recording_connector(
        SqlServerConnector, executed_queries, customer_rows
    )
    registry[DbKind.MYSQL] = recording_connector(
        MySqlConnector, executed_queries, customer_rows
    )
    return ConnectorFactory(registry)


# ==================== Repository Fixtures ====================


@pytest.fixture
def sqlserver_connection() -> ConnectionRecord:
    return ConnectionRecord(
        id=SQLSERVER_CONNECTION_ID,
        name="Sales (SQL Server)",
        provider=DbKind.SQLSERVER,
        connection_string_encrypted="Server=sql01;Database=Sales;Trusted_Connection=yes",
        is_healthy=True,
    )


@pytest.fixture
def mysql_connection() -> ConnectionRecord:
    return ConnectionRecord(
        id=MYSQL_CONNECTION_ID,
        name="Shop (MySQL)",
        provider=DbKind.MYSQL,
        connection_string_encrypted="mysql://reader:secret@db/shop",
    )


@pytest.fixture
def sqlite_connection(customers_db: str) -> ConnectionRecord:
    return ConnectionRecord(
        id=SQLITE_CONNECTION_ID,
        name="Local (SQLite)",
        provider=DbKind.SQLITE,
        connection_string_encrypted=customers_db,
        is_healthy=True,
    )


@pytest.fixture
def stored_tables() -> list[StoredTable]:
    table_id = uuid.uuid4()
    return [
        StoredTable(
            id=table_id,
            connection_id=SQLSERVER_CONNECTION_ID,
            name="Customers",
            display_name="Customers",
            description="People who placed at least one order",
            columns=[
                StoredColumn(
                    table_id=table_id, name="Id", data_type="int", is_nullable=False
                ),
                StoredColumn(
                    table_id=table_id,
                    name="Name",
                    data_type="nvarchar(100)",
                    is_nullable=False,
                    display_name="Customer name",
                ),
                StoredColumn(
                    table_id=table_id,
                    name="created_at",
                    data_type="datetime2",
                    is_nullable=True,
                ),
            ],
        )
    ]


@pytest.fixture
def repository(
    sqlserver_connection: ConnectionRecord,
    mysql_connection: ConnectionRecord,
    sqlite_connection: ConnectionRecord,
    stored_tables: list[StoredTable],
) -> InMemoryMetadataRepository:
    return InMemoryMetadataRepository(
        connections=[sqlserver_connection, mysql_connection, sqlite_connection],
        tables=stored_tables,
    )


# ==================== LLM Fixtures ====================


def openai_reply(content: str) -> dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


@pytest.fixture
def llm_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def llm_transport(llm_requests: list[httpx.Request]) -> httpx.MockTransport:
    """OpenAI-compatible endpoint answering with a fenced SQL block"""

    def handler(request: httpx.Request) -> httpx.Response:
        llm_requests.append(request)
        return httpx.Response(
            200, json=openai_reply("```sql\nSELECT TOP 10 Name FROM Customers\n```")
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def llm_factory(llm_transport: httpx.MockTransport) -> LlmClientFactory:
    return LlmClientFactory(
        settings_source={"LLM_OPENAI_API_KEY": "sk-test"},
        transport=llm_transport,
    )


# ==================== Server Fixtures ====================


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(name="sqlbridge-test", version="0.0.1")


@pytest.fixture
def bridge(
    repository: InMemoryMetadataRepository,
    connector_factory: ConnectorFactory,
    llm_factory: LlmClientFactory,
    server_config: ServerConfig,
) -> SqlBridgeServer:
    return SqlBridgeServer.create(
        repository,
        config=server_config,
        connector_factory=connector_factory,
        llm_factory=llm_factory,
    )


@pytest.fixture
def make_bridge(
    repository: InMemoryMetadataRepository,
    connector_factory: ConnectorFactory,
    llm_factory: LlmClientFactory,
) -> Callable[..., SqlBridgeServer]:
    """Build a server with config overrides"""

    def factory(**config: Any) -> SqlBridgeServer:
        return SqlBridgeServer.create(
            repository,
            config=ServerConfig(**config),
            connector_factory=connector_factory,
            llm_factory=llm_factory,
        )

    return factory


# ==================== Pytest Configuration ====================


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "sqlite: tests running against a SQLite file")
    config.addinivalue_line(
        "markers", "integration: Integration tests exercising the protocol stack"
    )
    config.addinivalue_line("markers", "slow: tests that wait on timeouts")
