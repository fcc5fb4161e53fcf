"""SQL bridge MCP server.

A Model Context Protocol server exposing registered database connections:
schema and query-history resources, plus tools for listing connections,
reading schema, running read-only SQL and generating SQL with an LLM.
"""

import asyncio
import logging
import os
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

import mcp.types as mcp_types
from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from pydantic import AnyUrl, BaseModel, ConfigDict, Field, ValidationError, field_validator

from sqlbridge_mcp.adapters import ConnectorFactory
from sqlbridge_mcp.core import (
    QueryService,
    SchemaService,
    SqlGenerationService,
    check_read_only,
)
from sqlbridge_mcp.errors import (
    NotFoundError,
    ProtocolValidationError,
    SqlBridgeError,
    UnknownResourceError,
    UnknownToolError,
    UnsafeQueryError,
)
from sqlbridge_mcp.llm import LlmClientFactory
from sqlbridge_mcp.models.config import ServerConfig
from sqlbridge_mcp.models.metadata import (
    ConnectionRecord,
    QueryHistoryEntry,
    StoredTable,
)
from sqlbridge_mcp.models.protocol import (
    CallToolRequest,
    CallToolResponse,
    Capabilities,
    ErrorMessage,
    InitializeRequest,
    InitializeResponse,
    ListResourcesRequest,
    ListResourcesResponse,
    ListToolsRequest,
    ListToolsResponse,
    ReadResourceRequest,
    ReadResourceResponse,
    Resource,
    ServerInfo,
    Tool,
)
from sqlbridge_mcp.models.query import QueryOptions
from sqlbridge_mcp.storage import (
    InMemoryMetadataRepository,
    MetadataRepository,
    PassthroughCipher,
    SecretCipher,
)
from sqlbridge_mcp.utils import dumps

logger = logging.getLogger(__name__)

# Response size limits (in characters) for stdio tool responses
MAX_RESPONSE_LIST_CONNECTIONS = 3000
MAX_RESPONSE_GET_METADATA = 8000
MAX_RESPONSE_GET_SCHEMA = 10000
MAX_RESPONSE_ANALYZE_QUERY = 5000
MAX_RESPONSE_EXECUTE_QUERY = 10000

TOOL_RESPONSE_LIMITS = {
    "list_connections": MAX_RESPONSE_LIST_CONNECTIONS,
    "get_schema": MAX_RESPONSE_GET_SCHEMA,
    "execute_query": MAX_RESPONSE_EXECUTE_QUERY,
    "analyze_query": MAX_RESPONSE_ANALYZE_QUERY,
    "get_metadata": MAX_RESPONSE_GET_METADATA,
}

RESOURCE_NAMES = ("schema", "connections", "queries")
TOOL_NAMES = tuple(TOOL_RESPONSE_LIMITS)


def truncate_json_response(data: str, max_length: int) -> str:
    """
    Truncate JSON response to a maximum length.

    Args:
        data: JSON string to truncate
        max_length: Maximum length in characters

    Returns:
        Truncated JSON string with truncation notice if needed
    """
    if len(data) <= max_length:
        return data

    truncation_msg = (
        f"\n\n... [Response truncated: {len(data)} chars -> {max_length} chars "
        "to preserve context window]"
    )
    available_length = max_length - len(truncation_msg)

    if available_length < 100:
        return dumps(
            {
                "error": "Response too large",
                "original_size": len(data),
                "limit": max_length,
                "message": "Response exceeds size limit. Lower maxRows or filter by tableName.",
            },
            indent=True,
        )

    truncated = data[:available_length]

    # Prefer cutting at a line end when one is near the limit
    last_newline = truncated.rfind("\n")
    if last_newline > available_length * 0.8:
        truncated = truncated[:last_newline]

    return truncated + truncation_msg


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for err in error.errors():
        if err["type"] == "value_error" and "error" in err.get("ctx", {}):
            messages.append(str(err["ctx"]["error"]))
            continue
        field = ".".join(str(part) for part in err["loc"])
        messages.append(f"{field}: {err['msg']}" if field else err["msg"])
    return "; ".join(messages)


class _ToolArguments(BaseModel):
    """Tool arguments use the camelCase names of the wire contract."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    connection_id: uuid.UUID = Field(..., alias="connectionId")

    @field_validator("connection_id", mode="before")
    @classmethod
    def validate_connection_id(cls, v: Any) -> Any:
        if isinstance(v, uuid.UUID):
            return v
        if not isinstance(v, str):
            raise ValueError("Invalid connection ID")
        try:
            return uuid.UUID(v.strip())
        except ValueError:
            raise ValueError("Invalid connection ID")


class GetSchemaArguments(_ToolArguments):
    refresh: bool = False


class ExecuteQueryArguments(_ToolArguments):
    sql: str = Field(..., min_length=1)
    max_rows: Optional[int] = Field(default=None, alias="maxRows", ge=1, le=100_000)


class AnalyzeQueryArguments(_ToolArguments):
    natural_language_query: str = Field(
        ..., alias="naturalLanguageQuery", min_length=1
    )
    context: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None


class GetMetadataArguments(_ToolArguments):
    table_name: Optional[str] = Field(default=None, alias="tableName")


def _parse_arguments(model: type[BaseModel], arguments: Any) -> Any:
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ProtocolValidationError("Tool arguments must be a JSON object")
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        raise ProtocolValidationError(_format_validation_error(e)) from e


def _table_payload(table: StoredTable) -> dict[str, Any]:
    return {
        "name": table.name,
        "display_name": table.display_name,
        "description": table.description,
        "columns": [
            {
                "name": col.name,
                "data_type": col.data_type,
                "is_nullable": col.is_nullable,
                "display_name": col.display_name,
                "description": col.description,
            }
            for col in table.columns
        ],
    }


ToolHandler = Callable[[Any], Awaitable[Any]]


class SqlBridgeServer:
    """Protocol façade over the metadata repository and core services.

    Holds no per-client state: ``initialize`` issues no session and every
    other call is answered on its own.
    """

    def __init__(
        self,
        repository: MetadataRepository,
        query_service: QueryService,
        schema_service: SchemaService,
        generation_service: SqlGenerationService,
        cipher: Optional[SecretCipher] = None,
        config: Optional[ServerConfig] = None,
    ):
        self.repository = repository
        self.query_service = query_service
        self.schema_service = schema_service
        self.generation_service = generation_service
        self.cipher = cipher or PassthroughCipher()
        self.config = config or ServerConfig()
        self._tool_handlers: dict[str, ToolHandler] = {
            "list_connections": self.handle_list_connections,
            "get_schema": self.handle_get_schema,
            "execute_query": self.handle_execute_query,
            "analyze_query": self.handle_analyze_query,
            "get_metadata": self.handle_get_metadata,
        }
        self._resource_readers: dict[str, Callable[[], Awaitable[Any]]] = {
            "schema": self._read_schema_resource,
            "connections": self._read_connections_resource,
            "queries": self._read_queries_resource,
        }

    @classmethod
    def create(
        cls,
        repository: MetadataRepository,
        config: Optional[ServerConfig] = None,
        connector_factory: Optional[ConnectorFactory] = None,
        llm_factory: Optional[LlmClientFactory] = None,
        cipher: Optional[SecretCipher] = None,
    ) -> "SqlBridgeServer":
        """Wire the core services from their factories."""
        connector_factory = connector_factory or ConnectorFactory()
        return cls(
            repository=repository,
            query_service=QueryService(connector_factory),
            schema_service=SchemaService(connector_factory),
            generation_service=SqlGenerationService(llm_factory or LlmClientFactory()),
            cipher=cipher,
            config=config,
        )

    @property
    def server_info(self) -> ServerInfo:
        return ServerInfo(
            name=self.config.name,
            version=self.config.version,
            description=self.config.description,
        )

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities(
            resources=list(RESOURCE_NAMES) if self.config.enable_resources else [],
            tools=list(TOOL_NAMES) if self.config.enable_tools else [],
        )

    # Message handlers
    async def initialize(self, request: InitializeRequest) -> InitializeResponse:
        logger.info(
            f"Initialize from {request.client_info.name or 'unknown client'} "
            f"{request.client_info.version} (protocol {request.protocol_version})"
        )
        return InitializeResponse(
            id=request.id,
            capabilities=self.capabilities,
            server_info=self.server_info,
        )

    async def list_resources(
        self, request: Optional[ListResourcesRequest] = None
    ) -> ListResourcesResponse:
        request = request or ListResourcesRequest()
        if not self.config.enable_resources:
            return ListResourcesResponse(id=request.id)

        descriptions = {
            "schema": "Live schema of every registered connection",
            "connections": "Registered database connections",
            "queries": f"Latest {self.config.history_limit} executed queries",
        }
        return ListResourcesResponse(
            id=request.id,
            resources=[
                Resource(
                    uri=self.config.resource_uri(name),
                    name=name,
                    description=descriptions[name],
                    mime_type="application/json",
                )
                for name in RESOURCE_NAMES
            ],
        )

    def _resource_name(self, uri: str) -> str:
        prefix = f"{self.config.uri_scheme}://"
        normalized = uri.strip().rstrip("/")
        if not self.config.enable_resources or not normalized.lower().startswith(
            prefix
        ):
            raise UnknownResourceError(uri)
        name = normalized[len(prefix) :]
        if name not in self._resource_readers:
            raise UnknownResourceError(uri)
        return name

    async def read_resource(self, request: ReadResourceRequest) -> ReadResourceResponse:
        """
        Raises:
            UnknownResourceError: If the URI names no enabled resource
        """
        name = self._resource_name(request.uri)
        contents = await self._resource_readers[name]()
        return ReadResourceResponse(
            id=request.id,
            uri=self.config.resource_uri(name),
            mime_type="application/json",
            contents=contents,
        )

    async def list_tools(
        self, request: Optional[ListToolsRequest] = None
    ) -> ListToolsResponse:
        request = request or ListToolsRequest()
        if not self.config.enable_tools:
            return ListToolsResponse(id=request.id)
        return ListToolsResponse(id=request.id, tools=self.tool_definitions())

    async def call_tool(self, request: CallToolRequest) -> CallToolResponse:
        """Dispatch a tool call. Failures come back as ``is_error`` responses."""
        handler = self._tool_handlers.get(request.name)
        if handler is None or not self.config.enable_tools:
            error = UnknownToolError(request.name)
            logger.warning(error.message)
            return CallToolResponse(
                id=request.id, name=request.name, is_error=True, error=error.message
            )

        logger.info(f"Calling tool {request.name}")
        try:
            result = await handler(request.arguments)
        except SqlBridgeError as e:
            logger.warning(f"Tool {request.name} failed: {e.message}")
            return CallToolResponse(
                id=request.id, name=request.name, is_error=True, error=e.message
            )
        except Exception as e:
            logger.error(f"Error calling tool {request.name}: {e}", exc_info=True)
            return CallToolResponse(
                id=request.id, name=request.name, is_error=True, error=str(e)
            )

        return CallToolResponse(id=request.id, name=request.name, result=result)

    async def handle(self, message: BaseModel) -> BaseModel:
        """
        Answer any request message with its response message.

        Unknown resources and other protocol failures become ``ErrorMessage``.
        """
        request_id = getattr(message, "id", None)
        try:
            if isinstance(message, InitializeRequest):
                return await self.initialize(message)
            if isinstance(message, ListResourcesRequest):
                return await self.list_resources(message)
            if isinstance(message, ReadResourceRequest):
                return await self.read_resource(message)
            if isinstance(message, ListToolsRequest):
                return await self.list_tools(message)
            if isinstance(message, CallToolRequest):
                return await self.call_tool(message)
        except SqlBridgeError as e:
            return ErrorMessage(id=request_id, error=e.code, message=e.message)

        return ErrorMessage(
            id=request_id,
            error="invalid_message",
            message=f"Unsupported message type: {getattr(message, 'type', None)}",
        )

    # Tool definitions
    def tool_definitions(self) -> list[Tool]:
        return [
            self._create_list_connections_tool(),
            self._create_get_schema_tool(),
            self._create_execute_query_tool(),
            self._create_analyze_query_tool(),
            self._create_get_metadata_tool(),
        ]

    @staticmethod
    def _connection_id_property() -> dict[str, Any]:
        return {
            "type": "string",
            "format": "uuid",
            "description": "Identifier of a registered connection",
        }

    def _create_list_connections_tool(self) -> Tool:
        return Tool(
            name="list_connections",
            description="List registered database connections and their health",
            input_schema={"type": "object", "properties": {}, "required": []},
        )

    def _create_get_schema_tool(self) -> Tool:
        return Tool(
            name="get_schema",
            description=(
                "Get the tables and columns of a connection. Uses stored metadata "
                "unless refresh is true, which reads the live database and stores it"
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "connectionId": self._connection_id_property(),
                    "refresh": {
                        "type": "boolean",
                        "description": "Read the live schema and update stored metadata",
                        "default": False,
                    },
                },
                "required": ["connectionId"],
            },
        )

    def _create_execute_query_tool(self) -> Tool:
        return Tool(
            name="execute_query",
            description=(
                "Execute a read-only SQL query (SELECT or WITH). A row limit is "
                "added in the connection's dialect when the query has none"
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "connectionId": self._connection_id_property(),
                    "sql": {"type": "string", "description": "SQL query to execute"},
                    "maxRows": {
                        "type": "integer",
                        "description": (
                            "Maximum number of rows to return "
                            f"(default: {self.config.default_max_rows})"
                        ),
                        "default": self.config.default_max_rows,
                        "minimum": 1,
                    },
                },
                "required": ["connectionId", "sql"],
            },
        )

    def _create_analyze_query_tool(self) -> Tool:
        return Tool(
            name="analyze_query",
            description="Analyze a natural language query and generate SQL",
            input_schema={
                "type": "object",
                "properties": {
                    "connectionId": self._connection_id_property(),
                    "naturalLanguageQuery": {
                        "type": "string",
                        "description": "Question to answer with SQL",
                    },
                    "context": {
                        "type": "string",
                        "description": "Additional business context",
                    },
                    "provider": {
                        "type": "string",
                        "description": "LLM provider (openai, azure, ollama, claude, gemini)",
                    },
                    "model": {"type": "string", "description": "Model override"},
                },
                "required": ["connectionId", "naturalLanguageQuery"],
            },
        )

    def _create_get_metadata_tool(self) -> Tool:
        return Tool(
            name="get_metadata",
            description="Get curated metadata for tables and columns",
            input_schema={
                "type": "object",
                "properties": {
                    "connectionId": self._connection_id_property(),
                    "tableName": {
                        "type": "string",
                        "description": "Restrict to one table",
                    },
                },
                "required": ["connectionId"],
            },
        )

    # Tool handlers
    async def _require_connection(self, connection_id: uuid.UUID) -> ConnectionRecord:
        connection = await self.repository.get_connection(connection_id)
        if connection is None:
            raise NotFoundError(f"Connection not found: {connection_id}")
        return connection

    def _connection_string(self, connection: ConnectionRecord) -> str:
        return self.cipher.decrypt(connection.connection_string_encrypted)

    async def handle_list_connections(self, arguments: Any) -> list[dict[str, Any]]:
        return [c.summary() for c in await self.repository.list_connections()]

    async def handle_get_schema(self, arguments: Any) -> dict[str, Any]:
        args = _parse_arguments(GetSchemaArguments, arguments)
        connection = await self._require_connection(args.connection_id)

        if not args.refresh:
            tables = await self.repository.list_tables(connection.id)
            return {
                "connection_id": str(connection.id),
                "source": "stored",
                "tables": [_table_payload(t) for t in tables],
            }

        snapshot = await self.schema_service.read_schema(
            self._connection_string(connection), connection.provider
        )
        await self.repository.save_schema(connection.id, snapshot)
        return {
            "connection_id": str(connection.id),
            "source": "live",
            **snapshot.model_dump(mode="json"),
        }

    async def handle_execute_query(self, arguments: Any) -> dict[str, Any]:
        args = _parse_arguments(ExecuteQueryArguments, arguments)
        connection = await self._require_connection(args.connection_id)
        max_rows = args.max_rows or self.config.default_max_rows

        history = QueryHistoryEntry(
            connection_id=connection.id,
            prompt="execute_query tool",
            sql_text=args.sql,
        )
        try:
            # Guard the caller's text before the limit rewrite touches it
            reason = check_read_only(args.sql)
            if reason is not None:
                raise UnsafeQueryError(reason)

            sql = self.query_service.apply_row_limit(
                args.sql, connection.provider, max_rows
            )
            history.sql_text = sql
            result = await self.query_service.execute(
                self._connection_string(connection),
                sql,
                QueryOptions(
                    timeout_seconds=self.config.query_timeout_seconds,
                    max_rows=max_rows,
                ),
                connection.provider,
            )
        except Exception as e:
            history.error_text = (
                e.message if isinstance(e, SqlBridgeError) else str(e) or type(e).__name__
            )
            await self.repository.add_query_history(history)
            raise

        history.duration_ms = result.duration_ms
        history.row_count = result.row_count
        await self.repository.add_query_history(history)

        return {
            "sql": result.query,
            "columns": result.column_names,
            "rows": result.rows,
            "row_count": result.row_count,
            "duration_ms": result.duration_ms,
            "truncated": result.truncated,
        }

    async def handle_analyze_query(self, arguments: Any) -> dict[str, Any]:
        args = _parse_arguments(AnalyzeQueryArguments, arguments)
        connection = await self._require_connection(args.connection_id)
        tables = await self.repository.list_tables(connection.id)

        generated = await self.generation_service.generate(
            args.natural_language_query,
            connection.provider,
            tables,
            context=args.context,
            provider=args.provider,
            model=args.model,
        )
        return {
            "natural_language_query": args.natural_language_query,
            "context": args.context,
            "suggested_sql": generated.sql,
            "provider": generated.provider,
            "model": generated.model,
            "is_read_only": generated.is_read_only,
            "rejection_reason": generated.rejection_reason,
            "table_count": len(tables),
        }

    async def handle_get_metadata(self, arguments: Any) -> list[dict[str, Any]]:
        args = _parse_arguments(GetMetadataArguments, arguments)
        connection = await self._require_connection(args.connection_id)
        tables = await self.repository.list_tables(connection.id)

        if args.table_name:
            wanted = args.table_name.lower()
            tables = [t for t in tables if t.name.lower() == wanted]
            if not tables:
                raise NotFoundError(f"Table not found: {args.table_name}")

        return [
            {
                "table_name": t.name,
                "display_name": t.display_name,
                "description": t.description,
                "columns": [
                    {
                        "column_name": c.name,
                        "data_type": c.data_type,
                        "is_nullable": c.is_nullable,
                        "display_name": c.display_name,
                        "description": c.description,
                    }
                    for c in t.columns
                ],
            }
            for t in tables
        ]

    # Resource readers
    async def _read_schema_resource(self) -> list[dict[str, Any]]:
        entries = []
        for connection in await self.repository.list_connections():
            entry: dict[str, Any] = {
                "connection_id": str(connection.id),
                "name": connection.name,
                "provider": connection.provider.display_name,
            }
            try:
                snapshot = await self.schema_service.read_schema(
                    self._connection_string(connection), connection.provider
                )
            except SqlBridgeError as e:
                # One unreachable backend must not hide the others
                logger.warning(f"Schema read failed for {connection.name}: {e.message}")
                entry["error"] = e.message
            else:
                entry.update(snapshot.model_dump(mode="json"))
            entries.append(entry)
        return entries

    async def _read_connections_resource(self) -> list[dict[str, Any]]:
        return [c.summary() for c in await self.repository.list_connections()]

    async def _read_queries_resource(self) -> list[dict[str, Any]]:
        names = {c.id: c.name for c in await self.repository.list_connections()}
        entries = await self.repository.list_query_history(self.config.history_limit)
        return [
            {
                **entry.model_dump(mode="json"),
                "connection_name": names.get(entry.connection_id),
            }
            for entry in entries
        ]


def build_mcp_server(bridge: SqlBridgeServer) -> Server:
    """Register the bridge's tools and resources on an MCP SDK server."""
    server = Server(bridge.config.name)

    @server.list_tools()
    async def list_tools() -> list[mcp_types.Tool]:
        response = await bridge.list_tools()
        return [
            mcp_types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
            )
            for tool in response.tools
        ]

    @server.call_tool()
    async def call_tool(
        name: str, arguments: dict[str, Any]
    ) -> list[mcp_types.TextContent]:
        response = await bridge.call_tool(
            CallToolRequest(name=name, arguments=arguments or {})
        )
        if response.is_error:
            raise ValueError(response.error)

        text = truncate_json_response(
            dumps(response.result, indent=True),
            TOOL_RESPONSE_LIMITS.get(name, MAX_RESPONSE_EXECUTE_QUERY),
        )
        return [mcp_types.TextContent(type="text", text=text)]

    @server.list_resources()
    async def list_resources() -> list[mcp_types.Resource]:
        response = await bridge.list_resources()
        return [
            mcp_types.Resource(
                uri=AnyUrl(resource.uri),
                name=resource.name,
                description=resource.description,
                mimeType=resource.mime_type,
            )
            for resource in response.resources
        ]

    @server.read_resource()
    async def read_resource(uri: AnyUrl) -> list[ReadResourceContents]:
        response = await bridge.read_resource(ReadResourceRequest(uri=str(uri)))
        return [
            ReadResourceContents(
                content=dumps(response.contents, indent=True),
                mime_type=response.mime_type,
            )
        ]

    return server


def load_repository(path: Optional[Union[str, os.PathLike]] = None) -> MetadataRepository:
    """Repository from ``SQLBRIDGE_METADATA_FILE`` (or ``path``), else empty."""
    path = path or os.getenv("SQLBRIDGE_METADATA_FILE")
    if path:
        return InMemoryMetadataRepository.load_file(path)
    logger.warning("SQLBRIDGE_METADATA_FILE not set; starting with no connections")
    return InMemoryMetadataRepository()


def create_server_from_env() -> SqlBridgeServer:
    config = ServerConfig.from_env()
    bridge = SqlBridgeServer.create(load_repository(), config=config)
    logger.info(
        f"Initialized {config.name} {config.version} "
        f"({len(bridge.capabilities.tools)} tools, "
        f"{len(bridge.capabilities.resources)} resources)"
    )
    return bridge


def configure_logging() -> None:
    load_dotenv()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())


async def main() -> None:
    """Main entry point for the stdio MCP server."""
    bridge = create_server_from_env()
    server = build_mcp_server(bridge)

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def cli_entry() -> None:
    """
    Synchronous entry point for the ``sqlbridge-mcp`` console script.
    """
    configure_logging()

    # Windows-specific event loop policy
    if os.name == "nt":
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())  # type: ignore[attr-defined]

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    cli_entry()
