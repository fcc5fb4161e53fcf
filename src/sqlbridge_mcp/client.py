"""HTTP client for the protocol server."""

import logging
import uuid
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from sqlbridge_mcp.errors import ClientNotInitializedError, ProtocolCallError
from sqlbridge_mcp.models.protocol import (
    CallToolRequest,
    CallToolResponse,
    ClientInfo,
    InitializeRequest,
    InitializeResponse,
    ListResourcesRequest,
    ListResourcesResponse,
    ListToolsRequest,
    ListToolsResponse,
    ReadResourceRequest,
    ReadResourceResponse,
    dump_message,
    parse_message,
)

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class ProtocolClient:
    """
    Client posting one protocol message per HTTP request.

    ``initialize`` must succeed before any other call. Each call opens its
    own ``httpx.AsyncClient``; ``transport`` lets tests route requests to an
    in-process app (``httpx.ASGITransport``) or a ``MockTransport``.
    """

    def __init__(
        self,
        server_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.server_url = server_url
        self.timeout = timeout
        self._transport = transport
        self.server_info: Optional[InitializeResponse] = None

    @property
    def is_initialized(self) -> bool:
        return self.server_info is not None

    async def initialize(
        self, client_info: Optional[ClientInfo] = None
    ) -> InitializeResponse:
        request = InitializeRequest(client_info=client_info or ClientInfo())
        response = await self._send(request, InitializeResponse)
        self.server_info = response
        logger.info(
            f"Initialized against {response.server_info.name} "
            f"{response.server_info.version}"
        )
        return response

    async def list_resources(self) -> ListResourcesResponse:
        self._ensure_initialized()
        return await self._send(ListResourcesRequest(), ListResourcesResponse)

    async def read_resource(self, uri: str) -> ReadResourceResponse:
        self._ensure_initialized()
        return await self._send(ReadResourceRequest(uri=uri), ReadResourceResponse)

    async def list_tools(self) -> ListToolsResponse:
        self._ensure_initialized()
        return await self._send(ListToolsRequest(), ListToolsResponse)

    async def call_tool(
        self, name: str, arguments: Optional[dict[str, Any]] = None
    ) -> CallToolResponse:
        self._ensure_initialized()
        return await self._send(
            CallToolRequest(name=name, arguments=arguments or {}), CallToolResponse
        )

    def _ensure_initialized(self) -> None:
        if not self.is_initialized:
            raise ClientNotInitializedError()

    async def _send(self, message: BaseModel, expected: type[ResponseT]) -> ResponseT:
        message.id = uuid.uuid4().hex
        logger.debug(f"Sending {message.type} to {self.server_url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.server_url,
                    content=dump_message(message),
                    headers={
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            raise ProtocolCallError(f"{message.type} request failed: {e}") from e

        if not response.is_success:
            raise ProtocolCallError(
                f"{message.type} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            parsed = parse_message(response.content)
        except ValidationError as e:
            raise ProtocolCallError(
                f"could not deserialize {expected.__name__}: {e.error_count()} errors",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(parsed, expected):
            raise ProtocolCallError(
                f"expected {expected.__name__}, got {parsed.type}",
                status_code=response.status_code,
                body=response.text,
            )
        return parsed
