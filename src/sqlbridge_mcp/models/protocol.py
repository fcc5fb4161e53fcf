"""Protocol message schema.

Every message is a pydantic model carrying a ``type`` discriminator and an
optional correlation ``id``. Field names on the wire are snake_case, exactly
as declared here. Tool arguments, tool results and resource contents are
opaque JSON values so tool-specific shapes never leak into these types.
"""

from typing import Annotated, Literal, Optional, Union

import orjson
from pydantic import BaseModel, Field, JsonValue, TypeAdapter

PROTOCOL_VERSION = "2024-11-05"


class MessageType:
    """Discriminator values for every message kind."""

    INITIALIZE = "initialize"
    INITIALIZE_RESPONSE = "initialize_response"
    LIST_RESOURCES = "list_resources"
    LIST_RESOURCES_RESPONSE = "list_resources_response"
    READ_RESOURCE = "read_resource"
    READ_RESOURCE_RESPONSE = "read_resource_response"
    LIST_TOOLS = "list_tools"
    LIST_TOOLS_RESPONSE = "list_tools_response"
    CALL_TOOL = "call_tool"
    CALL_TOOL_RESPONSE = "call_tool_response"
    ERROR = "error"


class Capabilities(BaseModel):
    resources: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)


class ClientInfo(BaseModel):
    name: str = ""
    version: str = ""


class ServerInfo(BaseModel):
    name: str = ""
    version: str = ""
    description: str = ""


class Resource(BaseModel):
    """A URI-addressed readable document."""

    uri: str
    name: str
    description: str = ""
    mime_type: str = "application/json"


class Tool(BaseModel):
    """A named callable operation with a JSON-Schema argument contract."""

    name: str
    description: str = ""
    input_schema: JsonValue = Field(default_factory=dict)


class InitializeRequest(BaseModel):
    type: Literal["initialize"] = MessageType.INITIALIZE
    id: Optional[str] = None
    protocol_version: str = PROTOCOL_VERSION
    capabilities: Capabilities = Field(default_factory=Capabilities)
    client_info: ClientInfo = Field(default_factory=ClientInfo)


class InitializeResponse(BaseModel):
    type: Literal["initialize_response"] = MessageType.INITIALIZE_RESPONSE
    id: Optional[str] = None
    capabilities: Capabilities = Field(default_factory=Capabilities)
    server_info: ServerInfo = Field(default_factory=ServerInfo)


class ListResourcesRequest(BaseModel):
    type: Literal["list_resources"] = MessageType.LIST_RESOURCES
    id: Optional[str] = None


class ListResourcesResponse(BaseModel):
    type: Literal["list_resources_response"] = MessageType.LIST_RESOURCES_RESPONSE
    id: Optional[str] = None
    resources: list[Resource] = Field(default_factory=list)


class ReadResourceRequest(BaseModel):
    type: Literal["read_resource"] = MessageType.READ_RESOURCE
    id: Optional[str] = None
    uri: str


class ReadResourceResponse(BaseModel):
    type: Literal["read_resource_response"] = MessageType.READ_RESOURCE_RESPONSE
    id: Optional[str] = None
    uri: str
    mime_type: str = "application/json"
    contents: JsonValue = None


class ListToolsRequest(BaseModel):
    type: Literal["list_tools"] = MessageType.LIST_TOOLS
    id: Optional[str] = None


class ListToolsResponse(BaseModel):
    type: Literal["list_tools_response"] = MessageType.LIST_TOOLS_RESPONSE
    id: Optional[str] = None
    tools: list[Tool] = Field(default_factory=list)


class CallToolRequest(BaseModel):
    type: Literal["call_tool"] = MessageType.CALL_TOOL
    id: Optional[str] = None
    name: str
    arguments: JsonValue = Field(default_factory=dict)


class CallToolResponse(BaseModel):
    type: Literal["call_tool_response"] = MessageType.CALL_TOOL_RESPONSE
    id: Optional[str] = None
    name: str
    result: JsonValue = Field(default_factory=dict)
    is_error: bool = False
    error: Optional[str] = None


class ErrorMessage(BaseModel):
    type: Literal["error"] = MessageType.ERROR
    id: Optional[str] = None
    error: str
    message: Optional[str] = None
    data: JsonValue = None


RequestMessage = Annotated[
    Union[
        InitializeRequest,
        ListResourcesRequest,
        ReadResourceRequest,
        ListToolsRequest,
        CallToolRequest,
    ],
    Field(discriminator="type"),
]

ResponseMessage = Annotated[
    Union[
        InitializeResponse,
        ListResourcesResponse,
        ReadResourceResponse,
        ListToolsResponse,
        CallToolResponse,
        ErrorMessage,
    ],
    Field(discriminator="type"),
]

ProtocolMessage = Annotated[
    Union[
        InitializeRequest,
        InitializeResponse,
        ListResourcesRequest,
        ListResourcesResponse,
        ReadResourceRequest,
        ReadResourceResponse,
        ListToolsRequest,
        ListToolsResponse,
        CallToolRequest,
        CallToolResponse,
        ErrorMessage,
    ],
    Field(discriminator="type"),
]

_message_adapter: TypeAdapter = TypeAdapter(ProtocolMessage)
_request_adapter: TypeAdapter = TypeAdapter(RequestMessage)


def parse_message(data: Union[bytes, str, dict]):
    """
    Parse any protocol message.

    Raises:
        pydantic.ValidationError: If the payload matches no message kind
    """
    if isinstance(data, dict):
        return _message_adapter.validate_python(data)
    return _message_adapter.validate_json(data)


def parse_request(data: Union[bytes, str, dict]):
    """Parse a request message (the kinds a server accepts)."""
    if isinstance(data, dict):
        return _request_adapter.validate_python(data)
    return _request_adapter.validate_json(data)


def dump_message(message: BaseModel) -> bytes:
    """Serialize a message to its JSON wire form."""
    return orjson.dumps(message.model_dump(mode="json"))
