"""Unit tests for protocol message (de)serialization."""

import orjson
import pytest
from pydantic import ValidationError

from sqlbridge_mcp.models.protocol import (
    PROTOCOL_VERSION,
    CallToolRequest,
    CallToolResponse,
    Capabilities,
    ClientInfo,
    ErrorMessage,
    InitializeRequest,
    InitializeResponse,
    ListResourcesResponse,
    ListToolsResponse,
    ReadResourceRequest,
    ReadResourceResponse,
    Resource,
    ServerInfo,
    Tool,
    dump_message,
    parse_message,
    parse_request,
)

RESPONSES = [
    InitializeResponse(
        id="1",
        capabilities=Capabilities(resources=["schema"], tools=["execute_query"]),
        server_info=ServerInfo(name="s", version="1", description="d"),
    ),
    ListResourcesResponse(
        id="2",
        resources=[Resource(uri="sqlbridge://schema", name="schema")],
    ),
    ReadResourceResponse(
        id="3",
        uri="sqlbridge://connections",
        contents=[{"id": "abc", "is_healthy": True, "nested": {"n": [1, 2.5, None]}}],
    ),
    ListToolsResponse(
        id="4",
        tools=[
            Tool(
                name="get_schema",
                description="x",
                input_schema={"type": "object", "required": ["connectionId"]},
            )
        ],
    ),
    CallToolResponse(id="5", name="execute_query", result={"row_count": 3}),
    CallToolResponse(name="nope", is_error=True, error="Unknown tool: nope"),
    ErrorMessage(id="6", error="unknown_resource", message="Unknown resource: x"),
]


class TestRoundTrip:
    @pytest.mark.parametrize("message", RESPONSES, ids=lambda m: m.type)
    def test_response_round_trip(self, message):
        parsed = parse_message(dump_message(message))
        assert type(parsed) is type(message)
        assert parsed == message

    def test_wire_field_names_are_snake_case(self):
        wire = orjson.loads(
            dump_message(InitializeRequest(client_info=ClientInfo(name="c")))
        )
        assert set(wire) == {
            "type",
            "id",
            "protocol_version",
            "capabilities",
            "client_info",
        }
        assert wire["protocol_version"] == PROTOCOL_VERSION

        tool_wire = orjson.loads(dump_message(RESPONSES[3]))
        assert "input_schema" in tool_wire["tools"][0]
        resource_wire = orjson.loads(dump_message(RESPONSES[1]))
        assert resource_wire["resources"][0]["mime_type"] == "application/json"

    def test_call_tool_response_always_carries_is_error(self):
        wire = orjson.loads(dump_message(RESPONSES[4]))
        assert wire["is_error"] is False
        assert wire["error"] is None


class TestParsing:
    def test_discriminator_selects_type(self):
        message = parse_message({"type": "read_resource", "uri": "sqlbridge://schema"})
        assert isinstance(message, ReadResourceRequest)

    def test_parse_from_str(self):
        message = parse_request('{"type": "call_tool", "name": "list_connections"}')
        assert isinstance(message, CallToolRequest)
        assert message.arguments == {}

    def test_request_parser_rejects_responses(self):
        with pytest.raises(ValidationError):
            parse_request({"type": "error", "error": "x"})

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_message({"type": "subscribe"})

    def test_missing_required_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_message({"type": "read_resource"})

    def test_invalid_json_rejected(self):
        with pytest.raises(ValidationError):
            parse_message(b"{not json")

    def test_arguments_accept_any_json_tree(self):
        message = parse_request(
            {
                "type": "call_tool",
                "name": "execute_query",
                "arguments": {"sql": "SELECT 1", "maxRows": 5, "flags": [True, None]},
            }
        )
        assert message.arguments["flags"] == [True, None]
