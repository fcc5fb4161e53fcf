"""Typed errors raised across connectors, LLM clients and the protocol layer."""

from typing import Optional


class SqlBridgeError(Exception):
    """Base class for every error the core raises on purpose."""

    code = "sqlbridge_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConnectivityError(SqlBridgeError):
    """Backend unreachable or the connectivity check failed."""

    code = "connectivity_error"


class UnsafeQueryError(SqlBridgeError):
    """Query rejected by the read-only guard before execution."""

    code = "unsafe_query"

    def __init__(self, reason: str):
        super().__init__(f"Unsafe query blocked: {reason}")
        self.reason = reason


class UnsupportedCapabilityError(SqlBridgeError):
    """Unregistered database kind or LLM provider."""

    code = "unsupported_capability"

    def __init__(self, kind: str, value: str, supported: list[str]):
        super().__init__(
            f"Unsupported {kind}: {value}. Supported: {', '.join(supported)}"
        )
        self.value = value
        self.supported = supported


class MisconfigurationError(SqlBridgeError):
    """A required provider setting is absent."""

    code = "misconfiguration"

    def __init__(self, setting: str, provider: str):
        super().__init__(
            f"{provider} is not configured: set the {setting} environment variable"
        )
        self.setting = setting
        self.provider = provider


class ProtocolValidationError(SqlBridgeError):
    """Malformed or missing tool arguments."""

    code = "validation_error"


class UnknownResourceError(ProtocolValidationError):
    code = "unknown_resource"

    def __init__(self, uri: str):
        super().__init__(f"Unknown resource: {uri}")
        self.uri = uri


class UnknownToolError(ProtocolValidationError):
    code = "unknown_tool"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class NotFoundError(SqlBridgeError):
    """Referenced record is missing from the metadata repository."""

    code = "not_found"


class QueryExecutionError(SqlBridgeError):
    code = "query_failed"


class QueryTimeoutError(QueryExecutionError):
    code = "query_timeout"


class LlmUpstreamError(SqlBridgeError):
    """Non-success response from an LLM backend."""

    code = "upstream_error"

    def __init__(self, provider: str, status_code: int, body: str):
        super().__init__(f"{provider} error {status_code}: {body}")
        self.provider = provider
        self.status_code = status_code
        self.body = body


class LlmTransportError(SqlBridgeError):
    """LLM backend unreachable: connection, timeout or protocol failure."""

    code = "upstream_unreachable"

    def __init__(self, provider: str, detail: str):
        super().__init__(f"{provider} request failed: {detail}")
        self.provider = provider


class LlmResponseError(SqlBridgeError):
    """LLM backend answered but the payload lacks the expected fields."""

    code = "upstream_response_invalid"


class ProtocolCallError(SqlBridgeError):
    """Protocol call failed on the client side (HTTP status or deserialization)."""

    code = "protocol_call_failed"

    def __init__(
        self, message: str, status_code: Optional[int] = None, body: str = ""
    ):
        super().__init__(f"Protocol call failed: {message}")
        self.status_code = status_code
        self.body = body


class ClientNotInitializedError(SqlBridgeError):
    code = "client_not_initialized"

    def __init__(self) -> None:
        super().__init__("Protocol client not initialized. Call initialize() first.")
