"""Server configuration model."""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class ServerConfig(BaseModel):
    """Identity, feature flags and limits of the protocol server."""

    name: str = Field(default="sqlbridge-mcp", description="Server name")
    version: str = Field(default="1.0.0", description="Server version")
    description: str = Field(
        default="Schema introspection and read-only SQL over the model context protocol",
    )
    uri_scheme: str = Field(
        default="sqlbridge", description="Scheme of resource URIs (scheme://schema)"
    )
    enable_resources: bool = Field(default=True)
    enable_tools: bool = Field(default=True)
    default_max_rows: int = Field(
        default=100,
        ge=1,
        le=100_000,
        description="Row cap for execute_query when the caller gives none",
    )
    query_timeout_seconds: int = Field(default=30, ge=1, le=3600)
    history_limit: int = Field(
        default=100, ge=1, le=10_000, description="Entries in the queries resource"
    )
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000, ge=1, le=65535)

    @field_validator("uri_scheme")
    @classmethod
    def validate_scheme(cls, v: str) -> str:
        v = v.strip().rstrip(":/")
        if not v or not v.replace("-", "").replace(".", "").isalnum():
            raise ValueError(f"Invalid URI scheme: {v!r}")
        return v.lower()

    def resource_uri(self, name: str) -> str:
        return f"{self.uri_scheme}://{name}"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Build configuration from ``SQLBRIDGE_*`` environment variables."""
        env = os.environ if env is None else env
        values: dict = {}

        for field, key in (
            ("name", "SQLBRIDGE_SERVER_NAME"),
            ("version", "SQLBRIDGE_SERVER_VERSION"),
            ("description", "SQLBRIDGE_SERVER_DESCRIPTION"),
            ("uri_scheme", "SQLBRIDGE_URI_SCHEME"),
            ("host", "SQLBRIDGE_HOST"),
        ):
            if env.get(key):
                values[field] = env[key]

        for field, key in (
            ("default_max_rows", "SQLBRIDGE_MAX_ROWS"),
            ("query_timeout_seconds", "SQLBRIDGE_QUERY_TIMEOUT"),
            ("history_limit", "SQLBRIDGE_HISTORY_LIMIT"),
            ("port", "SQLBRIDGE_PORT"),
        ):
            if env.get(key):
                values[field] = int(env[key])

        values["enable_resources"] = _env_flag(
            env.get("SQLBRIDGE_ENABLE_RESOURCES"), True
        )
        values["enable_tools"] = _env_flag(env.get("SQLBRIDGE_ENABLE_TOOLS"), True)

        return cls(**values)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "sqlbridge-mcp",
                    "version": "1.0.0",
                    "uri_scheme": "sqlbridge",
                    "enable_resources": True,
                    "enable_tools": True,
                    "default_max_rows": 100,
                }
            ]
        }
    }
