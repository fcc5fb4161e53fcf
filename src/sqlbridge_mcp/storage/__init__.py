"""Metadata storage and secret handling interfaces."""

from sqlbridge_mcp.storage.cipher import PassthroughCipher, SecretCipher
from sqlbridge_mcp.storage.repository import (
    InMemoryMetadataRepository,
    MetadataRepository,
)

__all__ = [
    "MetadataRepository",
    "InMemoryMetadataRepository",
    "SecretCipher",
    "PassthroughCipher",
]
