"""Records held by the external metadata repository."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from sqlbridge_mcp.models.database import DbKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionRecord(BaseModel):
    """A registered database connection."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    provider: DbKind
    connection_string_encrypted: str = Field(..., repr=False)
    created_at: datetime = Field(default_factory=_utcnow)
    last_health: Optional[datetime] = None
    is_healthy: bool = False

    def summary(self) -> dict:
        """Public view without the connection secret."""
        return {
            "id": str(self.id),
            "name": self.name,
            "provider": self.provider.display_name,
            "is_healthy": self.is_healthy,
            "last_health": self.last_health.isoformat() if self.last_health else None,
            "created_at": self.created_at.isoformat(),
        }


class StoredColumn(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    table_id: Optional[uuid.UUID] = None
    name: str
    data_type: str
    is_nullable: bool = True
    display_name: Optional[str] = None
    description: Optional[str] = None


class StoredTable(BaseModel):
    """A table selected for a connection, with user-curated annotations."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    connection_id: uuid.UUID
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    columns: list[StoredColumn] = Field(default_factory=list)


class QueryHistoryEntry(BaseModel):
    """One executed query, successful or not."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    connection_id: uuid.UUID
    prompt: str = ""
    sql_text: str
    executed_at: datetime = Field(default_factory=_utcnow)
    duration_ms: float = 0.0
    row_count: int = 0
    error_text: Optional[str] = None
