"""Query execution options and result models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QueryOptions(BaseModel):
    """Execution limits passed into a connector call."""

    model_config = ConfigDict(frozen=True)

    timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=3600,
        description="Statement execution timeout in seconds",
    )
    max_rows: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Maximum number of rows read from the result cursor",
    )


class ResultColumn(BaseModel):
    """A named result column with the Python type observed for its values."""

    name: str
    type_name: str = Field(default="unknown")


class QueryResult(BaseModel):
    """Result of a query execution."""

    query: str = Field(..., description="Executed SQL query")
    columns: list[ResultColumn] = Field(..., description="Columns in order")
    rows: list[dict[str, Any]] = Field(..., description="Result rows as dictionaries")
    row_count: int = Field(..., description="Number of rows returned")
    duration_ms: float = Field(..., description="Wall-clock execution time")
    truncated: bool = Field(
        default=False, description="Whether reading stopped at the row cap"
    )

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]
