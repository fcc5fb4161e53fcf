"""Schema snapshot models produced by connector schema reads."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SchemaColumn(BaseModel):
    """A column as reported by the backend catalog."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Backend-reported type string")
    is_nullable: bool = Field(..., description="Whether the column accepts NULL")


class SchemaTable(BaseModel):
    """A table or view with its ordered columns."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Table name, schema-qualified when needed")
    columns: tuple[SchemaColumn, ...] = Field(default_factory=tuple)
    is_view: bool = Field(default=False, description="Whether this is a view")

    def get_column(self, name: str) -> Optional[SchemaColumn]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


class SchemaRelation(BaseModel):
    """A foreign key edge from a referencing column to a referenced column."""

    model_config = ConfigDict(frozen=True)

    from_table: str
    from_column: str
    to_table: str
    to_column: str


class SchemaSnapshot(BaseModel):
    """Immutable result of one schema read."""

    tables: tuple[SchemaTable, ...] = Field(default_factory=tuple)
    relations: Optional[tuple[SchemaRelation, ...]] = Field(
        default=None, description="Foreign key relations, if enumerated"
    )

    @property
    def table_count(self) -> int:
        return len(self.tables)

    @property
    def column_count(self) -> int:
        return sum(len(t.columns) for t in self.tables)

    def get_table(self, name: str) -> Optional[SchemaTable]:
        """Find a table by exact or case-insensitive name."""
        for table in self.tables:
            if table.name == name:
                return table
        lowered = name.lower()
        for table in self.tables:
            if table.name.lower() == lowered:
                return table
        return None

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "tables": [
                        {
                            "name": "dbo.Customers",
                            "columns": [
                                {
                                    "name": "Id",
                                    "data_type": "int",
                                    "is_nullable": False,
                                },
                                {
                                    "name": "created_at",
                                    "data_type": "datetime2",
                                    "is_nullable": True,
                                },
                            ],
                            "is_view": False,
                        }
                    ],
                    "relations": [
                        {
                            "from_table": "dbo.Orders",
                            "from_column": "CustomerId",
                            "to_table": "dbo.Customers",
                            "to_column": "Id",
                        }
                    ],
                }
            ]
        },
    )
