"""Natural-language to SQL generation through an LLM."""

import logging
import re
from typing import Optional, Sequence, Union

from sqlbridge_mcp.core.safety import check_read_only
from sqlbridge_mcp.llm import LlmClientFactory
from sqlbridge_mcp.models.database import DbKind
from sqlbridge_mcp.models.llm import (
    GeneratedSql,
    LlmMessage,
    LlmProvider,
    LlmRequestOptions,
)
from sqlbridge_mcp.models.metadata import StoredTable

logger = logging.getLogger(__name__)

BASE_INSTRUCTION = (
    "You generate safe, read-only SQL using the provided schema. "
    "Answer with a single SELECT or WITH statement and nothing else: "
    "no explanations, no markdown, no trailing semicolon. "
    "Only reference tables and columns listed in the schema."
)

DIALECT_DIRECTIVES: dict[DbKind, str] = {
    DbKind.SQLSERVER: (
        "Database: SQL Server. Use SELECT TOP N ... no LIMIT syntax. "
        "If limiting rows, use TOP 100 unless user requests otherwise."
    ),
    DbKind.MYSQL: (
        "Database: MySQL. Use LIMIT N at the end for row limits (e.g., LIMIT 100)."
    ),
    DbKind.ORACLE: (
        "Database: Oracle. Use FETCH FIRST N ROWS ONLY for limits "
        "(e.g., FETCH FIRST 100 ROWS ONLY)."
    ),
    DbKind.POSTGRESQL: (
        "Database: PostgreSQL. Use LIMIT N at the end for row limits "
        "(e.g., LIMIT 100). Quote mixed-case identifiers with double quotes."
    ),
    DbKind.SQLITE: (
        "Database: SQLite. Use LIMIT N at the end for row limits (e.g., LIMIT 100)."
    ),
}

_FENCE = re.compile(r"^```[A-Za-z]*\s*|\s*```$")
_SQL_TAG = re.compile(r"^sql\s+", re.IGNORECASE)


def build_schema_context(db_kind: DbKind, tables: Sequence[StoredTable]) -> str:
    """
    Render stored tables as the schema block given to the model.

    Tables and their columns are sorted by name so the prompt is stable.
    """
    lines = ["SCHEMA START", f"DB_KIND: {db_kind.display_name}"]
    for table in sorted(tables, key=lambda t: t.name):
        lines.append(f"TABLE {table.name}")
        if table.description:
            lines.append(f"  # {table.description}")
        for col in sorted(table.columns, key=lambda c: c.name):
            nullability = "NULL" if col.is_nullable else "NOT NULL"
            lines.append(f"  - {col.name} {col.data_type} {nullability}")
    lines.append("SCHEMA END")
    return "\n".join(lines)


def clean_generated_sql(reply: str) -> str:
    """Strip markdown fences, backticks and a leading ``sql`` tag from a reply."""
    sql = reply.strip()
    sql = _FENCE.sub("", sql).strip()
    sql = sql.replace("`", "")
    sql = _SQL_TAG.sub("", sql).strip()
    return sql.rstrip(";").rstrip()


class SqlGenerationService:
    """Turns a question about a connection's data into a SQL query."""

    def __init__(self, llm_factory: LlmClientFactory):
        self.llm_factory = llm_factory

    def build_messages(
        self,
        question: str,
        db_kind: DbKind,
        tables: Sequence[StoredTable],
        context: Optional[str] = None,
    ) -> list[LlmMessage]:
        system_parts = [
            BASE_INSTRUCTION,
            DIALECT_DIRECTIVES[db_kind],
            build_schema_context(db_kind, tables),
        ]
        user_prompt = question.strip()
        if context and context.strip():
            user_prompt = f"{user_prompt}\n\nAdditional context:\n{context.strip()}"
        return [
            LlmMessage(role="system", content="\n\n".join(system_parts)),
            LlmMessage(role="user", content=user_prompt),
        ]

    async def generate(
        self,
        question: str,
        db_kind: Union[DbKind, str],
        tables: Sequence[StoredTable],
        context: Optional[str] = None,
        provider: Union[LlmProvider, str, None] = None,
        model: Optional[str] = None,
    ) -> GeneratedSql:
        """
        Ask an LLM for SQL answering a question against stored schema metadata.

        The generated text is checked by the read-only guard; the verdict is
        reported in the result and nothing is executed.

        Raises:
            UnsupportedCapabilityError: If the provider is unknown
            MisconfigurationError: If the provider is not configured
            LlmUpstreamError: If the provider call fails
            LlmTransportError: If the provider cannot be reached
        """
        kind = DbKind.parse(db_kind)
        resolved = (
            self.llm_factory.default_provider()
            if provider is None
            else LlmProvider.parse(provider)
        )
        client = self.llm_factory.create(resolved)
        options = LlmRequestOptions(
            model=model or self.llm_factory.default_model(resolved)
        )

        reply = await client.chat(
            self.build_messages(question, kind, tables, context), options
        )
        sql = clean_generated_sql(reply)
        reason = check_read_only(sql)
        logger.info(
            f"Generated {kind.display_name} SQL with {resolved.value}/{options.model}"
            f" (read-only: {reason is None})"
        )

        return GeneratedSql(
            sql=sql,
            provider=resolved.value,
            model=options.model,
            is_read_only=reason is None,
            rejection_reason=reason,
        )
