"""Read-only SQL guard.

A conservative lexical filter applied before any query reaches a connector.
It never parses SQL: comments are not stripped, so a banned keyword inside a
comment still rejects the query.
"""

import re
from typing import Optional

BANNED_KEYWORDS = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "MERGE",
    "DROP",
    "ALTER",
    "TRUNCATE",
    "GRANT",
    "REVOKE",
    "EXEC",
    "CREATE",
)

ALLOWED_LEADING_KEYWORDS = ("SELECT", "WITH")

# Letters, digits and underscore are identifier characters, so created_at and
# updated_by pass while "(DELETE" or "x;DROP" do not
_BANNED_PATTERN = re.compile(
    r"(?<![A-Za-z0-9_])(" + "|".join(BANNED_KEYWORDS) + r")(?![A-Za-z0-9_])",
    re.IGNORECASE,
)
_LEADING_PATTERN = re.compile(
    r"^\s*(" + "|".join(ALLOWED_LEADING_KEYWORDS) + r")(?![A-Za-z0-9_])",
    re.IGNORECASE,
)


def check_read_only(sql: Optional[str]) -> Optional[str]:
    """
    Check a SQL text against the read-only rules.

    Args:
        sql: Query text

    Returns:
        Rejection reason, or None if the query is allowed
    """
    if sql is None or not sql.strip():
        return "query is empty"

    if ";" in sql:
        return "multiple statements or statement terminators are not allowed"

    if not _LEADING_PATTERN.match(sql):
        return "only SELECT or WITH queries are allowed"

    match = _BANNED_PATTERN.search(sql)
    if match:
        return f"keyword {match.group(1).upper()} is not allowed"

    return None


def is_read_only(sql: Optional[str]) -> bool:
    """Whether the query passes the read-only guard."""
    return check_read_only(sql) is None
