"""Unit tests for the read-only SQL guard."""

import pytest

from sqlbridge_mcp.core.safety import BANNED_KEYWORDS, check_read_only, is_read_only


class TestAcceptedQueries:
    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT * FROM Customers",
            "select id from t",
            "  \n\tSELECT 1",
            "WITH recent AS (SELECT Id FROM Orders) SELECT * FROM recent",
            "SELECT created_at, updated_by, deleted_flag FROM Customers",
            "SELECT insert_date, executor, creator FROM audit_log",
            "SELECT TOP 10 Name FROM Customers ORDER BY Name",
        ],
    )
    def test_read_only_queries_pass(self, sql):
        assert check_read_only(sql) is None
        assert is_read_only(sql)

    def test_banned_word_as_identifier_substring_passes(self):
        """created_at contains CREATE but is a different token."""
        assert is_read_only("SELECT created_at FROM Customers")
        assert is_read_only("SELECT Id FROM Customers WHERE dropped_at IS NULL")


class TestRejectedQueries:
    @pytest.mark.parametrize("sql", ["", "   ", "\n\t", None])
    def test_empty_text_rejected(self, sql):
        assert not is_read_only(sql)
        assert check_read_only(sql) == "query is empty"

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT 1;",
            "SELECT 1; SELECT 2",
            "WITH x AS (SELECT 1) SELECT * FROM x;",
            "SELECT ';' AS sep",
        ],
    )
    def test_statement_separator_rejected_regardless_of_leading_keyword(self, sql):
        assert not is_read_only(sql)
        assert "statement" in check_read_only(sql)

    @pytest.mark.parametrize(
        "sql",
        [
            "EXPLAIN SELECT 1",
            "SHOW TABLES",
            "VALUES (1)",
            "(SELECT 1)",
            "SELECTED FROM t",
            "WITHOUT x",
            "UPDATE Customers SET Name = 'x'",
        ],
    )
    def test_other_leading_keywords_rejected(self, sql):
        assert check_read_only(sql) == "only SELECT or WITH queries are allowed"

    @pytest.mark.parametrize("keyword", BANNED_KEYWORDS)
    def test_every_banned_keyword_rejected_as_whole_token(self, keyword):
        sql = f"SELECT * FROM t WHERE x IN (SELECT y FROM z) {keyword.lower()} foo"
        reason = check_read_only(sql)
        assert reason == f"keyword {keyword} is not allowed"

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT * FROM (DELETE FROM t RETURNING *) d",
            "WITH d AS (DELETE FROM t RETURNING *) SELECT * FROM d",
            "SELECT 1 UNION SELECT 2 FROM x\nDROP",
            "SELECT * FROM t WHERE id=1 OR EXEC('x')",
        ],
    )
    def test_banned_keyword_next_to_punctuation_rejected(self, sql):
        assert not is_read_only(sql)

    def test_banned_keyword_inside_comment_still_rejected(self):
        assert not is_read_only("SELECT 1 -- drop table later")
        assert not is_read_only("SELECT 1 /* TRUNCATE */")
