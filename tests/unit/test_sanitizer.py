"""Tests for LLM output sanitizing."""

import pytest

from cncquery.query.sanitizer import sanitize_sql

RAW_OUTPUTS = [
    "SELECT 1",
    "```sql\nSELECT model FROM equipment LIMIT 5;\n```",
    "```\nSELECT 1\n```",
    "SQL: SELECT 1;",
    "쿼리: SELECT 1",
    "SQL Query: sql: SELECT 1",
    "Here is the query you asked for:\nSELECT code FROM endmill_types LIMIT 3;\nIt lists codes.",
    "SELECT 'a;b' FROM t; DROP TABLE inventory;",
    "   \n  SELECT 1  \n ",
    "no sql at all",
    "",
    "```sql\nSELECT 1",
    "WITH x AS (SELECT 1) SELECT * FROM x",
    "With this query you can list them: SELECT code FROM endmill_types LIMIT 3",
    "DROP TABLE inventory;",
]


class TestSanitizeSql:
    """Presentation noise is removed, nothing else."""

    def test_plain_sql_unchanged(self):
        assert sanitize_sql("SELECT model FROM equipment LIMIT 5") == "SELECT model FROM equipment LIMIT 5"

    def test_strips_code_fence(self):
        assert sanitize_sql("```sql\nSELECT 1;\n```") == "SELECT 1;"

    def test_strips_unlabelled_fence(self):
        assert sanitize_sql("```\nSELECT 1\n```") == "SELECT 1"

    def test_unclosed_fence(self):
        assert sanitize_sql("```sql\nSELECT 1") == "SELECT 1"

    def test_first_fenced_block_wins(self):
        raw = "```sql\nSELECT 1\n```\nor\n```sql\nSELECT 2\n```"
        assert sanitize_sql(raw) == "SELECT 1"

    @pytest.mark.parametrize("label", ["SQL:", "sql :", "Query:", "SQL Query:", "쿼리:", "SQL 쿼리："])
    def test_strips_labels(self, label):
        assert sanitize_sql(f"{label} SELECT 1") == "SELECT 1"

    def test_strips_stacked_labels(self):
        assert sanitize_sql("SQL: Query: SELECT 1") == "SELECT 1"

    def test_drops_narrative_before_select(self):
        raw = "Sure! The following query counts them.\nSELECT COUNT(*) FROM tool_changes"
        assert sanitize_sql(raw) == "SELECT COUNT(*) FROM tool_changes"

    def test_keeps_with_prologue(self):
        sql = "WITH recent AS (SELECT 1) SELECT * FROM recent"
        assert sanitize_sql(sql) == sql

    def test_with_narration_is_not_a_prologue(self):
        raw = (
            "With this query you can count the breakages: "
            "SELECT COUNT(*) FROM tool_changes WHERE change_reason = '파손'"
        )
        assert sanitize_sql(raw) == "SELECT COUNT(*) FROM tool_changes WHERE change_reason = '파손'"

    def test_lowercase_with_prologue_kept(self):
        sql = "with recent as (select id from tool_changes) select count(*) from recent"
        assert sanitize_sql(sql) == sql

    def test_truncates_after_first_terminator(self):
        assert sanitize_sql("SELECT 1; DROP TABLE inventory;") == "SELECT 1;"

    def test_semicolon_inside_literal_is_kept(self):
        assert sanitize_sql("SELECT 'a;b' FROM t; extra") == "SELECT 'a;b' FROM t;"

    def test_trailing_narrative_removed(self):
        raw = "SELECT code FROM endmill_types LIMIT 3;\nThis returns three codes."
        assert sanitize_sql(raw) == "SELECT code FROM endmill_types LIMIT 3;"

    def test_does_not_make_sql_safe(self):
        assert sanitize_sql("DROP TABLE inventory;") == "DROP TABLE inventory;"

    @pytest.mark.parametrize("empty", ["", None, "   \n\t"])
    def test_empty_input(self, empty):
        assert sanitize_sql(empty) == ""

    @pytest.mark.parametrize("raw", RAW_OUTPUTS)
    def test_idempotent(self, raw):
        once = sanitize_sql(raw)
        assert sanitize_sql(once) == once
