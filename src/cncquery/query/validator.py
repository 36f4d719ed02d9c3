"""SQL Validator for LLM-generated queries.

Allow-list validation over a token stream, so that keywords hidden inside
string literals never trigger rules and keywords hidden behind casing,
whitespace or comments never escape them. The validator accepts a bounded
class of read queries and rejects everything else, even at the cost of
false rejections:

- R1: a single SELECT (optionally behind a WITH prologue)
- R2/R6: exactly one statement, at most one trailing terminator
- R3: no comments
- R4: no system catalogs, dangerous functions or write/admin verbs
- R5: only allow-listed tables (and the query's own CTE names)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING

from cncquery.core.types import ValidationVerdict
from cncquery.exceptions import UnsafeSQLError
from cncquery.query.tokenizer import (
    Token,
    TokenKind,
    cte_names,
    extract_table_refs,
    paren_depths,
    significant,
    statement_body,
    tokenize,
)

if TYPE_CHECKING:
    from cncquery.query.context import SchemaContext
    from cncquery.query.scorer import SafetyScorer

logger = logging.getLogger(__name__)


class Rule(StrEnum):
    """Stable violation identifiers."""

    NOT_SELECT = "R1_NOT_SELECT"
    MULTIPLE_STATEMENTS = "R2_MULTIPLE_STATEMENTS"
    COMMENT = "R3_COMMENT"
    FORBIDDEN_OBJECT = "R4_FORBIDDEN_OBJECT"
    UNKNOWN_TABLE = "R5_UNKNOWN_TABLE"
    TRAILING_TERMINATOR = "R6_TRAILING_TERMINATOR"
    EMPTY_QUERY = "EMPTY_QUERY"
    QUERY_TOO_LONG = "QUERY_TOO_LONG"
    TOO_MANY_UNIONS = "TOO_MANY_UNIONS"
    UNBALANCED_PARENTHESES = "UNBALANCED_PARENTHESES"
    TOO_DEEP_SUBQUERY = "TOO_DEEP_SUBQUERY"
    UNTERMINATED_LITERAL = "UNTERMINATED_LITERAL"
    AMBIGUOUS_TOKEN = "AMBIGUOUS_TOKEN"


MAX_QUERY_LENGTH = 10_000
MAX_UNIONS = 2
MAX_NESTING_DEPTH = 10

# Verbs that have no business in a read query, wherever they appear
FORBIDDEN_VERBS = frozenset(
    {
        "INSERT", "UPDATE", "DELETE", "DROP", "ALTER", "TRUNCATE", "GRANT", "REVOKE",
        "CREATE", "CALL", "EXECUTE", "EXEC", "COPY", "MERGE", "VACUUM", "ANALYZE",
        "REINDEX", "CLUSTER", "ATTACH", "DETACH", "PRAGMA", "SET", "RESET", "INTO",
        "LOCK", "DO", "PREPARE", "DEALLOCATE", "LISTEN", "NOTIFY", "UNLISTEN",
        "BEGIN", "COMMIT", "ROLLBACK", "SAVEPOINT", "LOAD", "REFRESH", "DISCARD",
    }
)

FORBIDDEN_SCHEMAS = frozenset(
    {"pg_catalog", "information_schema", "mysql", "sys", "performance_schema", "pg_toast"}
)
FORBIDDEN_PREFIXES = ("pg_", "sqlite_")

FORBIDDEN_FUNCTIONS = frozenset(
    {
        "pg_sleep", "pg_read_file", "pg_read_binary_file", "pg_ls_dir", "pg_stat_file",
        "lo_import", "lo_export", "lo_get", "lo_put", "dblink", "dblink_exec",
        "dblink_connect", "copy", "load_file", "load_extension", "benchmark", "sleep",
        "xp_cmdshell", "sp_executesql", "current_setting", "set_config", "query_to_xml",
        "version", "current_user", "session_user", "inet_server_addr", "txid_current",
    }
)

# Only the public schema may be used to qualify a table name
ALLOWED_SCHEMAS = frozenset({"public"})


class SQLValidator:
    """Validates LLM-generated SQL before execution.

    Pure: no I/O, no shared mutable state.
    """

    def __init__(
        self,
        allowed_tables: frozenset[str] | set[str],
        scorer: SafetyScorer | None = None,
    ) -> None:
        """Initialize the validator.

        Args:
            allowed_tables: Table names queries may read from
            scorer: Optional scorer; when given, verdicts of passing queries
                carry a safety score
        """
        self._allowed_tables = frozenset(t.lower() for t in allowed_tables)
        self._scorer = scorer

    @classmethod
    def for_context(cls, context: SchemaContext, scorer: SafetyScorer | None = None) -> SQLValidator:
        """Build a validator for a schema context's allow-list."""
        return cls(context.tables, scorer=scorer)

    def check(self, sql: str) -> ValidationVerdict:
        """Validate without raising.

        Args:
            sql: Sanitized candidate SQL

        Returns:
            ValidationVerdict listing every violated rule
        """
        violations, tables = self._collect(sql)
        passed = not violations
        score = self._scorer.score(sql) if passed and self._scorer else 0
        return ValidationVerdict(
            passed=passed,
            violations=tuple(violations),
            safety_score=score,
            tables=tuple(sorted(tables)),
        )

    def validate(self, sql: str) -> ValidationVerdict:
        """Validate and raise on any violation.

        Raises:
            UnsafeSQLError: With the violation list, when any rule fails
        """
        verdict = self.check(sql)
        if not verdict.passed:
            logger.warning("Rejected SQL (%s)", ", ".join(verdict.violations))
            raise UnsafeSQLError(
                f"SQL failed validation: {', '.join(verdict.violations)}",
                sql=sql,
                violations=list(verdict.violations),
            )
        return verdict

    def _collect(self, sql: str) -> tuple[list[str], set[str]]:
        violations: list[str] = []

        def flag(rule: Rule) -> None:
            if rule.value not in violations:
                violations.append(rule.value)

        if not sql or not sql.strip():
            return [Rule.EMPTY_QUERY.value], set()
        if len(sql) > MAX_QUERY_LENGTH:
            flag(Rule.QUERY_TOO_LONG)

        all_tokens = tokenize(sql)
        for tok in all_tokens:
            if tok.kind == TokenKind.COMMENT:
                flag(Rule.COMMENT)
            elif tok.kind == TokenKind.UNTERMINATED:
                flag(Rule.UNTERMINATED_LITERAL)
            elif tok.kind in (TokenKind.AMBIGUOUS, TokenKind.PARAM):
                flag(Rule.AMBIGUOUS_TOKEN)

        tokens = significant(all_tokens)
        if not tokens:
            flag(Rule.EMPTY_QUERY)
            return violations, set()

        # Statement structure (R2, R6)
        body = statement_body(tokens)
        rest = tokens[len(body) :]
        if any(not t.is_punct(";") for t in rest):
            flag(Rule.MULTIPLE_STATEMENTS)
        if sum(1 for t in rest if t.is_punct(";")) > 1:
            flag(Rule.TRAILING_TERMINATOR)

        # Forbidden verbs and objects are checked across every statement
        self._check_forbidden(tokens, flag)

        if not body:
            flag(Rule.EMPTY_QUERY)
            return violations, set()

        # R1: SELECT, or WITH ... SELECT
        ctes, main_idx = cte_names(body)
        if main_idx is None or main_idx >= len(body) or not body[main_idx].is_word("SELECT"):
            flag(Rule.NOT_SELECT)

        max_depth, balanced = paren_depths(body)
        if not balanced:
            flag(Rule.UNBALANCED_PARENTHESES)
        if max_depth > MAX_NESTING_DEPTH:
            flag(Rule.TOO_DEEP_SUBQUERY)
        if sum(1 for t in body if t.is_word("UNION")) > MAX_UNIONS:
            flag(Rule.TOO_MANY_UNIONS)

        # R5: allow-listed tables only
        refs, ambiguous = extract_table_refs(body)
        if ambiguous:
            flag(Rule.UNKNOWN_TABLE)
        local = set(ctes)
        tables: set[str] = set()
        for ref in refs:
            if ref.schema is not None and ref.schema.lower() not in ALLOWED_SCHEMAS:
                flag(Rule.FORBIDDEN_OBJECT if ref.schema.lower() in FORBIDDEN_SCHEMAS else Rule.UNKNOWN_TABLE)
                continue
            if ref.name in local and ref.schema is None:
                continue
            if ref.name.lower() in self._allowed_tables:
                tables.add(ref.name.lower())
            else:
                flag(Rule.UNKNOWN_TABLE)

        return violations, tables

    def _check_forbidden(self, tokens: list[Token], flag: Callable[[Rule], None]) -> None:
        for idx, tok in enumerate(tokens):
            if tok.kind == TokenKind.WORD:
                name = tok.value.lower()
                if tok.upper in FORBIDDEN_VERBS:
                    flag(Rule.FORBIDDEN_OBJECT)
                    continue
            elif tok.kind == TokenKind.QUOTED_IDENT:
                name = tok.value.lower()
            else:
                continue

            if name in FORBIDDEN_SCHEMAS or name.startswith(FORBIDDEN_PREFIXES):
                flag(Rule.FORBIDDEN_OBJECT)
            elif name in FORBIDDEN_FUNCTIONS and idx + 1 < len(tokens) and tokens[idx + 1].is_punct("("):
                flag(Rule.FORBIDDEN_OBJECT)
