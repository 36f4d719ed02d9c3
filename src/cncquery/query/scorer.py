"""Heuristic safety/cost score for validated SQL.

The score estimates how cheap and well-scoped a query is; it is not a
security boundary (that is the validator). Weights:

====================================  ======
Base                                    70
WHERE clause present                   +10
LIMIT clause present                   +10
Aggregate function used                 +5
SELECT *                               -15
Large table read without LIMIT         -15 each
JOIN                                    -5 each
Nested SELECT                           -5 per level
UNION                                  -10 each
LIKE/ILIKE with a leading wildcard      -5
Function outside the allow-list        -15 each
====================================  ======

The result is clamped to 0..100. Adding a WHERE clause never lowers the
score and switching to ``SELECT *`` never raises it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cncquery.query.tokenizer import (
    Token,
    TokenKind,
    cte_names,
    extract_table_refs,
    function_calls,
    significant,
    statement_body,
    tokenize,
)

if TYPE_CHECKING:
    from cncquery.query.context import SchemaContext

BASE_SCORE = 70
WHERE_BONUS = 10
LIMIT_BONUS = 10
AGGREGATE_BONUS = 5
SELECT_STAR_PENALTY = 15
LARGE_TABLE_PENALTY = 15
JOIN_PENALTY = 5
SUBQUERY_PENALTY = 5
UNION_PENALTY = 10
LEADING_WILDCARD_PENALTY = 5
UNKNOWN_FUNCTION_PENALTY = 15

AGGREGATE_FUNCTIONS = frozenset({"count", "sum", "avg", "min", "max"})


class SafetyScorer:
    """Scores SQL on a 0..100 scale. Pure and deterministic."""

    def __init__(
        self,
        large_tables: frozenset[str] | set[str] = frozenset(),
        allowed_functions: frozenset[str] | set[str] = frozenset(),
    ) -> None:
        self._large_tables = frozenset(t.lower() for t in large_tables)
        self._allowed_functions = frozenset(f.lower() for f in allowed_functions) | AGGREGATE_FUNCTIONS

    @classmethod
    def for_context(cls, context: SchemaContext) -> SafetyScorer:
        return cls(context.large_tables, context.allowed_functions)

    def score(self, sql: str) -> int:
        """Score a statement.

        Args:
            sql: Candidate SQL (normally already validated)

        Returns:
            Integer score in 0..100
        """
        tokens = statement_body(significant(tokenize(sql)))
        if not tokens:
            return 0

        score = BASE_SCORE

        has_limit = any(t.is_word("LIMIT", "FETCH") for t in tokens)
        if any(t.is_word("WHERE") for t in tokens):
            score += WHERE_BONUS
        if has_limit:
            score += LIMIT_BONUS

        ctes, _ = cte_names(tokens)
        calls = function_calls(tokens, exclude=set(ctes))
        if any(name in AGGREGATE_FUNCTIONS for name in calls):
            score += AGGREGATE_BONUS

        # SELECT * / SELECT DISTINCT *
        for idx, tok in enumerate(tokens[:-1]):
            if tok.is_word("SELECT"):
                nxt = tokens[idx + 1]
                if nxt.is_word("DISTINCT") and idx + 2 < len(tokens):
                    nxt = tokens[idx + 2]
                if nxt.is_punct("*"):
                    score -= SELECT_STAR_PENALTY
                    break

        if not has_limit:
            refs, _ = extract_table_refs(tokens)
            large = {r.name for r in refs if r.name in self._large_tables}
            score -= LARGE_TABLE_PENALTY * len(large)

        score -= JOIN_PENALTY * sum(1 for t in tokens if t.is_word("JOIN"))
        score -= SUBQUERY_PENALTY * self._subquery_depth(tokens)
        score -= UNION_PENALTY * sum(1 for t in tokens if t.is_word("UNION"))

        for idx, tok in enumerate(tokens[:-1]):
            if tok.is_word("LIKE", "ILIKE"):
                nxt = tokens[idx + 1]
                if nxt.kind == TokenKind.STRING and nxt.value[1:2] == "%":
                    score -= LEADING_WILDCARD_PENALTY
                    break

        unknown = {name for name in calls if name not in self._allowed_functions}
        score -= UNKNOWN_FUNCTION_PENALTY * len(unknown)

        return max(0, min(100, score))

    @staticmethod
    def _subquery_depth(tokens: list[Token]) -> int:
        """Deepest nesting of SELECTs inside parentheses."""
        depth = 0
        select_depths: list[int] = []
        deepest = 0
        for idx, tok in enumerate(tokens):
            if tok.is_punct("("):
                depth += 1
                if idx + 1 < len(tokens) and tokens[idx + 1].is_word("SELECT"):
                    select_depths.append(depth)
                    deepest = max(deepest, len(select_depths))
            elif tok.is_punct(")"):
                if select_depths and select_depths[-1] == depth:
                    select_depths.pop()
                depth -= 1
        return deepest
