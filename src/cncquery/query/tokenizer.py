"""Lightweight SQL tokenizer.

Not a parser: it only needs to tell structural SQL apart from string
literals, quoted identifiers and comments, so that policy checks run on the
structure alone. Anything it cannot classify with confidence is emitted as an
``AMBIGUOUS`` or ``UNTERMINATED`` token for the validator to reject.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum


class TokenKind(StrEnum):
    """Token categories."""

    WORD = "word"  # Unquoted identifier or keyword
    QUOTED_IDENT = "quoted_ident"  # "name" or `name`
    STRING = "string"  # 'literal'
    NUMBER = "number"
    PUNCT = "punct"  # Operators and punctuation
    COMMENT = "comment"  # -- ..., /* ... */, # ...
    PARAM = "param"  # ?, :name, $1
    AMBIGUOUS = "ambiguous"  # Dollar quoting, escape strings
    UNTERMINATED = "unterminated"  # Unclosed string or identifier


@dataclass(frozen=True)
class Token:
    """A single lexical token."""

    kind: TokenKind
    value: str
    pos: int

    @property
    def upper(self) -> str:
        return self.value.upper()

    def is_word(self, *words: str) -> bool:
        """Check for an unquoted word matching any of ``words`` (case-insensitive)."""
        return self.kind == TokenKind.WORD and self.value.upper() in words

    def is_punct(self, *chars: str) -> bool:
        return self.kind == TokenKind.PUNCT and self.value in chars


# Words that are never function names even when followed by "("
SQL_KEYWORDS = frozenset(
    {
        "ALL", "AND", "ANY", "AS", "ASC", "BETWEEN", "BY", "CASE", "CROSS", "DESC",
        "DISTINCT", "ELSE", "END", "ESCAPE", "EXCEPT", "EXISTS", "FALSE", "FETCH",
        "FILTER", "FIRST", "FOR", "FROM", "FULL", "GROUP", "HAVING", "ILIKE", "IN",
        "INNER", "INTERSECT", "INTERVAL", "IS", "JOIN", "LAST", "LATERAL", "LEFT",
        "LIKE", "LIMIT", "MATERIALIZED", "NATURAL", "NEXT", "NOT", "NULL", "NULLS",
        "OFFSET", "ON", "ONLY", "OR", "ORDER", "OUTER", "OVER", "PARTITION",
        "RECURSIVE", "RIGHT", "ROW", "ROWS", "SELECT", "SIMILAR", "SOME", "TABLE", "THEN",
        "TRUE", "UNION", "USING", "VALUES", "WHEN", "WHERE", "WINDOW", "WITH",
        "WITHIN",
    }
)

# Functions whose argument list may legally contain FROM
FROM_ARGUMENT_FUNCTIONS = frozenset({"EXTRACT", "SUBSTRING", "TRIM", "OVERLAY", "POSITION"})

_MULTI_CHAR_OPERATORS = ("->>", "#>>", "::", "<=", ">=", "<>", "!=", "||", "->", "@>", "<@")


def _is_word_start(ch: str) -> bool:
    return ch.isalpha() or ch == "_"


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def tokenize(sql: str) -> list[Token]:
    """Split SQL text into tokens.

    Never raises: malformed input produces ``UNTERMINATED``/``AMBIGUOUS``
    tokens instead. Whitespace is dropped.
    """
    return list(_scan(sql))


def _scan(sql: str) -> Iterator[Token]:  # noqa: C901 - single-pass scanner
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]

        if ch.isspace():
            i += 1
            continue

        # Comments
        if sql.startswith("--", i) or ch == "#" and not sql.startswith(("#>", "#>>"), i):
            end = sql.find("\n", i)
            end = n if end == -1 else end
            yield Token(TokenKind.COMMENT, sql[i:end], i)
            i = end
            continue
        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = n if end == -1 else end + 2
            yield Token(TokenKind.COMMENT, sql[i:end], i)
            i = end
            continue
        if sql.startswith("*/", i):
            yield Token(TokenKind.COMMENT, "*/", i)
            i += 2
            continue

        # String literal ('' escapes a quote)
        if ch == "'":
            j = i + 1
            while j < n:
                if sql[j] == "'":
                    if j + 1 < n and sql[j + 1] == "'":
                        j += 2
                        continue
                    break
                j += 1
            if j >= n:
                yield Token(TokenKind.UNTERMINATED, sql[i:], i)
                return
            literal = sql[i : j + 1]
            # Backslashes mean different things to different servers
            kind = TokenKind.AMBIGUOUS if "\\" in literal else TokenKind.STRING
            yield Token(kind, literal, i)
            i = j + 1
            continue

        # Quoted identifiers
        if ch in ('"', "`"):
            j = i + 1
            while j < n:
                if sql[j] == ch:
                    if j + 1 < n and sql[j + 1] == ch:
                        j += 2
                        continue
                    break
                j += 1
            if j >= n:
                yield Token(TokenKind.UNTERMINATED, sql[i:], i)
                return
            yield Token(TokenKind.QUOTED_IDENT, sql[i + 1 : j].replace(ch * 2, ch), i)
            i = j + 1
            continue

        # Dollar: positional parameter ($1) or dollar quoting ($$, $tag$)
        if ch == "$":
            j = i + 1
            if j < n and sql[j].isdigit():
                while j < n and sql[j].isdigit():
                    j += 1
                yield Token(TokenKind.PARAM, sql[i:j], i)
            else:
                while j < n and _is_word_char(sql[j]) and sql[j] != "$":
                    j += 1
                j = j + 1 if j < n and sql[j] == "$" else j
                yield Token(TokenKind.AMBIGUOUS, sql[i:j], i)
            i = max(j, i + 1)
            continue

        # Numbers
        if ch.isdigit() or ch == "." and i + 1 < n and sql[i + 1].isdigit():
            j = i + 1
            while j < n and (sql[j].isdigit() or sql[j] == "."):
                j += 1
            if j < n and sql[j] in "eE" and j + 1 < n and (sql[j + 1].isdigit() or sql[j + 1] in "+-"):
                j += 2
                while j < n and sql[j].isdigit():
                    j += 1
            yield Token(TokenKind.NUMBER, sql[i:j], i)
            i = j
            continue

        # Words (escape-string prefixes like E'...' are ambiguous)
        if _is_word_start(ch):
            j = i + 1
            while j < n and _is_word_char(sql[j]):
                j += 1
            word = sql[i:j]
            if j < n and sql[j] == "'" and word.upper() in ("E", "B", "X", "U", "N"):
                yield Token(TokenKind.AMBIGUOUS, word, i)
            else:
                yield Token(TokenKind.WORD, word, i)
            i = j
            continue

        # Bind parameters
        if ch == "?":
            yield Token(TokenKind.PARAM, "?", i)
            i += 1
            continue
        if ch == ":" and not sql.startswith("::", i) and i + 1 < n and _is_word_start(sql[i + 1]):
            j = i + 1
            while j < n and _is_word_char(sql[j]):
                j += 1
            yield Token(TokenKind.PARAM, sql[i:j], i)
            i = j
            continue

        for op in _MULTI_CHAR_OPERATORS:
            if sql.startswith(op, i):
                yield Token(TokenKind.PUNCT, op, i)
                i += len(op)
                break
        else:
            yield Token(TokenKind.PUNCT, ch, i)
            i += 1


def significant(tokens: list[Token]) -> list[Token]:
    """Drop comment tokens."""
    return [t for t in tokens if t.kind != TokenKind.COMMENT]


def statement_body(tokens: list[Token]) -> list[Token]:
    """Tokens of the first statement (everything before the first ``;``)."""
    for idx, tok in enumerate(tokens):
        if tok.is_punct(";"):
            return tokens[:idx]
    return tokens


def matching_paren(tokens: list[Token], open_idx: int) -> int:
    """Index of the ``)`` closing the ``(`` at ``open_idx``, or -1."""
    depth = 0
    for idx in range(open_idx, len(tokens)):
        if tokens[idx].is_punct("("):
            depth += 1
        elif tokens[idx].is_punct(")"):
            depth -= 1
            if depth == 0:
                return idx
    return -1


def paren_depths(tokens: list[Token]) -> tuple[int, bool]:
    """Return (maximum nesting depth, balanced?)."""
    depth = 0
    max_depth = 0
    for tok in tokens:
        if tok.is_punct("("):
            depth += 1
            max_depth = max(max_depth, depth)
        elif tok.is_punct(")"):
            depth -= 1
            if depth < 0:
                return max_depth, False
    return max_depth, depth == 0


def identifier_name(tok: Token) -> str | None:
    """Normalized name of an identifier token (unquoted names fold to lower case)."""
    if tok.kind == TokenKind.WORD and tok.upper not in SQL_KEYWORDS:
        return tok.value.lower()
    if tok.kind == TokenKind.QUOTED_IDENT:
        return tok.value
    return None


def cte_names(tokens: list[Token]) -> tuple[list[str], int | None]:
    """Parse a leading ``WITH`` prologue.

    Returns:
        (CTE names, index of the main statement's first token). The index is
        None when the prologue does not have the expected
        ``WITH [RECURSIVE] name [(cols)] AS [[NOT] MATERIALIZED] (...) [, ...]``
        shape.
    """
    if not tokens or not tokens[0].is_word("WITH"):
        return [], 0
    names: list[str] = []
    idx = 1
    if idx < len(tokens) and tokens[idx].is_word("RECURSIVE"):
        idx += 1
    while True:
        if idx >= len(tokens):
            return names, None
        name = identifier_name(tokens[idx])
        if name is None:
            return names, None
        names.append(name)
        idx += 1
        if idx < len(tokens) and tokens[idx].is_punct("("):
            close = matching_paren(tokens, idx)
            if close == -1:
                return names, None
            idx = close + 1
        if idx >= len(tokens) or not tokens[idx].is_word("AS"):
            return names, None
        idx += 1
        if idx < len(tokens) and tokens[idx].is_word("NOT"):
            idx += 1
        if idx < len(tokens) and tokens[idx].is_word("MATERIALIZED"):
            idx += 1
        if idx >= len(tokens) or not tokens[idx].is_punct("("):
            return names, None
        close = matching_paren(tokens, idx)
        if close == -1:
            return names, None
        idx = close + 1
        if idx < len(tokens) and tokens[idx].is_punct(","):
            idx += 1
            continue
        return names, idx


@dataclass(frozen=True)
class TableReference:
    """A table named in a FROM/JOIN clause."""

    name: str
    schema: str | None = None


def _enclosing_opener(tokens: list[Token], idx: int) -> int:
    """Index of the innermost unclosed ``(`` before ``idx``, or -1."""
    depth = 0
    for j in range(idx - 1, -1, -1):
        if tokens[j].is_punct(")"):
            depth += 1
        elif tokens[j].is_punct("("):
            if depth == 0:
                return j
            depth -= 1
    return -1


def _is_clause_from(tokens: list[Token], idx: int) -> bool:
    """Tell a FROM clause apart from FROM inside EXTRACT(...)/IS DISTINCT FROM."""
    if idx >= 2 and tokens[idx - 1].is_word("DISTINCT"):
        if tokens[idx - 2].is_word("IS") or (
            idx >= 3 and tokens[idx - 2].is_word("NOT") and tokens[idx - 3].is_word("IS")
        ):
            return False
    opener = _enclosing_opener(tokens, idx)
    if opener > 0 and tokens[opener - 1].kind == TokenKind.WORD:
        if tokens[opener - 1].upper in FROM_ARGUMENT_FUNCTIONS:
            return False
    return True


def extract_table_refs(tokens: list[Token]) -> tuple[list[TableReference], bool]:
    """Walk FROM/JOIN clauses and ``TABLE name`` shorthands and collect referenced tables.

    Returns:
        (table references, ambiguous). ``ambiguous`` is True when a FROM/JOIN
        is followed by something that is neither a (schema-qualified) table
        name nor a subquery, e.g. a table function or a literal.
    """
    refs: list[TableReference] = []
    ambiguous = False
    idx = 0
    n = len(tokens)

    while idx < n:
        tok = tokens[idx]
        is_from = tok.is_word("FROM") and _is_clause_from(tokens, idx)
        if not (is_from or tok.is_word("JOIN", "TABLE")):
            idx += 1
            continue

        idx += 1
        while True:  # One iteration per comma-separated FROM item
            if idx < n and tokens[idx].is_word("LATERAL", "ONLY"):
                idx += 1
            if idx >= n:
                ambiguous = True
                break
            cur = tokens[idx]
            if cur.is_punct("("):
                if idx + 1 >= n or not tokens[idx + 1].is_word("SELECT", "WITH", "VALUES"):
                    ambiguous = True
                # Subquery contents are walked by the outer loop
                break
            name = identifier_name(cur)
            if name is None:
                ambiguous = True
                break
            schema = None
            if idx + 2 < n and tokens[idx + 1].is_punct("."):
                qualified = identifier_name(tokens[idx + 2])
                if qualified is None:
                    ambiguous = True
                    break
                schema, name = name, qualified
                idx += 2
            idx += 1
            if idx < n and tokens[idx].is_punct("("):  # Table function
                ambiguous = True
            refs.append(TableReference(name=name, schema=schema))
            if not is_from:
                break
            # Optional alias, then maybe another comma-separated item
            if idx < n and tokens[idx].is_word("AS"):
                idx += 1
            if idx < n and identifier_name(tokens[idx]) is not None:
                idx += 1
            if idx < n and tokens[idx].is_punct(","):
                idx += 1
                continue
            break

    return refs, ambiguous


def function_calls(tokens: list[Token], exclude: set[str] | None = None) -> list[str]:
    """Lower-cased names of function calls (identifier immediately before ``(``)."""
    excluded = exclude or set()
    calls = []
    for idx in range(len(tokens) - 1):
        tok = tokens[idx]
        if tok.kind != TokenKind.WORD or not tokens[idx + 1].is_punct("("):
            continue
        if tok.upper in SQL_KEYWORDS:
            continue
        name = tok.value.lower()
        if idx > 1 and tokens[idx - 1].is_punct("."):
            # schema.func(...) never matches the bare allow-list
            name = f"{tokens[idx - 2].value.lower()}.{name}"
        if name not in excluded:
            calls.append(name)
    return calls
