"""Normalize raw LLM output into a single candidate SQL statement.

The sanitizer only removes presentation noise (code fences, labels,
narrative). It never tries to make SQL safe; that is the validator's job.
"""

from __future__ import annotations

import re

from cncquery.query.tokenizer import TokenKind, cte_names, significant, tokenize

_FENCE = "```"
_FENCED_BLOCK = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\r?\n(.*?)(?:```|\Z)", re.DOTALL)
_LABEL = re.compile(
    r"^\s*(?:sql\s*query|sql\s*쿼리|sql|query|쿼리)\s*[:：]\s*",
    re.IGNORECASE,
)
_SELECT_START = re.compile(r"^select\b", re.IGNORECASE)
_WITH_START = re.compile(r"^with\b", re.IGNORECASE)
_SELECT = re.compile(r"\bselect\b", re.IGNORECASE)


def _strip_fences(text: str) -> str:
    if _FENCE not in text:
        return text
    match = _FENCED_BLOCK.search(text)
    if match:
        text = match.group(1)
    return text.replace(_FENCE, "")


def _strip_labels(text: str) -> str:
    while True:
        stripped = _LABEL.sub("", text, count=1)
        if stripped == text:
            return text
        text = stripped


def _is_cte_statement(text: str) -> bool:
    """True when ``text`` opens with a well-formed WITH prologue followed by SELECT."""
    tokens = significant(tokenize(text))
    _, main_idx = cte_names(tokens)
    return main_idx is not None and main_idx < len(tokens) and tokens[main_idx].is_word("SELECT")


def _drop_narrative(text: str) -> str:
    text = text.lstrip()
    if _SELECT_START.match(text):
        return text
    # "With this query you can ..." is narration, not a CTE
    if _WITH_START.match(text) and _is_cte_statement(text):
        return text
    match = _SELECT.search(text)
    return text[match.start() :] if match else text


def _truncate_after_terminator(text: str) -> str:
    for tok in tokenize(text):
        if tok.kind == TokenKind.PUNCT and tok.value == ";":
            return text[: tok.pos + 1]
    return text


def sanitize_sql(raw_text: str | None) -> str:
    """Turn generator output into one candidate statement.

    Steps: strip code fences, strip leading labels ("SQL:", "쿼리:", ...),
    drop narrative before the first SELECT, keep text up to and including
    the first top-level ``;``, trim whitespace.

    Idempotent (``sanitize_sql(sanitize_sql(x)) == sanitize_sql(x)``) and
    never raises.

    Args:
        raw_text: Text returned by the generative-text provider

    Returns:
        Candidate SQL (possibly empty or still unsafe)
    """
    if not raw_text:
        return ""
    text = _strip_fences(str(raw_text))
    text = _strip_labels(text)
    text = _drop_narrative(text)
    text = _truncate_after_terminator(text)
    return text.strip()
