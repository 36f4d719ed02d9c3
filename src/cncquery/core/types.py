"""Core types for the natural-language query pipeline.

All types are immutable once built and JSON-serializable, so they can be
cached, audited, and returned to callers as-is.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class ConversationTurn(BaseModel):
    """One prior turn of the operator's conversation."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: float | None = Field(default=None, description="Epoch milliseconds")

    model_config = {"frozen": True}


def bound_history(
    turns: Sequence[ConversationTurn | dict[str, Any]] | None,
    max_turns: int,
) -> tuple[ConversationTurn, ...]:
    """Keep only the most recent ``max_turns`` turns (oldest dropped first).

    Args:
        turns: Caller-supplied turns, as models or plain dicts
        max_turns: Upper bound on the returned length

    Returns:
        Tuple of validated turns, in original order
    """
    if not turns or max_turns <= 0:
        return ()
    validated = [
        t if isinstance(t, ConversationTurn) else ConversationTurn.model_validate(t)
        for t in turns
    ]
    return tuple(validated[-max_turns:])


class CandidateQuery(BaseModel):
    """Generator output before and after sanitizing."""

    raw_text: str
    sanitized_text: str

    model_config = {"frozen": True}


class ValidationVerdict(BaseModel):
    """Outcome of validating and scoring one candidate statement."""

    passed: bool
    violations: tuple[str, ...] = ()
    safety_score: int = 0
    tables: tuple[str, ...] = ()

    model_config = {"frozen": True}


class CacheEntry(BaseModel):
    """A cached answer. Only ever built from SQL that passed validation."""

    key: str
    question: str
    sql: str
    answer: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    expires_at: datetime

    model_config = {"frozen": True}


class QueryResult(BaseModel):
    """Externally visible result of one question/answer cycle."""

    answer: str
    sql: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    cached: bool = False
    safety_score: int
    elapsed_ms: float
    question: str
    degraded: bool = Field(
        default=False, description="True when the answer is the templated fallback"
    )

    model_config = {"frozen": True}

    def to_response(self) -> dict[str, Any]:
        """Render the wire shape returned by the inbound API."""
        return {
            "answer": self.answer,
            "sql": self.sql,
            "data": self.rows,
            "cached": self.cached,
            "safetyScore": self.safety_score,
            "responseTimeMs": round(self.elapsed_ms),
            "question": self.question,
        }


class CacheStats(BaseModel):
    """Snapshot of cache contents and hit counters."""

    total_entries: int = 0
    expired_entries: int = 0
    hits: int = 0
    misses: int = 0


class QueryPreview(BaseModel):
    """Dry-run outcome: the SQL that would run, and its verdict. Nothing executed."""

    question: str
    raw_text: str
    sql: str
    verdict: ValidationVerdict
    threshold: int

    model_config = {"frozen": True}

    @property
    def would_execute(self) -> bool:
        return self.verdict.passed and self.verdict.safety_score >= self.threshold
