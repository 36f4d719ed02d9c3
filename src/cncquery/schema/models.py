"""SQLAlchemy ORM models for CNCQuery's own bookkeeping tables.

The production tables (tool_changes, inventory, ...) are not modelled here:
they belong to the host application and are only ever read through
generated SQL. These tables hold the answer cache and the audit trail.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Dialect-aware JSON type: JSONB on PostgreSQL, JSON on SQLite
JSONType = JSONB().with_variant(JSON(), "sqlite")


def generate_uuid() -> str:
    """Generate a new UUID as string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class Base(DeclarativeBase):
    """Base class for all CNCQuery models."""

    pass


class QueryCacheRecord(Base):
    """One cached answer, keyed by the normalized-question hash.

    Rows are written whole and never updated in place: a refresh deletes
    the old row and inserts a new one in the same transaction.
    """

    __tablename__ = "nlq_query_cache"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    sql: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    rows: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )


# === Audit trail ===


class QueryAuditRecord(Base):
    """Outcome of one question/answer cycle, kept for server-side review."""

    __tablename__ = "nlq_query_audit"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    question: Mapped[str] = mapped_column(Text, nullable=False)
    outcome: Mapped[str] = mapped_column(String(40), nullable=False)  # OK or an error code
    sql: Mapped[str | None] = mapped_column(Text, nullable=True)
    violations: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    safety_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    elapsed_ms: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    cached: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    degraded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    row_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (Index("ix_nlq_query_audit_outcome_time", "outcome", "timestamp"),)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "question": self.question,
            "outcome": self.outcome,
            "sql": self.sql,
            "violations": self.violations,
            "safety_score": self.safety_score,
            "elapsed_ms": self.elapsed_ms,
            "cached": self.cached,
            "degraded": self.degraded,
            "row_count": self.row_count,
        }
