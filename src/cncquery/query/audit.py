"""Audit trail of question/answer outcomes.

One row per terminal outcome, successful or not. The rows carry the
sanitized SQL and violation details that the public API never returns.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from cncquery.schema.models import QueryAuditRecord, utc_now

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from cncquery.core.types import QueryResult
    from cncquery.exceptions import NLQueryError

logger = logging.getLogger(__name__)

OUTCOME_OK = "OK"


class AuditRecorder:
    """Records and reads back pipeline outcomes."""

    def __init__(self, engine: Engine, enabled: bool = True, retention_days: int = 30) -> None:
        """Initialize the recorder.

        Args:
            engine: SQLAlchemy engine holding the nlq_query_audit table
            enabled: When False, record() is a no-op
            retention_days: Age after which cleanup_old_records() deletes rows
        """
        self._engine = engine
        self._enabled = enabled
        self._retention_days = retention_days

    @property
    def enabled(self) -> bool:
        return self._enabled

    def record(
        self,
        question: str,
        outcome: str,
        sql: str | None = None,
        violations: list[str] | None = None,
        safety_score: int | None = None,
        elapsed_ms: float = 0.0,
        cached: bool = False,
        degraded: bool = False,
        row_count: int | None = None,
    ) -> str | None:
        """Store one outcome.

        Returns:
            Audit row ID if recorded, None if disabled
        """
        if not self._enabled:
            return None

        with Session(self._engine) as session:
            row = QueryAuditRecord(
                question=question,
                outcome=outcome,
                sql=sql,
                violations=violations or None,
                safety_score=safety_score,
                elapsed_ms=elapsed_ms,
                cached=cached,
                degraded=degraded,
                row_count=row_count,
            )
            session.add(row)
            session.commit()
            return row.id

    def record_result(self, result: QueryResult) -> str | None:
        """Store a successful outcome."""
        return self.record(
            question=result.question,
            outcome=OUTCOME_OK,
            sql=result.sql,
            safety_score=result.safety_score,
            elapsed_ms=result.elapsed_ms,
            cached=result.cached,
            degraded=result.degraded,
            row_count=len(result.rows),
        )

    def record_error(self, question: str, error: NLQueryError, elapsed_ms: float) -> str | None:
        """Store a failed outcome from the error's audit context."""
        return self.record(
            question=question,
            outcome=error.code,
            sql=error.sql,
            violations=error.violations,
            safety_score=error.safety_score,
            elapsed_ms=elapsed_ms,
        )

    def recent(self, limit: int = 20, outcome: str | None = None) -> list[dict[str, Any]]:
        """Most recent outcomes first.

        Args:
            limit: Maximum rows to return
            outcome: Optional filter ("OK" or an error code)
        """
        stmt = select(QueryAuditRecord).order_by(QueryAuditRecord.timestamp.desc()).limit(limit)
        if outcome:
            stmt = stmt.where(QueryAuditRecord.outcome == outcome)
        with Session(self._engine) as session:
            return [row.to_dict() for row in session.scalars(stmt)]

    def count(self, outcome: str | None = None) -> int:
        stmt = select(func.count()).select_from(QueryAuditRecord)
        if outcome:
            stmt = stmt.where(QueryAuditRecord.outcome == outcome)
        with Session(self._engine) as session:
            return session.scalar(stmt) or 0

    def cleanup_old_records(self) -> int:
        """Remove outcomes older than the retention period.

        Returns:
            Number of rows deleted
        """
        cutoff = utc_now() - timedelta(days=self._retention_days)
        with Session(self._engine) as session:
            result = session.execute(
                delete(QueryAuditRecord).where(QueryAuditRecord.timestamp < cutoff)
            )
            session.commit()
            deleted = result.rowcount or 0
        logger.info("Removed %d audit records older than %d days", deleted, self._retention_days)
        return deleted
