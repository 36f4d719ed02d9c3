"""Custom exceptions for CNCQuery.

Two audiences read these errors:
- Operators and audit logs get the full ``context`` (question, SQL, violations)
- Callers of the public API get a generic ``user_message`` that never leaks
  SQL fragments or schema details
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


class CncQueryError(Exception):
    """Base exception for all CNCQuery errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict (server-side, includes context)."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(CncQueryError):
    """Failed to connect to the database."""

    pass


class SchemaDefinitionError(CncQueryError):
    """The static schema definition is malformed.

    Raised at import/boot time, never per request.
    """

    pass


class ProviderError(CncQueryError):
    """The generative-text provider failed."""

    def __init__(
        self,
        message: str,
        transient: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.transient = transient


# === Natural-language query taxonomy ===


class NLQueryError(CncQueryError):
    """Terminal error of one question/answer cycle.

    ``code`` is the stable taxonomy identifier, ``status`` the status code the
    inbound API maps it to, and ``audit`` the structured context kept for
    server-side logging only.
    """

    code = "NL_QUERY_ERROR"
    status = 500
    user_message = "The question could not be answered."

    def __init__(
        self,
        message: str,
        question: str | None = None,
        sql: str | None = None,
        violations: list[str] | None = None,
        safety_score: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        audit: dict[str, Any] = {
            "code": self.code,
            "question": question,
            "sql": sql,
            "violations": list(violations or []),
            "safety_score": safety_score,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        audit.update(context or {})
        super().__init__(message, audit)
        self.question = question
        self.sql = sql
        self.violations = list(violations or [])
        self.safety_score = safety_score

    @property
    def audit(self) -> dict[str, Any]:
        """Structured context for audit logging."""
        return self.context

    def to_public_dict(self) -> dict[str, Any]:
        """Return the caller-facing error body (no SQL, no schema detail)."""
        return {"error": self.user_message, "code": self.code}


class InvalidQuestionError(NLQueryError):
    """Question failed the length bounds; rejected before any I/O."""

    code = "INVALID_QUESTION"
    status = 400
    user_message = "Questions must be between 3 and 500 characters long."


class GenerationFailedError(NLQueryError):
    """SQL generation failed (transport error or timeout)."""

    code = "GENERATION_FAILED"
    status = 502
    user_message = "The query assistant is unavailable. Please try again shortly."


class UnsafeSQLError(NLQueryError):
    """Generated SQL violated the validation policy."""

    code = "UNSAFE_SQL"
    status = 422
    user_message = (
        "The question could not be turned into a safe query. Try rephrasing it."
    )


class LowSafetyScoreError(NLQueryError):
    """Generated SQL passed validation but scored under the safety threshold."""

    code = "LOW_SAFETY_SCORE"
    status = 422
    user_message = (
        "The question would produce an overly expensive query. Try narrowing it down."
    )


class QueryExecutionError(NLQueryError):
    """Validated SQL failed at the database."""

    code = "QUERY_EXECUTION_ERROR"
    status = 500
    user_message = "The data could not be retrieved. Please try again later."


class ExplanationFailedError(NLQueryError):
    """Explaining the result rows failed.

    Never surfaced to callers: the orchestrator degrades to a templated answer.
    """

    code = "EXPLANATION_FAILED"
    status = 200
    user_message = "The answer could not be summarized."
