"""Inbound request handling.

Framework-neutral: ``handle_ask`` takes the decoded JSON payload and returns
``(status, body)``, leaving routing and transport to the host application.
Error bodies carry only a generic message and a stable ``code``; SQL,
schema and violation details stay in the server log and audit table.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from cncquery.core.types import ConversationTurn
from cncquery.exceptions import CncQueryError, InvalidQuestionError, NLQueryError

if TYPE_CHECKING:
    from cncquery.core.engine import CNCQuery

logger = logging.getLogger(__name__)


class AskRequest(BaseModel):
    """Body of an ask request."""

    question: str
    history: list[ConversationTurn] = Field(default_factory=list)


def handle_ask(engine: CNCQuery, payload: dict[str, Any] | None) -> tuple[int, dict[str, Any]]:
    """Answer one ask request.

    Args:
        engine: Configured CNCQuery instance
        payload: Decoded request body ``{question, history}``

    Returns:
        (status, body). On success the body is ``{answer, sql, data, cached,
        safetyScore, responseTimeMs, question}``; on failure ``{error, code}``.
        Errors outside the query taxonomy map to 500 ``NL_QUERY_ERROR``.
    """
    try:
        request = AskRequest.model_validate(payload or {})
    except ValidationError as e:
        error = InvalidQuestionError(f"Malformed request body: {e.error_count()} errors")
        logger.info("Rejected malformed ask request")
        return error.status, error.to_public_dict()

    try:
        result = engine.ask(request.question, list(request.history))
    except NLQueryError as e:
        logger.warning("Ask failed: %s", e.code, extra={"audit": e.audit})
        return e.status, e.to_public_dict()
    except CncQueryError as e:
        # Setup failures (no API key, unreachable database) share the generic body
        logger.error("Ask failed before the pipeline could run: %s", e.message)
        return NLQueryError.status, {"error": NLQueryError.user_message, "code": NLQueryError.code}

    return 200, result.to_response()
