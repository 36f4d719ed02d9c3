"""Question -> answer pipeline.

::

    RECEIVED -> CACHE_CHECK -> HIT -> DONE
                            -> MISS -> GENERATING -> SANITIZING -> VALIDATING
                                    -> REJECTED
                                    -> EXECUTING -> EXPLAINING -> CACHING -> DONE

Stages run sequentially per request. Nothing executes unless the
validator passes the SQL and the scorer rates it at or above the
threshold, and nothing is cached unless execution and explanation
succeeded.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from tenacity import Retrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from cncquery.core.config import NLQueryConfig
from cncquery.core.types import (
    CandidateQuery,
    ConversationTurn,
    QueryPreview,
    QueryResult,
    ValidationVerdict,
    bound_history,
)
from cncquery.exceptions import (
    ExplanationFailedError,
    GenerationFailedError,
    InvalidQuestionError,
    LowSafetyScoreError,
    NLQueryError,
    ProviderError,
    UnsafeSQLError,
)
from cncquery.query.sanitizer import sanitize_sql
from cncquery.query.scorer import SafetyScorer
from cncquery.query.validator import SQLValidator

if TYPE_CHECKING:
    from cncquery.core.types import CacheEntry
    from cncquery.query.audit import AuditRecorder
    from cncquery.query.cache import QueryCache
    from cncquery.query.context import SchemaContext, SchemaContextProvider
    from cncquery.query.executor import SelectRunner
    from cncquery.query.generator import SQLGenerator
    from cncquery.query.synthesizer import AnswerSynthesizer

logger = logging.getLogger(__name__)

HistoryInput = Sequence[ConversationTurn | dict[str, Any]] | None


class PipelineState(StrEnum):
    """States a request moves through."""

    RECEIVED = "received"
    CACHE_CHECK = "cache_check"
    HIT = "hit"
    MISS = "miss"
    GENERATING = "generating"
    SANITIZING = "sanitizing"
    VALIDATING = "validating"
    REJECTED = "rejected"
    EXECUTING = "executing"
    EXPLAINING = "explaining"
    CACHING = "caching"
    DONE = "done"
    FAILED = "failed"


def _is_transient_provider_error(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.transient


class QueryOrchestrator:
    """Drives one question through cache, generation, validation, execution
    and explanation.

    The orchestrator holds no per-request state, so one instance serves
    concurrent requests.
    """

    def __init__(
        self,
        schema_provider: SchemaContextProvider,
        generator: SQLGenerator,
        runner: SelectRunner,
        synthesizer: AnswerSynthesizer,
        cache: QueryCache | None = None,
        config: NLQueryConfig | None = None,
        audit: AuditRecorder | None = None,
        retry_wait_s: float = 0.5,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            schema_provider: Source of the schema context
            generator: SQL generator
            runner: Executes validated SQL (normally a QueryExecutor)
            synthesizer: Explains result rows
            cache: Answer cache (None disables caching)
            config: Thresholds and bounds (defaults if not provided)
            audit: Optional outcome recorder
            retry_wait_s: Initial backoff between generation retries
        """
        self._schema_provider = schema_provider
        self._generator = generator
        self._runner = runner
        self._synthesizer = synthesizer
        self._cache = cache
        self._config = config or NLQueryConfig()
        self._audit = audit
        self._retry_wait_s = retry_wait_s

    @property
    def config(self) -> NLQueryConfig:
        return self._config

    def ask(
        self,
        question: str,
        history: HistoryInput = None,
        trace: list[PipelineState] | None = None,
    ) -> QueryResult:
        """Answer a question.

        Args:
            question: The operator's question (3..500 characters)
            history: Prior turns; only the most recent ones are used
            trace: Optional list that receives every state transition

        Returns:
            QueryResult (``cached=True`` on a cache hit)

        Raises:
            InvalidQuestionError: Question out of bounds (before any I/O)
            GenerationFailedError: Provider failed or timed out
            UnsafeSQLError: Generated SQL violated the validation policy
            LowSafetyScoreError: Generated SQL scored under the threshold
            QueryExecutionError: The database failed the query
        """
        start = time.perf_counter()
        steps = trace if trace is not None else []
        steps.append(PipelineState.RECEIVED)
        q = question.strip() if isinstance(question, str) else ""

        try:
            turns = self._check_input(q, history)
            result = self._answer(q, turns, steps, start)
        except NLQueryError as e:
            steps.append(PipelineState.FAILED)
            e.question = e.question or q
            e.audit["question"] = e.question
            logger.warning("Question failed with %s: %s", e.code, e.message)
            self._record_error(q, e, start)
            raise

        steps.append(PipelineState.DONE)
        self._record_result(result)
        return result

    def preview(self, question: str, history: HistoryInput = None) -> QueryPreview:
        """Generate, sanitize, validate and score without executing or caching.

        Raises:
            InvalidQuestionError: Question out of bounds
            GenerationFailedError: Provider failed or timed out
        """
        q = question.strip() if isinstance(question, str) else ""
        turns = self._check_input(q, history)
        context = self._schema_provider.get_cached()
        candidate = self._candidate(q, context, turns, stricter=False)
        verdict = self._validator(context).check(candidate.sanitized_text)
        return QueryPreview(
            question=q,
            raw_text=candidate.raw_text,
            sql=candidate.sanitized_text,
            verdict=verdict,
            threshold=self._config.safety_threshold,
        )

    # === Stages ===

    def _check_input(self, question: str, history: HistoryInput) -> tuple[ConversationTurn, ...]:
        cfg = self._config
        if not cfg.min_question_length <= len(question) <= cfg.max_question_length:
            raise InvalidQuestionError(
                f"Question length {len(question)} outside "
                f"{cfg.min_question_length}..{cfg.max_question_length}",
                question=question,
            )
        try:
            return bound_history(history, cfg.max_history_turns)
        except ValidationError as e:
            raise InvalidQuestionError(f"Malformed conversation history: {e}", question=question) from e

    def _answer(
        self,
        question: str,
        turns: tuple[ConversationTurn, ...],
        steps: list[PipelineState],
        start: float,
    ) -> QueryResult:
        steps.append(PipelineState.CACHE_CHECK)
        context = self._schema_provider.get_cached()
        entry = self._cache_lookup(question)
        if entry is not None:
            steps.append(PipelineState.HIT)
            logger.info("Cache hit for question")
            return QueryResult(
                answer=entry.answer,
                sql=entry.sql,
                rows=entry.rows,
                cached=True,
                safety_score=SafetyScorer.for_context(context).score(entry.sql),
                elapsed_ms=self._elapsed_ms(start),
                question=question,
            )

        steps.append(PipelineState.MISS)
        sql, verdict = self._generate_validated(question, context, turns, steps)

        steps.append(PipelineState.EXECUTING)
        rows = self._runner.run_select(sql)

        steps.append(PipelineState.EXPLAINING)
        degraded = False
        try:
            answer = self._synthesizer.explain(question, rows)
        except ExplanationFailedError as e:
            logger.warning("Explanation failed, using templated answer: %s", e.message)
            answer = self._synthesizer.fallback(question, rows)
            degraded = True

        # Degraded answers are served but not cached
        if self._cache is not None and not degraded:
            steps.append(PipelineState.CACHING)
            self._cache_store(self._cache, question, sql, answer, rows)

        return QueryResult(
            answer=answer,
            sql=sql,
            rows=rows,
            cached=False,
            safety_score=verdict.safety_score,
            elapsed_ms=self._elapsed_ms(start),
            question=question,
            degraded=degraded,
        )

    def _generate_validated(
        self,
        question: str,
        context: SchemaContext,
        turns: tuple[ConversationTurn, ...],
        steps: list[PipelineState],
    ) -> tuple[str, ValidationVerdict]:
        """Generate SQL until it passes, with at most one stricter re-prompt."""
        validator = self._validator(context)
        threshold = self._config.safety_threshold
        attempts = (False, True) if self._config.safer_reprompt else (False,)

        error: NLQueryError | None = None
        for stricter in attempts:
            steps.append(PipelineState.GENERATING)
            raw = self._generate(question, context, turns, stricter)

            steps.append(PipelineState.SANITIZING)
            candidate = CandidateQuery(raw_text=raw, sanitized_text=sanitize_sql(raw))
            sql = candidate.sanitized_text
            if candidate.raw_text != sql:
                logger.debug("Sanitized generator output (%d -> %d chars)", len(raw), len(sql))

            steps.append(PipelineState.VALIDATING)
            verdict = validator.check(sql)
            if not verdict.passed:
                error = UnsafeSQLError(
                    f"SQL failed validation: {', '.join(verdict.violations)}",
                    question=question,
                    sql=sql,
                    violations=list(verdict.violations),
                )
            elif verdict.safety_score < threshold:
                error = LowSafetyScoreError(
                    f"Safety score {verdict.safety_score} below threshold {threshold}",
                    question=question,
                    sql=sql,
                    safety_score=verdict.safety_score,
                )
            else:
                return sql, verdict

            steps.append(PipelineState.REJECTED)
            logger.warning("Rejected generated SQL (%s, stricter=%s)", error.code, stricter)

        if error is None:
            raise GenerationFailedError("No SQL candidate was generated", question=question)
        raise error

    def _generate(
        self,
        question: str,
        context: SchemaContext,
        turns: tuple[ConversationTurn, ...],
        stricter: bool,
    ) -> str:
        """One generation, retrying transient provider failures."""
        retrying = Retrying(
            stop=stop_after_attempt(self._config.generation_retries + 1),
            wait=wait_exponential(multiplier=self._retry_wait_s, max=5.0),
            retry=retry_if_exception(_is_transient_provider_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            return retrying(self._generator.generate, question, context, turns, stricter)
        except ProviderError as e:
            raise GenerationFailedError(
                f"SQL generation failed: {e.message}",
                question=question,
                context={"transient": e.transient},
            ) from e

    def _candidate(
        self,
        question: str,
        context: SchemaContext,
        turns: tuple[ConversationTurn, ...],
        stricter: bool,
    ) -> CandidateQuery:
        raw = self._generate(question, context, turns, stricter)
        return CandidateQuery(raw_text=raw, sanitized_text=sanitize_sql(raw))

    def _validator(self, context: SchemaContext) -> SQLValidator:
        return SQLValidator.for_context(context, scorer=SafetyScorer.for_context(context))

    # === Cache access ===

    def _cache_lookup(self, question: str) -> CacheEntry | None:
        if self._cache is None:
            return None
        try:
            return self._cache.get(question)
        except SQLAlchemyError as e:
            logger.warning("Cache read failed, treating as miss: %s", e)
            return None

    def _cache_store(
        self, cache: QueryCache, question: str, sql: str, answer: str, rows: list[dict[str, Any]]
    ) -> None:
        try:
            cache.put(cache.entry_for(question, sql, answer, rows))
        except SQLAlchemyError as e:
            logger.warning("Cache write failed: %s", e)

    # === Helpers ===

    def _record_result(self, result: QueryResult) -> None:
        if self._audit is None:
            return
        try:
            self._audit.record_result(result)
        except SQLAlchemyError as e:
            logger.warning("Audit write failed: %s", e)

    def _record_error(self, question: str, error: NLQueryError, start: float) -> None:
        if self._audit is None:
            return
        try:
            self._audit.record_error(question, error, self._elapsed_ms(start))
        except SQLAlchemyError as e:
            logger.warning("Audit write failed: %s", e)

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000
