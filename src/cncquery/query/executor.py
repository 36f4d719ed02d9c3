"""Execution of validated SQL on a read-only connection."""

from __future__ import annotations

import logging
import time
import uuid
from datetime import date, datetime, time as dt_time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy.exc import DBAPIError, DisconnectionError, SQLAlchemyError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from cncquery.exceptions import QueryExecutionError

if TYPE_CHECKING:
    from cncquery.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


class SelectRunner(Protocol):
    """Anything that can run a validated SELECT and return rows."""

    def run_select(self, sql: str) -> list[dict[str, Any]]: ...


def is_transient(error: BaseException) -> bool:
    """True for errors caused by a dropped connection rather than by the SQL."""
    if isinstance(error, DisconnectionError):
        return True
    return isinstance(error, DBAPIError) and bool(error.connection_invalidated)


def to_json_value(value: Any) -> Any:
    """Convert a database value to a JSON-friendly one.

    Cached rows round-trip through JSON, so fresh rows use the same types.
    """
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime | date | dt_time):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, bytes | memoryview):
        return bytes(value).hex()
    if isinstance(value, list | tuple):
        return [to_json_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    return str(value)


class QueryExecutor:
    """Runs validated SELECT statements against the production tables.

    Guarantees:
    - The connection refuses writes (see DatabaseConnection.read_only)
    - Only transient disconnects are retried, a bounded number of times
    - Every failure surfaces as QueryExecutionError with the SQL in its
      audit context
    - At most ``max_rows`` rows are returned
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        max_rows: int = 1000,
        statement_timeout_ms: int | None = 10_000,
        retries: int = 2,
        retry_wait_s: float = 0.5,
    ) -> None:
        """Initialize the executor.

        Args:
            connection: Database connection
            max_rows: Row cap per query
            statement_timeout_ms: Server-side timeout (PostgreSQL)
            retries: Extra attempts after a transient disconnect
            retry_wait_s: Initial backoff between attempts
        """
        self._connection = connection
        self._max_rows = max_rows
        self._statement_timeout_ms = statement_timeout_ms
        self._retries = retries
        self._retry_wait_s = retry_wait_s

    def execute(self, sql: str) -> list[dict[str, Any]]:
        """Execute a validated statement.

        Args:
            sql: SQL that passed validation and scoring

        Returns:
            Rows as dicts of JSON-friendly values

        Raises:
            QueryExecutionError: If the database rejects or fails the query
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._retries + 1),
            wait=wait_exponential(multiplier=self._retry_wait_s, max=5.0),
            retry=retry_if_exception(is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        start = time.perf_counter()
        try:
            rows = retrying(self._run, sql)
        except SQLAlchemyError as e:
            logger.warning("Query execution failed: %s", e.__class__.__name__)
            raise QueryExecutionError(
                f"Query execution failed: {e}",
                sql=sql,
                context={"transient": is_transient(e)},
            ) from e
        logger.debug("Fetched %d rows in %.1fms", len(rows), (time.perf_counter() - start) * 1000)
        return rows

    def run_select(self, sql: str) -> list[dict[str, Any]]:
        return self.execute(sql)

    def _run(self, sql: str) -> list[dict[str, Any]]:
        with self._connection.read_only(self._statement_timeout_ms) as conn:
            # exec_driver_sql: generated text must not be parsed for :bind params
            result = conn.exec_driver_sql(sql)
            columns = list(result.keys())
            raw_rows = result.fetchmany(self._max_rows)
        return [
            {col: to_json_value(value) for col, value in zip(columns, row, strict=False)}
            for row in raw_rows
        ]
