"""Answer cache keyed by normalized question.

Entries live in the ``nlq_query_cache`` table so every process sharing the
database shares the cache. Expiry is lazy: an expired row is deleted when a
read finds it (or by ``purge_expired()``), never by a background sweeper.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from cncquery.core.types import CacheEntry, CacheStats
from cncquery.schema.models import QueryCacheRecord, as_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60

_WHITESPACE = re.compile(r"\s+")
_TRAILING_PUNCTUATION = "?!.。？！,;:~ "


def normalize_question(question: str) -> str:
    """Casefold, collapse whitespace, strip trailing punctuation."""
    normalized = _WHITESPACE.sub(" ", question.casefold()).strip()
    return normalized.rstrip(_TRAILING_PUNCTUATION)


def cache_key(question: str) -> str:
    """SHA-256 hex digest of the normalized question."""
    return hashlib.sha256(normalize_question(question).encode("utf-8")).hexdigest()


class QueryCache:
    """Read-through cache of question -> (SQL, answer, rows)."""

    def __init__(
        self,
        engine: Engine,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the cache.

        Args:
            engine: SQLAlchemy engine holding the nlq_query_cache table
            ttl_seconds: Lifetime of an entry
            clock: Source of the current UTC time (injectable for tests)
        """
        self._engine = engine
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def key(self, question: str) -> str:
        return cache_key(question)

    def get(self, question: str) -> CacheEntry | None:
        """Return the live entry for a question, or None.

        An expired entry is deleted on the spot and reported as a miss.
        """
        key = cache_key(question)
        now = self._clock()
        with Session(self._engine) as session:
            record = session.get(QueryCacheRecord, key)
            if record is None:
                self._count(hit=False)
                return None
            if as_utc(record.expires_at) <= now:
                session.delete(record)
                session.commit()
                logger.debug("Cache entry %s expired", key[:12])
                self._count(hit=False)
                return None
            entry = self._to_entry(record)
        self._count(hit=True)
        return entry

    def entry_for(
        self,
        question: str,
        sql: str,
        answer: str,
        rows: list[dict[str, Any]],
    ) -> CacheEntry:
        """Build an entry stamped with the cache's clock and TTL."""
        now = self._clock()
        return CacheEntry(
            key=cache_key(question),
            question=question,
            sql=sql,
            answer=answer,
            rows=rows,
            created_at=now,
            expires_at=now + self._ttl,
        )

    def put(self, entry: CacheEntry) -> None:
        """Store an entry, replacing any previous one for the same key.

        The old row is deleted and the new one inserted in a single
        transaction, so readers see either the old or the new entry whole.
        """
        with Session(self._engine) as session, session.begin():
            session.execute(delete(QueryCacheRecord).where(QueryCacheRecord.key == entry.key))
            session.add(
                QueryCacheRecord(
                    key=entry.key,
                    question=entry.question,
                    sql=entry.sql,
                    answer=entry.answer,
                    rows=list(entry.rows),
                    created_at=entry.created_at,
                    expires_at=entry.expires_at,
                )
            )
        logger.debug("Cached answer for key %s", entry.key[:12])

    def invalidate(self, question: str) -> bool:
        """Drop the entry for one question.

        Returns:
            True if an entry was removed
        """
        with Session(self._engine) as session, session.begin():
            result = session.execute(
                delete(QueryCacheRecord).where(QueryCacheRecord.key == cache_key(question))
            )
            return (result.rowcount or 0) > 0

    def clear(self) -> int:
        """Remove every entry.

        Returns:
            Number of entries deleted
        """
        with Session(self._engine) as session, session.begin():
            result = session.execute(delete(QueryCacheRecord))
            count = result.rowcount or 0
        logger.info("Cleared %d cache entries", count)
        return count

    def purge_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries deleted
        """
        with Session(self._engine) as session, session.begin():
            result = session.execute(
                delete(QueryCacheRecord).where(QueryCacheRecord.expires_at <= self._clock())
            )
            return result.rowcount or 0

    def stats(self) -> CacheStats:
        """Entry counts plus this process's hit/miss counters."""
        now = self._clock()
        with Session(self._engine) as session:
            total = session.scalar(select(func.count()).select_from(QueryCacheRecord)) or 0
            expired = (
                session.scalar(
                    select(func.count())
                    .select_from(QueryCacheRecord)
                    .where(QueryCacheRecord.expires_at <= now)
                )
                or 0
            )
        with self._lock:
            return CacheStats(
                total_entries=total,
                expired_entries=expired,
                hits=self._hits,
                misses=self._misses,
            )

    def _count(self, hit: bool) -> None:
        with self._lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    @staticmethod
    def _to_entry(record: QueryCacheRecord) -> CacheEntry:
        return CacheEntry(
            key=record.key,
            question=record.question,
            sql=record.sql,
            answer=record.answer,
            rows=list(record.rows or []),
            created_at=as_utc(record.created_at),
            expires_at=as_utc(record.expires_at),
        )
