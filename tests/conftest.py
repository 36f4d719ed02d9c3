"""Shared test fixtures for CNCQuery."""

from __future__ import annotations

import os
from collections.abc import Generator, Sequence

import pytest
from sqlalchemy import Engine, text

from cncquery import CNCQuery, NLQueryConfig
from cncquery.core.types import ConversationTurn
from cncquery.llm.provider import TextGenerationProvider

# SQLite stand-ins for the production tables the pipeline reads from
PRODUCTION_DDL = [
    """CREATE TABLE equipment (
        id TEXT PRIMARY KEY, equipment_number INTEGER, location TEXT,
        status TEXT, model_code TEXT, current_model TEXT, process TEXT
    )""",
    """CREATE TABLE endmill_types (
        id TEXT PRIMARY KEY, code TEXT, name TEXT, unit_cost NUMERIC, standard_life INTEGER
    )""",
    """CREATE TABLE inventory (
        id TEXT PRIMARY KEY, endmill_type_id TEXT, current_stock INTEGER,
        min_stock INTEGER, max_stock INTEGER, status TEXT, location TEXT
    )""",
    """CREATE TABLE tool_changes (
        id TEXT PRIMARY KEY, equipment_number INTEGER, model TEXT, t_number INTEGER,
        endmill_code TEXT, change_date TEXT, change_reason TEXT, tool_life INTEGER
    )""",
]

PRODUCTION_ROWS = [
    "INSERT INTO equipment VALUES ('e1', 1, 'A동', '가동중', 'PA1', 'R13', '가공1차')",
    "INSERT INTO equipment VALUES ('e2', 2, 'A동', '점검중', 'PA2', 'R13', '가공2차')",
    "INSERT INTO equipment VALUES ('e3', 3, 'B동', '가동중', 'B7', 'R16', '가공1차')",
    "INSERT INTO endmill_types VALUES ('t1', 'AT001', 'FLAT 12', 45000, 2000)",
    "INSERT INTO endmill_types VALUES ('t2', 'AT002', 'BALL 6', 38000, 1500)",
    "INSERT INTO inventory VALUES ('i1', 't1', 3, 10, 50, 'low', 'A-01')",
    "INSERT INTO inventory VALUES ('i2', 't2', 40, 10, 50, 'sufficient', 'A-02')",
    "INSERT INTO tool_changes VALUES ('c1', 1, 'PA1', 3, 'AT001', '2026-09-05', '파손', 800)",
    "INSERT INTO tool_changes VALUES ('c2', 3, 'B7', 7, 'AT002', '2026-09-12', '파손', 650)",
    "INSERT INTO tool_changes VALUES ('c3', 1, 'PA1', 3, 'AT001', '2026-09-20', '수명완료', 2100)",
    "INSERT INTO tool_changes VALUES ('c4', 2, 'PA2', 12, 'AT001', '2026-08-30', '파손', 400)",
]

BREAKAGE_QUESTION = "How many tool changes happened due to breakage last month?"
BREAKAGE_SQL = (
    "SELECT COUNT(*) AS breakage_count FROM tool_changes "
    "WHERE change_reason = '파손' AND change_date >= '2026-09-01' AND change_date < '2026-10-01'"
)
BREAKAGE_ANSWER = "지난달 파손으로 인한 공구 교체는 2건입니다."


def seed_production_tables(engine: Engine) -> None:
    """Create and fill the production stand-in tables."""
    with engine.begin() as conn:
        for statement in PRODUCTION_DDL + PRODUCTION_ROWS:
            conn.execute(text(statement))


class FakeProvider(TextGenerationProvider):
    """Scripted text provider.

    SQL prompts and explanation prompts draw from separate queues. Each
    queue is consumed front to back and its last item repeats; items that
    are exceptions are raised instead of returned.
    """

    def __init__(
        self,
        sql: Sequence[str | Exception] = (BREAKAGE_SQL,),
        answers: Sequence[str | Exception] = (BREAKAGE_ANSWER,),
    ) -> None:
        self.sql_outputs = list(sql)
        self.answer_outputs = list(answers)
        self.sql_prompts: list[str] = []
        self.answer_prompts: list[str] = []
        self.histories: list[list[ConversationTurn]] = []
        self.timeouts: list[float | None] = []

    @property
    def model_name(self) -> str:
        return "fake"

    @property
    def calls(self) -> int:
        return len(self.sql_prompts) + len(self.answer_prompts)

    def generate_text(self, prompt: str, timeout: float | None = None) -> str:
        self.timeouts.append(timeout)
        if prompt.rstrip().endswith("Answer:"):
            self.answer_prompts.append(prompt)
            return self._next(self.answer_outputs)
        self.sql_prompts.append(prompt)
        return self._next(self.sql_outputs)

    def chat(
        self,
        history: Sequence[ConversationTurn],
        message: str,
        timeout: float | None = None,
    ) -> str:
        self.histories.append(list(history))
        return self.generate_text(message, timeout)

    @staticmethod
    def _next(queue: list[str | Exception]) -> str:
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


requires_postgresql = pytest.mark.skipif(
    not _psycopg_available() or not os.environ.get("TEST_DATABASE_URL"),
    reason="needs psycopg and TEST_DATABASE_URL",
)


@pytest.fixture
def provider() -> FakeProvider:
    """Provider that answers the breakage question."""
    return FakeProvider()


@pytest.fixture
def config() -> NLQueryConfig:
    """Default pipeline config (environment ignored)."""
    return NLQueryConfig()


@pytest.fixture
def memory_db(provider: FakeProvider, config: NLQueryConfig) -> Generator[CNCQuery, None, None]:
    """CNCQuery on SQLite in-memory with seeded production tables."""
    database = CNCQuery("sqlite:///:memory:", config=config, provider=provider, retry_wait_s=0)
    seed_production_tables(database.connection.engine)
    yield database
    database.close()


@pytest.fixture
def temp_db_url(tmp_path) -> str:
    """URL of a file-backed SQLite database with seeded production tables."""
    url = f"sqlite:///{tmp_path / 'cnc.db'}"
    database = CNCQuery(url, config=NLQueryConfig())
    seed_production_tables(database.connection.engine)
    database.close()
    return url


__all__ = [
    "BREAKAGE_ANSWER",
    "BREAKAGE_QUESTION",
    "BREAKAGE_SQL",
    "FakeProvider",
    "requires_postgresql",
    "seed_production_tables",
]
