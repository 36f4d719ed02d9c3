"""Tests for read-only query execution."""

import uuid
from collections.abc import Generator
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError

from conftest import seed_production_tables
from cncquery.core.connection import DatabaseConnection
from cncquery.exceptions import QueryExecutionError
from cncquery.query.executor import QueryExecutor, is_transient, to_json_value


@pytest.fixture
def connection() -> Generator[DatabaseConnection, None, None]:
    conn = DatabaseConnection("sqlite:///:memory:")
    seed_production_tables(conn.engine)
    yield conn
    conn.close()


@pytest.fixture
def executor(connection: DatabaseConnection) -> QueryExecutor:
    return QueryExecutor(connection, max_rows=100, retries=2, retry_wait_s=0)


def _stock(connection: DatabaseConnection) -> list[int]:
    with connection.engine.connect() as conn:
        return [row[0] for row in conn.execute(text("SELECT current_stock FROM inventory ORDER BY id"))]


class TestExecute:
    """Happy path."""

    def test_rows_as_dicts(self, executor):
        rows = executor.execute("SELECT code, standard_life FROM endmill_types ORDER BY code")
        assert rows == [
            {"code": "AT001", "standard_life": 2000},
            {"code": "AT002", "standard_life": 1500},
        ]

    def test_korean_literal(self, executor):
        rows = executor.execute("SELECT COUNT(*) AS n FROM tool_changes WHERE change_reason = '파손'")
        assert rows == [{"n": 3}]

    def test_colon_in_sql_is_not_a_bind_parameter(self, executor):
        rows = executor.execute("SELECT 'a:b' AS label")
        assert rows == [{"label": "a:b"}]

    def test_row_cap(self, connection):
        capped = QueryExecutor(connection, max_rows=2, retry_wait_s=0)
        assert len(capped.execute("SELECT id FROM tool_changes")) == 2

    def test_run_select_alias(self, executor):
        assert executor.run_select("SELECT 1 AS one") == [{"one": 1}]

    def test_connection_usable_for_writes_afterwards(self, connection, executor):
        executor.execute("SELECT 1")
        with connection.engine.begin() as conn:
            conn.execute(text("UPDATE inventory SET current_stock = 5 WHERE id = 'i1'"))
        assert _stock(connection)[0] == 5


class TestReadOnly:
    """Writes are refused at the connection level."""

    @pytest.mark.parametrize(
        "sql",
        [
            "DELETE FROM inventory",
            "UPDATE inventory SET current_stock = 0",
            "INSERT INTO inventory (id) VALUES ('x')",
            "DROP TABLE inventory",
        ],
    )
    def test_write_is_rejected(self, connection, executor, sql):
        before = _stock(connection)
        with pytest.raises(QueryExecutionError):
            executor.execute(sql)
        assert _stock(connection) == before


class TestErrors:
    """Failures surface as QueryExecutionError."""

    def test_unknown_table(self, executor):
        with pytest.raises(QueryExecutionError) as exc_info:
            executor.execute("SELECT name FROM suppliers")
        error = exc_info.value
        assert error.sql == "SELECT name FROM suppliers"
        assert error.audit["transient"] is False
        assert error.code == "QUERY_EXECUTION_ERROR"
        assert "suppliers" not in str(error.to_public_dict())

    def test_syntax_error_not_retried(self, connection, monkeypatch):
        executor = QueryExecutor(connection, retries=3, retry_wait_s=0)
        calls = []
        original = executor._run

        def counting(sql):
            calls.append(sql)
            return original(sql)

        monkeypatch.setattr(executor, "_run", counting)
        with pytest.raises(QueryExecutionError):
            executor.execute("SELEC 1")
        assert len(calls) == 1

    def test_transient_disconnect_retried(self, connection, monkeypatch):
        executor = QueryExecutor(connection, retries=2, retry_wait_s=0)
        original = executor._run
        failures = [_disconnect(), _disconnect()]

        def flaky(sql):
            if failures:
                raise failures.pop()
            return original(sql)

        monkeypatch.setattr(executor, "_run", flaky)
        assert executor.execute("SELECT 1 AS one") == [{"one": 1}]

    def test_transient_disconnect_gives_up(self, connection, monkeypatch):
        executor = QueryExecutor(connection, retries=1, retry_wait_s=0)
        calls = []

        def always_down(sql):
            calls.append(sql)
            raise _disconnect()

        monkeypatch.setattr(executor, "_run", always_down)
        with pytest.raises(QueryExecutionError) as exc_info:
            executor.execute("SELECT 1")
        assert len(calls) == 2
        assert exc_info.value.audit["transient"] is True


def _disconnect() -> DBAPIError:
    return OperationalError("SELECT 1", {}, Exception("server closed the connection"), connection_invalidated=True)


class TestHelpers:
    """Transient detection and value conversion."""

    def test_is_transient(self):
        assert is_transient(_disconnect())
        assert not is_transient(OperationalError("SELECT 1", {}, Exception("no such table")))
        assert not is_transient(ValueError("nope"))

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, None),
            (3, 3),
            ("파손", "파손"),
            (Decimal("45000.50"), 45000.5),
            (date(2026, 9, 1), "2026-09-01"),
            (datetime(2026, 9, 1, 8, 30), "2026-09-01T08:30:00"),
            (timedelta(minutes=2), 120.0),
            (uuid.UUID("12345678-1234-5678-1234-567812345678"), "12345678-1234-5678-1234-567812345678"),
            (b"\x01\xff", "01ff"),
            ([Decimal("1.5"), date(2026, 1, 2)], [1.5, "2026-01-02"]),
            ({"a": Decimal("2")}, {"a": 2.0}),
        ],
    )
    def test_to_json_value(self, value, expected):
        assert to_json_value(value) == expected
