"""Tests for the SQLAlchemy adapters with the engine mocked out."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from uuid import UUID

import pytest
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from db_snapshot.adapters import MySQLAdapter, PostgresAdapter, create_engine_pooled
from db_snapshot.adapters.engine import bind_safe
from db_snapshot.exceptions import DatabaseConnectionError
from db_snapshot.types import RawText


@pytest.fixture
def engine_factory(monkeypatch):
    """Replace engine creation so no driver connection is attempted."""
    factory = MagicMock()
    monkeypatch.setattr("db_snapshot.adapters.engine.create_engine_pooled", factory)
    return factory


def mock_connection(factory: MagicMock) -> MagicMock:
    conn = factory.return_value.connect.return_value
    conn.in_transaction.return_value = False
    return conn


# ============================================================================
# Engine creation
# ============================================================================


class TestCreateEnginePooled:
    """Pool defaults and the connect timeout."""

    def test_defaults(self, monkeypatch) -> None:
        create = MagicMock()
        monkeypatch.setattr("db_snapshot.adapters.engine.create_engine", create)

        create_engine_pooled("postgresql+psycopg://u:p@localhost/db")

        url, kwargs = create.call_args.args[0], create.call_args.kwargs
        assert url == "postgresql+psycopg://u:p@localhost/db?connect_timeout=5"
        assert kwargs["pool_size"] == 5
        assert kwargs["pool_pre_ping"] is True

    def test_existing_query_and_overrides(self, monkeypatch) -> None:
        create = MagicMock()
        monkeypatch.setattr("db_snapshot.adapters.engine.create_engine", create)

        create_engine_pooled("mysql+pymysql://u:p@h/db?charset=utf8mb4", pool_size=1)

        assert create.call_args.args[0].endswith("?charset=utf8mb4&connect_timeout=5")
        assert create.call_args.kwargs["pool_size"] == 1

    def test_timeout_not_duplicated(self, monkeypatch) -> None:
        create = MagicMock()
        monkeypatch.setattr("db_snapshot.adapters.engine.create_engine", create)

        create_engine_pooled("postgresql+psycopg://h/db?connect_timeout=30")

        assert create.call_args.args[0] == "postgresql+psycopg://h/db?connect_timeout=30"


# ============================================================================
# URLs
# ============================================================================


class TestNormalizeUrl:
    """Alias schemes are rewritten to the driver scheme."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@h:5432/db", "postgresql+psycopg://u:p@h:5432/db"),
            ("postgresql://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
            ("postgresql+psycopg://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ],
    )
    def test_postgres(self, url: str, expected: str) -> None:
        assert PostgresAdapter.normalize_url(url) == expected

    def test_mysql_adds_charset(self) -> None:
        assert MySQLAdapter.normalize_url("mysql://u:p@h/db") == "mysql+pymysql://u:p@h/db?charset=utf8mb4"

    def test_mysql_keeps_charset(self) -> None:
        url = "mysql+pymysql://u:p@h/db?charset=latin1"
        assert MySQLAdapter.normalize_url(url) == url

    def test_adapter_passes_normalized_url(self, engine_factory: MagicMock) -> None:
        PostgresAdapter("postgres://u:p@h/db")
        assert engine_factory.call_args.args[0] == "postgresql+psycopg://u:p@h/db"

    def test_postgres_json_loaded_as_text(self, engine_factory: MagicMock) -> None:
        PostgresAdapter("postgres://u:p@h/db")
        load = engine_factory.call_args.kwargs["json_deserializer"]
        assert load(b'"hello"') == '"hello"'
        assert load('{"a": 1}') == '{"a": 1}'


# ============================================================================
# Connection lifecycle
# ============================================================================


class TestConnection:
    """The held connection and its failure modes."""

    def test_connection_opened_once(self, engine_factory: MagicMock) -> None:
        adapter = PostgresAdapter("postgres://h/db")
        assert adapter.connection is adapter.connection
        engine_factory.return_value.connect.assert_called_once()

    def test_connect_failure(self, engine_factory: MagicMock) -> None:
        engine_factory.return_value.connect.side_effect = SQLAlchemyError("connection refused")
        adapter = PostgresAdapter("postgres://h/db")
        with pytest.raises(DatabaseConnectionError, match="Failed to connect"):
            adapter.query("SELECT 1")

    def test_closed_client(self, engine_factory: MagicMock) -> None:
        adapter = MySQLAdapter("mysql://h/db")
        with adapter:
            pass
        engine_factory.return_value.dispose.assert_called_once()
        with pytest.raises(DatabaseConnectionError, match="closed"):
            adapter.execute("SELECT 1")

    def test_nested_transaction_uses_savepoint(self, engine_factory: MagicMock) -> None:
        conn = mock_connection(engine_factory)
        adapter = PostgresAdapter("postgres://h/db")

        with adapter.transaction():
            pass
        conn.begin.assert_called_once()

        conn.in_transaction.return_value = True
        with adapter.transaction():
            pass
        conn.begin_nested.assert_called_once()

    def test_query_returns_dicts(self, engine_factory: MagicMock) -> None:
        conn = mock_connection(engine_factory)
        conn.execute.return_value.mappings.return_value = [{"ok": 1}]
        raw = conn.execution_options.return_value.exec_driver_sql.return_value
        raw.mappings.return_value = [{"ok": 1}]
        adapter = PostgresAdapter("postgres://h/db")

        assert adapter.query("SELECT 1 AS ok", {}) == [{"ok": 1}]
        assert adapter.test_connection() is True

    def test_raw_sql_not_parsed_for_binds(self, engine_factory: MagicMock) -> None:
        conn = mock_connection(engine_factory)
        adapter = PostgresAdapter("postgres://h/db")

        adapter.execute("CREATE TABLE \"a:b\" (x text DEFAULT 'c:d')")

        conn.execution_options.assert_called_with(no_parameters=True)
        conn.execution_options.return_value.exec_driver_sql.assert_called_once()
        conn.execute.assert_not_called()


# ============================================================================
# Inserts and parameters
# ============================================================================


class TestInsertRows:
    """Multi-row inserts with engine-specific placeholders."""

    def test_postgres_casts(self, engine_factory: MagicMock) -> None:
        conn = mock_connection(engine_factory)
        adapter = PostgresAdapter("postgres://h/db", namespace="app")

        count = adapter.insert_rows(
            "docs",
            ["id", "body", "mood"],
            [[1, {"a": 1}, "happy"], [2, None, "sad"]],
            {"body": "jsonb", "mood": '"mood"'},
        )

        assert count == 2
        statement, params = conn.execute.call_args.args
        assert statement.text == (
            'INSERT INTO "app"."docs" ("id", "body", "mood") '
            'VALUES (:p0, CAST(:p1 AS jsonb), CAST(:p2 AS "mood"))'
        )
        assert params == [
            {"p0": 1, "p1": '{"a": 1}', "p2": "happy"},
            {"p0": 2, "p1": None, "p2": "sad"},
        ]

    def test_colon_in_identifier_escaped(self, engine_factory: MagicMock) -> None:
        conn = mock_connection(engine_factory)
        adapter = MySQLAdapter("mysql://h/db")

        adapter.insert_rows("odd:name", ["a:b"], [["x"]])

        statement = conn.execute.call_args.args[0]
        assert "`odd\\:name`" in statement.text
        assert "`a\\:b`" in statement.text

    def test_no_rows(self, engine_factory: MagicMock) -> None:
        conn = mock_connection(engine_factory)
        assert PostgresAdapter("postgres://h/db").insert_rows("t", ["a"], []) == 0
        conn.execute.assert_not_called()

    def test_bind_safe(self) -> None:
        assert bind_safe('"a:b"') == '"a\\:b"'


class TestValueAdaptation:
    """Driver-bound parameter values."""

    def test_postgres(self, engine_factory: MagicMock) -> None:
        adapter = PostgresAdapter("postgres://h/db")
        assert adapter._adapt_value(None, "jsonb") is None
        assert adapter._adapt_value([1, 2], "jsonb") == "[1, 2]"
        assert adapter._adapt_value(RawText("{bad"), "jsonb") == "{bad"
        assert adapter._adapt_value([1, 2], "integer[]") == [1, 2]
        assert adapter._adapt_value({"k": "v"}, None) == json.dumps({"k": "v"})

    def test_mysql(self, engine_factory: MagicMock) -> None:
        adapter = MySQLAdapter("mysql://h/db")
        aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        uid = UUID("12345678-1234-5678-1234-567812345678")

        assert adapter._adapt_value(True, None) == 1
        assert adapter._adapt_value(False, None) == 0
        assert adapter._adapt_value(["a", "b"], "json") == '["a", "b"]'
        assert adapter._adapt_value(uid, None) == str(uid)
        assert adapter._adapt_value(aware, None) == datetime(2024, 1, 1, 10, 0)
        assert adapter._adapt_value(7, None) == 7

    def test_recoverable_errors(self, engine_factory: MagicMock) -> None:
        pg = PostgresAdapter("postgres://h/db")
        my = MySQLAdapter("mysql://h/db")
        assert pg.is_recoverable_row_error(Exception('invalid input value for enum mood: "x"'))
        assert not pg.is_recoverable_row_error(Exception("disk full"))
        assert my.is_recoverable_row_error(Exception("Data truncated for column 'state' at row 1"))


# ============================================================================
# Engine-specific load support
# ============================================================================


class TestLoadSupport:
    """Constraint suspension, truncation and sequences."""

    def test_postgres_suspend(self, engine_factory: MagicMock) -> None:
        adapter = PostgresAdapter("postgres://h/db")
        adapter.execute = MagicMock()

        with adapter.suspend_constraints() as suspended:
            assert suspended is True

        assert [c.args[0] for c in adapter.execute.call_args_list] == [
            "SET session_replication_role = 'replica'",
            "SET session_replication_role = 'origin'",
        ]

    def test_postgres_suspend_refused(self, engine_factory: MagicMock) -> None:
        adapter = PostgresAdapter("postgres://h/db")
        adapter.execute = MagicMock(
            side_effect=DBAPIError("SET", None, Exception("permission denied"))
        )

        with adapter.suspend_constraints() as suspended:
            assert suspended is False

    def test_postgres_truncate_cascades(self, engine_factory: MagicMock) -> None:
        adapter = PostgresAdapter("postgres://h/db")
        adapter.execute = MagicMock()
        adapter.truncate("users")
        adapter.execute.assert_called_once_with('TRUNCATE TABLE "users" CASCADE')

    def test_postgres_reset_sequence(self, engine_factory: MagicMock) -> None:
        adapter = PostgresAdapter("postgres://h/db")
        adapter.query = MagicMock(return_value=[{"seq": "public.users_id_seq"}])
        adapter.execute = MagicMock()

        assert adapter.reset_sequence("users", "id") is True
        sql, params = adapter.execute.call_args.args
        assert "setval" in sql
        assert 'MAX("id")' in sql
        assert params == {"s": "public.users_id_seq"}

    def test_postgres_reset_sequence_missing(self, engine_factory: MagicMock) -> None:
        adapter = PostgresAdapter("postgres://h/db")
        adapter.query = MagicMock(return_value=[{"seq": None}])
        adapter.execute = MagicMock()

        assert adapter.reset_sequence("users", "id") is False
        adapter.execute.assert_not_called()

    def test_mysql_truncate_outside_suspension(self, engine_factory: MagicMock) -> None:
        adapter = MySQLAdapter("mysql://h/db")
        adapter.execute = MagicMock()

        adapter.truncate("users")

        assert [c.args[0] for c in adapter.execute.call_args_list] == [
            "SET FOREIGN_KEY_CHECKS = 0",
            "TRUNCATE TABLE `users`",
            "SET FOREIGN_KEY_CHECKS = 1",
        ]

    def test_mysql_truncate_inside_suspension(self, engine_factory: MagicMock) -> None:
        adapter = MySQLAdapter("mysql://h/db")
        adapter.execute = MagicMock()

        with adapter.suspend_constraints():
            adapter.truncate("users")

        assert [c.args[0] for c in adapter.execute.call_args_list] == [
            "SET FOREIGN_KEY_CHECKS = 0",
            "TRUNCATE TABLE `users`",
            "SET FOREIGN_KEY_CHECKS = 1",
        ]

    def test_mysql_sequences_and_enums(self, engine_factory: MagicMock) -> None:
        adapter = MySQLAdapter("mysql://h/db")
        assert adapter.reset_sequence("users", "id") is False
        assert adapter.enum_exists("anything") is False
