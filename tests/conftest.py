"""Shared fixtures: an in-memory ``DatabaseClient`` and small schemas."""

import copy
import re
from contextlib import contextmanager
from typing import Any

import pytest

from db_snapshot.adapters.quoting import get_quoter
from db_snapshot.schema.defaults import SequenceDefault
from db_snapshot.schema.models import Column, ForeignKey, Schema, Table


class RecoverableRowError(Exception):
    """Stands in for a driver error the adapter classifies as row-level."""


class FakeClient:
    """In-memory client that records DDL and keeps inserted rows per table.

    ``transaction()`` snapshots the inserted rows and restores them when the
    block raises, so nested savepoint behavior matches a real connection.
    """

    _CREATE = re.compile(r'CREATE TABLE [`"](?P<name>[^`"]+)[`"]')

    def __init__(
        self,
        engine: str = "postgres",
        tables: dict[str, list[str]] | None = None,
        data: dict[str, list[tuple]] | None = None,
        reject: Any = None,
        can_suspend: bool = True,
    ):
        self.engine = engine
        self.namespace = None
        self.quoter = get_quoter(engine)
        self.tables: dict[str, list[str]] = dict(tables or {})
        self.data = data or {}
        self.reject = reject
        self.can_suspend = can_suspend
        self.enums: set[str] = set()
        self.executed: list[str] = []
        self.truncated: list[str] = []
        self.inserted: dict[str, list[list[Any]]] = {}
        self.casts: dict[str, dict[str, str]] = {}
        self.sequence_resets: list[tuple[str, str]] = []
        self.closed = False

    def query(self, sql: str, params: dict | None = None) -> list[dict]:
        return []

    def execute(self, sql: str, params: dict | None = None) -> None:
        self.executed.append(sql)
        match = self._CREATE.search(sql)
        if match:
            self.tables.setdefault(match.group("name"), [])

    def iter_rows(self, table: str, columns: list[str], batch_size: int = 1000):
        yield from self.data.get(table, [])

    def table_exists(self, table: str) -> bool:
        return table in self.tables

    def column_exists(self, table: str, column: str) -> bool:
        columns = self.tables.get(table)
        if columns is None:
            return False
        return not columns or column in columns

    def enum_exists(self, name: str) -> bool:
        return name in self.enums

    @contextmanager
    def transaction(self):
        saved = copy.deepcopy(self.inserted)
        try:
            yield self
        except BaseException:
            self.inserted = saved
            raise

    def insert_rows(self, table, columns, rows, column_types=None) -> int:
        for row in rows:
            if self.reject is not None:
                error = self.reject(table, row)
                if error is not None:
                    raise error
        self.inserted.setdefault(table, []).extend(list(r) for r in rows)
        self.casts[table] = dict(column_types or {})
        return len(rows)

    def truncate(self, table: str) -> None:
        self.truncated.append(table)
        self.inserted.pop(table, None)

    @contextmanager
    def suspend_constraints(self):
        yield self.can_suspend

    def reset_sequence(self, table: str, column: str) -> bool:
        self.sequence_resets.append((table, column))
        return True

    def is_recoverable_row_error(self, exc: BaseException) -> bool:
        return isinstance(exc, RecoverableRowError)

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def users_table() -> Table:
    return Table(
        name="users",
        columns=[
            Column(
                name="id",
                type="integer",
                nullable=False,
                is_primary=True,
                default=SequenceDefault(name="users_id_seq"),
            ),
            Column(name="email", type="text", nullable=False, is_unique=True),
            Column(name="name", type="text"),
        ],
    )


@pytest.fixture
def posts_table() -> Table:
    return Table(
        name="posts",
        columns=[
            Column(
                name="id",
                type="integer",
                nullable=False,
                is_primary=True,
                default=SequenceDefault(name="posts_id_seq"),
            ),
            Column(
                name="user_id",
                type="integer",
                nullable=False,
                foreign_key=ForeignKey(table="users", column="id"),
            ),
            Column(name="title", type="character varying", max_length=200),
        ],
    )


@pytest.fixture
def blog_schema(users_table: Table, posts_table: Table) -> Schema:
    return Schema(database_type="postgres", tables=[posts_table, users_table])
