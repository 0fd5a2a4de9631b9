"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that all adapters implement.  The
snapshot pipeline is synchronous: one client holds one connection for the
duration of an export, restore or introspection.

Usage:
    from db_snapshot.adapters.base import DatabaseClient

    def do_work(client: DatabaseClient) -> None:
        rows = client.query("SELECT 1 AS one")
        with client.transaction():
            client.execute("TRUNCATE TABLE users")
        client.close()
"""

from contextlib import AbstractContextManager
from typing import Any, Iterator, Protocol, Sequence

from db_snapshot.adapters.quoting import Quoter


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    This Protocol keeps the introspector, restore orchestrator and writer
    independent of the engine (PostgreSQL, MySQL).

    Attributes:
        engine: Engine tag, ``"postgres"`` or ``"mysql"``.
        quoter: Quoting rules for this engine.
        namespace: Schema (PostgreSQL) or database (MySQL) the client
            works in, or ``None`` for the connection default.
    """

    engine: str
    quoter: Quoter
    namespace: str | None

    def query(self, sql: str, params: dict | None = None) -> list[dict]:
        """Run a query and return all rows as dicts.

        Args:
            sql: SQL text.  With ``params``, named ``:param`` placeholders are
                bound; without, the text is sent as-is.
            params: Optional dict of named parameters.

        Returns:
            List of dicts, one per row.  Empty list if no rows.

        Example:
            rows = client.query(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_schema = :ns",
                {"ns": "public"},
            )
        """
        ...

    def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a statement (DDL or other non-query operation).

        Example:
            client.execute('ALTER TABLE "posts" ADD COLUMN "title" text')
        """
        ...

    def iter_rows(
        self, table: str, columns: Sequence[str], batch_size: int = 1000
    ) -> Iterator[tuple]:
        """Stream every row of ``table`` as tuples in ``columns`` order."""
        ...

    def table_exists(self, table: str) -> bool:
        ...

    def column_exists(self, table: str, column: str) -> bool:
        ...

    def enum_exists(self, name: str) -> bool:
        """Whether a named enum type exists (always ``False`` on MySQL)."""
        ...

    def transaction(self) -> AbstractContextManager[Any]:
        """Open a transaction, or a savepoint when one is already open.

        Commits on normal exit and rolls back when the block raises.
        """
        ...

    def insert_rows(
        self,
        table: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        column_types: dict[str, str] | None = None,
    ) -> int:
        """Insert rows in one multi-row statement.

        Args:
            table: Target table.
            columns: Column names, in the order values appear in each row.
            rows: Row values as decoded by the codec.
            column_types: Optional column name to SQL type mapping for
                parameters that need an explicit cast (JSON, enum, array).

        Returns:
            Number of rows sent.
        """
        ...

    def truncate(self, table: str) -> None:
        ...

    def suspend_constraints(self) -> AbstractContextManager[bool]:
        """Suspend foreign-key enforcement for the session.

        Yields ``True`` when enforcement was suspended, ``False`` when the
        engine refused (rows then rely on dependency order).  Enforcement is
        restored on exit.
        """
        ...

    def reset_sequence(self, table: str, column: str) -> bool:
        """Advance the column's sequence past ``MAX(column)``.

        Returns:
            ``True`` if a sequence was reset.
        """
        ...

    def is_recoverable_row_error(self, exc: BaseException) -> bool:
        """Whether an insert failure only affects the offending row."""
        ...

    def close(self) -> None:
        """Close the connection and dispose of the connection pool."""
        ...
