"""Restore a snapshot directory into a database.

A restore runs in stages (``RestoreStage``):

1. enums: create missing enum types (PostgreSQL).
2. tables: create missing tables without foreign keys; truncate existing ones.
3. constraints: attach foreign keys whose target table and column exist.
4. data: load each table's row file in dependency order with foreign-key
   enforcement suspended, one transaction per table.
5. sequences: advance sequences past the loaded keys.

A failure in stage 1 or 2 aborts the restore (``DDLError``).  Anything
scoped to one constraint, one row or one table is logged, recorded in the
``RestoreResult`` and the restore carries on.

Atomicity: there is no global transaction.  Each table loads inside its own
transaction, so a table that fails is rolled back to its truncated state
while tables loaded before it stay committed.

Usage:
    from db_snapshot.snapshot.restore import restore_snapshot

    result = restore_snapshot(client, "snapshots/databases/app/v1")
    for warning in result.warnings:
        print(warning)
"""

import logging
from pathlib import Path
from typing import Any, Sequence

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.exceptions import DDLError, RowFormatError
from db_snapshot.schema.defaults import SequenceDefault
from db_snapshot.schema.models import Schema, Table
from db_snapshot.schema.ordering import find_cycles, order_tables
from db_snapshot.schema.serializer import read_schema
from db_snapshot.snapshot.codec import decode_row
from db_snapshot.snapshot.ddl import DDLSynthesizer
from db_snapshot.snapshot.models import (
    RestorePlan,
    RestoreResult,
    RestoreStage,
    TableLoadResult,
)
from db_snapshot.snapshot.rowfile import open_row_file, row_file_path

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


def _already_exists(exc: BaseException) -> bool:
    return "already exists" in str(exc).lower() or "duplicate" in str(exc).lower()


# ------------------------------------------------------------------
# Planning
# ------------------------------------------------------------------


def plan_restore(schema: Schema, engine: str, namespace: str | None = None) -> RestorePlan:
    """Build the statements and load order of a restore without a database.

    Args:
        schema: Snapshot schema.
        engine: Target engine tag.
        namespace: Optional schema/database qualifier.

    Returns:
        ``RestorePlan`` with every statement a restore into an empty
        database would run.
    """
    ddl = DDLSynthesizer(engine, schema, namespace=namespace)
    ordered = order_tables(schema.tables)

    plan = RestorePlan(engine=engine, load_order=[t.name for t in ordered])
    plan.cycles = find_cycles(schema.tables)
    for enum in schema.enums:
        statement = ddl.create_enum(enum)
        if statement:
            plan.enum_statements.append(statement)
    for table in ordered:
        plan.table_statements.append(ddl.create_table(table))
    for table in ordered:
        for column in table.foreign_keys:
            plan.constraint_statements.append(ddl.add_foreign_key(table, column))
    return plan


# ------------------------------------------------------------------
# Restore
# ------------------------------------------------------------------


class SnapshotRestorer:
    """Runs one restore of ``schema`` + row files into ``client``.

    Args:
        client: Connected ``DatabaseClient`` for the target.
        schema: Snapshot schema.
        directory: Directory holding the row files.
        batch_size: Rows per multi-row insert.
    """

    def __init__(
        self,
        client: DatabaseClient,
        schema: Schema,
        directory: str | Path,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.client = client
        self.schema = schema
        self.directory = Path(directory)
        self.batch_size = max(1, batch_size)
        self.ddl = DDLSynthesizer(client.engine, schema, namespace=getattr(client, "namespace", None))
        self.ordered = order_tables(schema.tables)
        self.result = RestoreResult(engine=client.engine, directory=str(self.directory))

    def _warn(self, message: str, *args: Any) -> None:
        logger.warning(message, *args)
        self.result.warnings.append(message % args if args else message)

    def run(self) -> RestoreResult:
        self.create_enums()
        self.create_tables()
        self.attach_constraints()
        self.load_data()
        self.reset_sequences()
        self.result.stage = RestoreStage.DONE
        self.result.success = True
        logger.info(
            "Restore complete: %d rows loaded, %d skipped, %d failed tables",
            self.result.rows_loaded,
            self.result.rows_skipped,
            len(self.result.failed_tables),
        )
        return self.result

    # -- stage 1 -------------------------------------------------------

    def create_enums(self) -> None:
        for enum in self.schema.enums:
            statement = self.ddl.create_enum(enum)
            if statement is None:
                continue
            if self.client.enum_exists(enum.name):
                logger.info("Enum %s already exists", enum.name)
                continue
            try:
                self.client.execute(statement)
            except Exception as e:
                if _already_exists(e):
                    logger.info("Enum %s already exists", enum.name)
                    continue
                raise DDLError(f"Failed to create enum {enum.name}: {e}", statement) from e
            self.result.enums_created.append(enum.name)
            logger.info("Created enum: %s", enum.name)
        self.result.stage = RestoreStage.ENUMS_CREATED

    # -- stage 2 -------------------------------------------------------

    def create_tables(self) -> None:
        for table in self.ordered:
            if self.client.table_exists(table.name):
                try:
                    self.client.truncate(table.name)
                except Exception as e:
                    raise DDLError(
                        f"Failed to truncate table {table.name}: {e}",
                        self.ddl.truncate_table(table),
                    ) from e
                self.result.tables_truncated.append(table.name)
                logger.info("Truncated table: %s", table.name)
                continue

            statement = self.ddl.create_table(table)
            try:
                self.client.execute(statement)
            except Exception as e:
                raise DDLError(f"Failed to create table {table.name}: {e}", statement) from e
            self.result.tables_created.append(table.name)
            logger.info("Created table: %s", table.name)
        self.result.stage = RestoreStage.TABLES_CREATED

    # -- stage 3 -------------------------------------------------------

    def attach_constraints(self) -> None:
        for table in self.ordered:
            for column in table.foreign_keys:
                fk = column.foreign_key
                label = f"{table.name}.{column.name}"
                if not self.client.table_exists(fk.table):
                    self._warn(
                        "Skipping foreign key %s: referenced table %s does not exist",
                        label,
                        fk.table,
                    )
                    self.result.constraints_skipped.append(label)
                    continue
                if not self.client.column_exists(fk.table, fk.column):
                    self._warn(
                        "Skipping foreign key %s: referenced column %s does not exist",
                        label,
                        fk.qualified,
                    )
                    self.result.constraints_skipped.append(label)
                    continue

                try:
                    self.client.execute(self.ddl.add_foreign_key(table, column))
                except Exception as e:
                    if _already_exists(e):
                        logger.info("Foreign key %s already exists", label)
                    else:
                        self._warn("Skipping foreign key %s: %s", label, e)
                        self.result.constraints_skipped.append(label)
                        continue
                self.result.constraints_added.append(label)
        self.result.stage = RestoreStage.CONSTRAINTS_ATTACHED

    # -- stage 4 -------------------------------------------------------

    def load_data(self) -> None:
        for source, target in find_cycles(self.schema.tables):
            self.result.warnings.append(
                f"Foreign-key cycle between {source} and {target}; load order is best-effort"
            )

        with self.client.suspend_constraints() as suspended:
            if not suspended:
                self.result.warnings.append(
                    "Foreign-key enforcement could not be suspended; relying on load order"
                )
            for table in self.ordered:
                self.result.tables.append(self.load_table(table))
        self.result.stage = RestoreStage.DATA_LOADED

    def load_table(self, table: Table) -> TableLoadResult:
        """Load one row file inside a transaction; never raises for row-level problems."""
        stats = TableLoadResult(table=table.name)
        path = row_file_path(self.directory, table.name)
        if not path.exists():
            logger.info("No row file for %s; skipping", table.name)
            stats.status = "missing"
            return stats

        column_names = table.column_names
        casts = {
            column.name: cast
            for column in table.columns
            if (cast := self.ddl.parameter_cast(column, table)) is not None
        }

        try:
            with self.client.transaction():
                with open_row_file(path) as (header, records):
                    if header != column_names:
                        raise RowFormatError(
                            f"Header {header} does not match columns {column_names}",
                            table=table.name,
                            line=1,
                        )
                    batch: list[tuple[int, list[Any]]] = []
                    for line, fields in records:
                        values = decode_row(fields, table.columns, table=table.name, line=line)
                        batch.append((line, values))
                        if len(batch) >= self.batch_size:
                            self._flush(table, column_names, casts, batch, stats)
                            batch = []
                    if batch:
                        self._flush(table, column_names, casts, batch, stats)
        except RowFormatError as e:
            where = f" (line {e.line})" if e.line else ""
            self._warn("Aborted load of %s%s: %s", table.name, where, e)
            return TableLoadResult(table=table.name, status="failed", error=str(e))
        except Exception as e:
            self._warn("Aborted load of %s: %s", table.name, e)
            return TableLoadResult(table=table.name, status="failed", error=str(e))

        logger.info(
            "Loaded %s: %d rows (%d skipped)", table.name, stats.rows_loaded, stats.rows_skipped
        )
        return stats

    def _flush(
        self,
        table: Table,
        column_names: list[str],
        casts: dict[str, str],
        batch: Sequence[tuple[int, list[Any]]],
        stats: TableLoadResult,
    ) -> None:
        try:
            with self.client.transaction():
                self.client.insert_rows(table.name, column_names, [v for _, v in batch], casts)
            stats.rows_loaded += len(batch)
            return
        except Exception as e:
            if len(batch) == 1 and not self.client.is_recoverable_row_error(e):
                raise
            logger.debug("Batch insert into %s failed (%s); retrying row by row", table.name, e)

        for line, values in batch:
            try:
                with self.client.transaction():
                    self.client.insert_rows(table.name, column_names, [values], casts)
            except Exception as e:
                if not self.client.is_recoverable_row_error(e):
                    raise
                stats.rows_skipped += 1
                self._warn("Skipping row %d of %s: %s", line, table.name, e)
                continue
            stats.rows_loaded += 1

    # -- stage 5 -------------------------------------------------------

    def reset_sequences(self) -> None:
        loaded = {t.table for t in self.result.tables if t.status == "loaded" and t.rows_loaded}
        for table in self.ordered:
            if table.name not in loaded:
                continue
            for column in table.columns:
                if not isinstance(column.default, SequenceDefault):
                    continue
                try:
                    if self.client.reset_sequence(table.name, column.name):
                        self.result.sequences_reset.append(f"{table.name}.{column.name}")
                except Exception as e:
                    self._warn("Could not reset sequence for %s.%s: %s", table.name, column.name, e)


def restore_snapshot(
    client: DatabaseClient,
    directory: str | Path,
    *,
    schema: Schema | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
) -> RestoreResult:
    """Restore a snapshot directory into the client's database.

    Args:
        client: Connected ``DatabaseClient`` for the target.
        directory: Snapshot directory (``schema.json`` + ``<table>.csv``).
        schema: Use this schema instead of reading ``schema.json``.
        batch_size: Rows per multi-row insert.
        dry_run: Plan only; nothing is executed.

    Returns:
        ``RestoreResult``.  Skipped constraints, skipped rows and failed
        tables are reported in it rather than raised.

    Raises:
        SerializationError: If ``schema.json`` is missing or invalid.
        DDLError: If an enum or table cannot be created (or truncated).
        DatabaseConnectionError: If the client cannot reach the database.

    Example:
        result = restore_snapshot(client, "snapshots/databases/app/v1", batch_size=1000)
        if result.failed_tables:
            print("Failed:", result.failed_tables)
    """
    if schema is None:
        schema = read_schema(directory, expected_engine=client.engine)

    if dry_run:
        plan = plan_restore(schema, client.engine, getattr(client, "namespace", None))
        return RestoreResult(
            success=True,
            engine=client.engine,
            directory=str(directory),
            dry_run=True,
            statements=plan.statements,
        )

    logger.info("Restoring %d tables from %s", len(schema.tables), directory)
    return SnapshotRestorer(client, schema, directory, batch_size=batch_size).run()
