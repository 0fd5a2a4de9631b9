"""Generate a referentially consistent synthetic dataset from a schema.

Generation runs in two passes over the tables in dependency order:

1. Key pools: every primary-key column and every column referenced by a
   foreign key gets ``row_count`` distinct values.  A primary key that is
   itself a foreign key shares the referenced pool.
2. Rows: foreign keys draw from the referenced pool (with wraparound), key
   columns take their pool value, unique columns go through a bounded retry
   loop, and everything else gets a type-appropriate fake value.

Usage:
    from db_snapshot.generator import GeneratorContext, generate_dataset, write_dataset

    dataset = generate_dataset(schema, 50, GeneratorContext(seed=7))
    write_dataset(dataset, "snapshots/databases/app/synthetic")
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from db_snapshot.generator.context import GeneratorContext
from db_snapshot.generator.values import fake_value, key_value, unique_value
from db_snapshot.schema.models import Column, EnumType, Schema, Table
from db_snapshot.schema.ordering import order_tables
from db_snapshot.schema.serializer import SCHEMA_FILENAME, write_schema
from db_snapshot.snapshot.codec import encode_row
from db_snapshot.snapshot.models import ExportResult
from db_snapshot.snapshot.rowfile import row_file_path, write_rows

logger = logging.getLogger(__name__)

PLACEHOLDER_ENUM_VALUES = ["value_1", "value_2", "value_3"]


@dataclass
class Dataset:
    """Generated rows keyed by table name, in each table's column order."""

    schema: Schema
    rows: dict[str, list[list[Any]]] = field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return sum(len(rows) for rows in self.rows.values())

    def column_values(self, table: str, column: str) -> list[Any]:
        """All generated values of one column."""
        index = self.schema.get_table(table).column_names.index(column)
        return [row[index] for row in self.rows.get(table, [])]


def _placeholder_enum_name(table: Table, column: Column) -> str:
    return f"{table.name}_{column.name}_enum"


def with_placeholder_enums(schema: Schema) -> Schema:
    """Give enum columns with no known members a placeholder enum.

    Returns the schema unchanged when every enum column resolves; otherwise a
    copy with ``<table>_<column>_enum`` (``value_1..3``) added and the
    columns pointing at it.
    """
    enums = {e.name: e for e in schema.enums}
    tables: list[Table] = []
    changed = False

    for table in schema.tables:
        columns: list[Column] = []
        for column in table.columns:
            if column.is_enum and schema.enum_values(column) is None:
                name = _placeholder_enum_name(table, column)
                enums[name] = EnumType(name=name, values=list(PLACEHOLDER_ENUM_VALUES))
                column = column.model_copy(
                    update={"enum": name, "values": list(PLACEHOLDER_ENUM_VALUES)}
                )
                changed = True
                logger.info("Using placeholder enum %s for %s.%s", name, table.name, column.name)
            columns.append(column)
        tables.append(table.model_copy(update={"columns": columns}))

    if not changed:
        return schema
    return Schema(
        database_type=schema.database_type,
        enums=list(enums.values()),
        tables=tables,
    )


def _referenced_columns(schema: Schema) -> set[str]:
    return {
        column.foreign_key.qualified
        for table in schema.tables
        for column in table.foreign_keys
    }


def build_key_pools(schema: Schema, row_count: int, ctx: GeneratorContext) -> None:
    """Pass 1: fill ``ctx.key_pools`` for key and referenced columns."""
    referenced = _referenced_columns(schema)

    for table in order_tables(schema.tables):
        for column in table.columns:
            key = f"{table.name}.{column.name}"
            if not (column.is_primary or key in referenced):
                continue

            fk = column.foreign_key
            if fk is not None and fk.qualified in ctx.key_pools:
                ctx.key_pools[key] = ctx.key_pools[fk.qualified]
                continue

            if column.is_primary:
                pool = [key_value(ctx, table.name, column, i) for i in range(row_count)]
            else:
                enum_values = schema.enum_values(column)
                pool = [
                    unique_value(ctx, table.name, column, i, enum_values)
                    for i in range(row_count)
                ]
            ctx.key_pools[key] = pool


def _row_value(
    schema: Schema,
    table: Table,
    column: Column,
    row_index: int,
    ctx: GeneratorContext,
) -> Any:
    own_pool = ctx.key_pools.get(f"{table.name}.{column.name}")
    if own_pool:
        return own_pool[row_index % len(own_pool)]

    if column.foreign_key is not None:
        target_pool = ctx.key_pools.get(column.foreign_key.qualified)
        if target_pool:
            return target_pool[row_index % len(target_pool)]

    enum_values = schema.enum_values(column) if column.is_enum else None
    if column.is_unique:
        return unique_value(ctx, table.name, column, row_index, enum_values)

    if column.nullable and ctx.rng.random() < ctx.null_probability:
        return None
    return fake_value(ctx, column, row_index, enum_values)


def generate_dataset(
    schema: Schema,
    row_count: int,
    context: GeneratorContext | None = None,
) -> Dataset:
    """Generate ``row_count`` rows for every table.

    Args:
        schema: Schema to generate for.
        row_count: Rows per table.
        context: Generator state; a fresh unseeded one when omitted.  It is
            reset before use.

    Returns:
        ``Dataset`` whose ``schema`` includes any placeholder enums.

    Raises:
        ValueError: If ``row_count`` is negative.
    """
    if row_count < 0:
        raise ValueError(f"row_count must be >= 0, got {row_count}")

    ctx = context or GeneratorContext()
    ctx.reset()
    schema = with_placeholder_enums(schema)

    build_key_pools(schema, row_count, ctx)

    dataset = Dataset(schema=schema)
    for table in order_tables(schema.tables):
        dataset.rows[table.name] = [
            [_row_value(schema, table, column, i, ctx) for column in table.columns]
            for i in range(row_count)
        ]
        logger.debug("Generated %d rows for %s", row_count, table.name)

    logger.info(
        "Generated %d rows across %d tables", dataset.total_rows, len(dataset.rows)
    )
    return dataset


def write_dataset(dataset: Dataset, directory: str | Path) -> ExportResult:
    """Write a dataset as a snapshot directory (``schema.json`` plus row files)."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    write_schema(dataset.schema, directory / SCHEMA_FILENAME)

    result = ExportResult(engine=dataset.schema.database_type, directory=str(directory))
    for table in order_tables(dataset.schema.tables):
        rows = (encode_row(row, table.columns) for row in dataset.rows.get(table.name, []))
        result.row_counts[table.name] = write_rows(
            row_file_path(directory, table.name), table.column_names, rows
        )

    result.success = True
    logger.info("Wrote synthetic snapshot to %s (%d rows)", directory, result.total_rows)
    return result
