"""Offline check of a snapshot directory.

Reads ``schema.json`` and every row file without touching a database:
headers must match the schema's column order and every record must have
the right field count.  Foreign-key references are checked when the
referenced column's values are available in the snapshot.

Usage:
    from db_snapshot.snapshot.validate import validate_snapshot

    report = validate_snapshot("snapshots/databases/app/v1")
    if not report.valid:
        print(report.errors)
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from db_snapshot.exceptions import RowFormatError, SerializationError
from db_snapshot.schema.models import Table
from db_snapshot.schema.ordering import find_cycles
from db_snapshot.schema.serializer import read_schema
from db_snapshot.snapshot.codec import NULL_TOKEN
from db_snapshot.snapshot.rowfile import open_row_file, row_file_path

logger = logging.getLogger(__name__)


class TableCheck(BaseModel):
    table: str
    rows: int = 0
    present: bool = True
    error: str | None = None


class SnapshotValidation(BaseModel):
    """Result of ``validate_snapshot``.

    Attributes:
        valid: True when the schema loads and no row file is corrupt.
        directory: Snapshot directory checked.
        database_type: Engine recorded in ``schema.json``.
        tables: Per-table results in schema order.
        errors: Problems that would abort a restore of that table.
        warnings: Problems a restore tolerates (missing files, dangling
            references, cycles).
    """

    valid: bool = False
    directory: str
    database_type: str | None = None
    tables: list[TableCheck] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return sum(t.rows for t in self.tables)


def _check_table(
    directory: Path,
    table: Table,
    key_columns: set[str],
    key_values: dict[str, set[str]],
) -> TableCheck:
    check = TableCheck(table=table.name)
    path = row_file_path(directory, table.name)
    if not path.exists():
        check.present = False
        return check

    indexes = {
        name: table.column_names.index(name.split(".", 1)[1])
        for name in key_columns
        if name.split(".", 1)[0] == table.name
    }
    for name in indexes:
        key_values.setdefault(name, set())

    try:
        with open_row_file(path) as (header, records):
            if header != table.column_names:
                raise RowFormatError(
                    f"Header {header} does not match columns {table.column_names}",
                    table=table.name,
                    line=1,
                )
            for line, fields in records:
                if len(fields) != len(table.columns):
                    raise RowFormatError(
                        f"Expected {len(table.columns)} fields, got {len(fields)}",
                        table=table.name,
                        line=line,
                    )
                for name, index in indexes.items():
                    key_values[name].add(fields[index])
                check.rows += 1
    except (RowFormatError, SerializationError) as e:
        where = f" (line {e.line})" if isinstance(e, RowFormatError) and e.line else ""
        check.error = f"{e}{where}"
    return check


def _dangling_references(
    directory: Path,
    table: Table,
    key_values: dict[str, set[str]],
) -> list[str]:
    fk_columns = [
        (table.column_names.index(c.name), c)
        for c in table.foreign_keys
        if c.foreign_key.qualified in key_values
    ]
    if not fk_columns:
        return []

    warnings: list[str] = []
    with open_row_file(row_file_path(directory, table.name)) as (_, records):
        for line, fields in records:
            for index, column in fk_columns:
                value = fields[index]
                if value in ("", NULL_TOKEN, "null"):
                    continue
                if value not in key_values[column.foreign_key.qualified]:
                    warnings.append(
                        f"{table.name}.{column.name} line {line}: '{value}' not found "
                        f"in {column.foreign_key.qualified}"
                    )
    return warnings


def validate_snapshot(directory: str | Path) -> SnapshotValidation:
    """Check a snapshot directory for structural problems.

    Never raises for problems inside the snapshot; they are reported.
    """
    directory = Path(directory)
    report = SnapshotValidation(directory=str(directory))

    try:
        schema = read_schema(directory)
    except SerializationError as e:
        report.errors.append(str(e))
        return report
    report.database_type = schema.database_type

    key_columns = {
        c.foreign_key.qualified for t in schema.tables for c in t.foreign_keys
    }
    key_columns = {
        name for name in key_columns
        if (t := schema.get_table(name.split(".", 1)[0])) is not None
        and t.get_column(name.split(".", 1)[1]) is not None
    }
    key_values: dict[str, set[str]] = {}

    for table in schema.tables:
        check = _check_table(directory, table, key_columns, key_values)
        report.tables.append(check)
        if not check.present:
            report.warnings.append(f"No row file for {table.name}")
        elif check.error:
            report.errors.append(f"{table.name}: {check.error}")

    broken = {c.table for c in report.tables if c.error or not c.present}
    usable = {name: values for name, values in key_values.items() if name.split(".", 1)[0] not in broken}
    for table in schema.tables:
        if table.name in broken:
            continue
        report.warnings.extend(_dangling_references(directory, table, usable))

    for source, target in find_cycles(schema.tables):
        report.warnings.append(f"Foreign-key cycle between {source} and {target}")

    report.valid = not report.errors
    logger.info(
        "Validated %s: %d tables, %d errors, %d warnings",
        directory,
        len(report.tables),
        len(report.errors),
        len(report.warnings),
    )
    return report
