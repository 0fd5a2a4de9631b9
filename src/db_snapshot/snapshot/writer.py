"""Export a live database into a snapshot directory.

Usage:
    from db_snapshot.snapshot.writer import export_snapshot

    result = export_snapshot(client, "snapshots/databases/app/v1")
    print(result.row_counts)
"""

import logging
from pathlib import Path

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.schema.introspector import get_introspector
from db_snapshot.schema.models import Schema, Table
from db_snapshot.schema.ordering import order_tables
from db_snapshot.schema.serializer import SCHEMA_FILENAME, write_schema
from db_snapshot.snapshot.codec import encode_row
from db_snapshot.snapshot.models import ExportResult
from db_snapshot.snapshot.rowfile import row_file_path, write_rows

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


def export_table(
    client: DatabaseClient,
    table: Table,
    directory: str | Path,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Stream one table into ``<directory>/<table>.csv``.

    Returns:
        Number of rows written.
    """
    path = row_file_path(directory, table.name)
    if not table.columns:
        return write_rows(path, [], [])

    rows = (
        encode_row(values, table.columns)
        for values in client.iter_rows(table.name, table.column_names, batch_size)
    )
    count = write_rows(path, table.column_names, rows)
    logger.info("Exported %s: %d rows", table.name, count)
    return count


def export_snapshot(
    client: DatabaseClient,
    directory: str | Path,
    *,
    schema: Schema | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ExportResult:
    """Write ``schema.json`` and one row file per table.

    Args:
        client: Connected ``DatabaseClient`` for the source.
        directory: Snapshot directory (created if missing).
        schema: Schema to export; introspected from ``client`` when omitted.
        batch_size: Rows fetched per round trip.

    Returns:
        ``ExportResult`` with per-table row counts.

    Raises:
        DatabaseConnectionError: If the client cannot reach the database.
        IntrospectionError: If introspection fails.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    if schema is None:
        schema = get_introspector(client).introspect()
    write_schema(schema, directory / SCHEMA_FILENAME)

    result = ExportResult(engine=client.engine, directory=str(directory))
    for table in order_tables(schema.tables):
        result.row_counts[table.name] = export_table(client, table, directory, batch_size)

    result.success = True
    logger.info(
        "Exported %d tables (%d rows) to %s",
        len(result.row_counts),
        result.total_rows,
        directory,
    )
    return result
