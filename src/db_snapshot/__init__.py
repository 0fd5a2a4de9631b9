"""db-snapshot: portable snapshots of relational databases.

Captures a PostgreSQL or MySQL database (schema plus rows) into a directory
of ``schema.json`` and CSV row files, restores it into either engine, and
generates referentially consistent synthetic data for a schema.

Usage:
    from db_snapshot import get_client, export_snapshot, restore_snapshot
    from db_snapshot import Schema, read_schema, generate_dataset, write_dataset
    from db_snapshot import load_config, DatabaseProfile, SnapshotConfig
"""

__version__ = "0.1.0"

# Adapters
from db_snapshot.adapters import DatabaseClient, MySQLAdapter, PostgresAdapter

# Config
from db_snapshot.config.loader import load_config
from db_snapshot.config.models import DatabaseProfile, SnapshotConfig

# Factory
from db_snapshot.factory import connect, get_client, resolve_url

# Schema
from db_snapshot.schema import (
    Column,
    EnumType,
    ForeignKey,
    Schema,
    Table,
    get_introspector,
    order_tables,
    read_schema,
    write_schema,
)

# Snapshots
from db_snapshot.snapshot import (
    ExportResult,
    RestoreResult,
    export_snapshot,
    plan_restore,
    restore_snapshot,
    validate_snapshot,
)

# Generator
from db_snapshot.generator import (
    Dataset,
    GeneratorContext,
    generate_dataset,
    write_dataset,
)

from db_snapshot.exceptions import SnapshotError

__all__ = [
    # Adapters
    "DatabaseClient",
    "PostgresAdapter",
    "MySQLAdapter",
    # Config
    "load_config",
    "DatabaseProfile",
    "SnapshotConfig",
    # Factory
    "connect",
    "get_client",
    "resolve_url",
    # Schema
    "Column",
    "EnumType",
    "ForeignKey",
    "Schema",
    "Table",
    "get_introspector",
    "order_tables",
    "read_schema",
    "write_schema",
    # Snapshots
    "ExportResult",
    "RestoreResult",
    "export_snapshot",
    "plan_restore",
    "restore_snapshot",
    "validate_snapshot",
    # Generator
    "Dataset",
    "GeneratorContext",
    "generate_dataset",
    "write_dataset",
    # Errors
    "SnapshotError",
]
