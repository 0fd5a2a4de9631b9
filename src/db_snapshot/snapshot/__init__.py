"""Snapshot export, restore, codec and local storage.

Usage:
    from db_snapshot.snapshot import export_snapshot, restore_snapshot

    export_snapshot(source_client, "snapshots/databases/app/v1")
    result = restore_snapshot(target_client, "snapshots/databases/app/v1")
"""

from db_snapshot.snapshot.codec import decode, decode_row, encode, encode_row
from db_snapshot.snapshot.ddl import DDLSynthesizer
from db_snapshot.snapshot.models import (
    ExportResult,
    RestorePlan,
    RestoreResult,
    RestoreStage,
    TableLoadResult,
)
from db_snapshot.snapshot.restore import plan_restore, restore_snapshot
from db_snapshot.snapshot.rowfile import open_row_file, read_rows, write_rows
from db_snapshot.snapshot.storage import (
    SnapshotRef,
    get_version_path,
    list_local_snapshots,
)
from db_snapshot.snapshot.validate import SnapshotValidation, validate_snapshot
from db_snapshot.snapshot.writer import export_snapshot

__all__ = [
    # codec
    "encode",
    "decode",
    "encode_row",
    "decode_row",
    # ddl
    "DDLSynthesizer",
    # models
    "ExportResult",
    "RestorePlan",
    "RestoreResult",
    "RestoreStage",
    "TableLoadResult",
    # operations
    "export_snapshot",
    "restore_snapshot",
    "plan_restore",
    # row files
    "open_row_file",
    "read_rows",
    "write_rows",
    # storage
    "SnapshotRef",
    "get_version_path",
    "list_local_snapshots",
    # validation
    "SnapshotValidation",
    "validate_snapshot",
]
