"""Local snapshot storage layout.

Snapshots live under ``<storage>/databases/<database>/<version>``; a snapshot
exported without a version goes to ``unversioned``.

Usage:
    from db_snapshot.snapshot.storage import get_version_path, list_local_snapshots

    path = get_version_path(".snapshots", "app", "v1")
    for ref in list_local_snapshots(".snapshots"):
        print(ref.database, ref.version, ref.table_count)
"""

import logging
from pathlib import Path

from pydantic import BaseModel

from db_snapshot.exceptions import SnapshotError
from db_snapshot.schema.serializer import SCHEMA_FILENAME, read_schema

logger = logging.getLogger(__name__)

DATABASES_DIR = "databases"
UNVERSIONED = "unversioned"


class SnapshotRef(BaseModel):
    """A snapshot found in local storage.

    Attributes:
        database: Database name (directory under ``databases/``).
        version: Version name (``unversioned`` when none was given).
        path: Snapshot directory.
        table_count: Tables in its ``schema.json``, or ``None`` if unreadable.
        database_type: Engine the snapshot was captured from, if readable.
    """

    database: str
    version: str
    path: str
    table_count: int | None = None
    database_type: str | None = None


def get_version_path(
    storage_path: str | Path,
    database: str,
    version: str | None = None,
) -> Path:
    """Directory of one snapshot version.

    Example:
        >>> get_version_path(".snapshots", "app")
        PosixPath('.snapshots/databases/app/unversioned')
    """
    return Path(storage_path) / DATABASES_DIR / database / (version or UNVERSIONED)


def list_local_snapshots(storage_path: str | Path) -> list[SnapshotRef]:
    """List every version directory that holds a ``schema.json``.

    Sorted by database, then version.  A snapshot whose schema cannot be read
    is still listed, without a table count.
    """
    root = Path(storage_path) / DATABASES_DIR
    if not root.is_dir():
        return []

    refs: list[SnapshotRef] = []
    for database_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        for version_dir in sorted(p for p in database_dir.iterdir() if p.is_dir()):
            if not (version_dir / SCHEMA_FILENAME).exists():
                continue
            ref = SnapshotRef(
                database=database_dir.name,
                version=version_dir.name,
                path=str(version_dir),
            )
            try:
                schema = read_schema(version_dir)
            except SnapshotError as e:
                logger.warning("Unreadable snapshot %s: %s", version_dir, e)
            else:
                ref.table_count = len(schema.tables)
                ref.database_type = schema.database_type
            refs.append(ref)
    return refs
