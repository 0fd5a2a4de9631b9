"""Exception classes for db-snapshot.

Errors that compromise structural integrity (unreadable snapshot, table that
cannot be created) propagate and abort the operation.  Errors scoped to a
single row or constraint are logged by the caller and do not appear here.
"""

__all__ = [
    "SnapshotError",
    "DatabaseConnectionError",
    "IntrospectionError",
    "SerializationError",
    "DDLError",
    "RowFormatError",
    "ValueCoercionError",
    "ConfigError",
]


class SnapshotError(Exception):
    """Base exception for db-snapshot."""


class DatabaseConnectionError(SnapshotError):
    """No usable database connection (missing, closed, or refused)."""


class IntrospectionError(SnapshotError):
    """Catalog data is malformed or missing."""


class SerializationError(SnapshotError):
    """A snapshot file is missing, corrupt, or does not validate."""


class DDLError(SnapshotError):
    """A structural statement (enum or table creation) failed."""

    def __init__(self, message: str, statement: str | None = None):
        self.statement = statement
        super().__init__(message)


class RowFormatError(SnapshotError):
    """A row file is corrupted (header or field count mismatch)."""

    def __init__(self, message: str, table: str | None = None, line: int | None = None):
        self.table = table
        self.line = line
        super().__init__(message)


class ValueCoercionError(SnapshotError):
    """A field could not be coerced to its declared type."""


class ConfigError(SnapshotError):
    """Error in configuration."""
