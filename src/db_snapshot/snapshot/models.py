"""Result and plan models for export, restore and generation runs."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class RestoreStage(str, Enum):
    """Progress of a restore; each stage completes before the next starts."""

    IDLE = "idle"
    ENUMS_CREATED = "enums_created"
    TABLES_CREATED = "tables_created"
    CONSTRAINTS_ATTACHED = "constraints_attached"
    DATA_LOADED = "data_loaded"
    DONE = "done"


@dataclass
class RestorePlan:
    """Statements a restore would run, without touching a database.

    Attributes:
        engine: Target engine tag.
        enum_statements: ``CREATE TYPE`` statements (PostgreSQL only).
        table_statements: ``CREATE TABLE`` statements in load order.
        constraint_statements: ``ALTER TABLE ... ADD CONSTRAINT`` statements.
        load_order: Table names in dependency order.
        cycles: Foreign-key back edges ``(referencing, referenced)``.
    """

    engine: str
    enum_statements: list[str] = field(default_factory=list)
    table_statements: list[str] = field(default_factory=list)
    constraint_statements: list[str] = field(default_factory=list)
    load_order: list[str] = field(default_factory=list)
    cycles: list[tuple[str, str]] = field(default_factory=list)

    @property
    def statements(self) -> list[str]:
        return self.enum_statements + self.table_statements + self.constraint_statements


class TableLoadResult(BaseModel):
    """Outcome of loading one table's row file.

    Attributes:
        table: Table name.
        status: ``loaded``, ``missing`` (no row file) or ``failed``.
        rows_loaded: Rows inserted.
        rows_skipped: Rows skipped after a recoverable insert error.
        error: Error message when ``status`` is ``failed``.
    """

    table: str
    status: Literal["loaded", "missing", "failed"] = "loaded"
    rows_loaded: int = 0
    rows_skipped: int = 0
    error: str | None = None


class RestoreResult(BaseModel):
    """Result of restoring a snapshot.

    A restore with skipped constraints, skipped rows or failed tables is
    still successful; those are reported in ``warnings``.

    Attributes:
        success: True once the restore reached ``DONE`` (or a dry run planned).
        engine: Target engine tag.
        directory: Snapshot directory.
        stage: Last completed stage.
        dry_run: True if nothing was executed.
        statements: Planned statements (dry run only).
        enums_created: Enum types created.
        tables_created: Tables created.
        tables_truncated: Pre-existing tables truncated.
        constraints_added: Foreign keys attached (or already present).
        constraints_skipped: Foreign keys not attached, as ``table.column``.
        sequences_reset: Sequences advanced, as ``table.column``.
        tables: Per-table load outcome, in load order.
        warnings: Human-readable warnings.
    """

    success: bool = False
    engine: str
    directory: str
    stage: RestoreStage = RestoreStage.IDLE
    dry_run: bool = False
    statements: list[str] = Field(default_factory=list)
    enums_created: list[str] = Field(default_factory=list)
    tables_created: list[str] = Field(default_factory=list)
    tables_truncated: list[str] = Field(default_factory=list)
    constraints_added: list[str] = Field(default_factory=list)
    constraints_skipped: list[str] = Field(default_factory=list)
    sequences_reset: list[str] = Field(default_factory=list)
    tables: list[TableLoadResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def failed_tables(self) -> list[str]:
        return [t.table for t in self.tables if t.status == "failed"]

    @property
    def rows_loaded(self) -> int:
        return sum(t.rows_loaded for t in self.tables)

    @property
    def rows_skipped(self) -> int:
        return sum(t.rows_skipped for t in self.tables)

    def get_table(self, name: str) -> TableLoadResult | None:
        for table in self.tables:
            if table.table == name:
                return table
        return None


class ExportResult(BaseModel):
    """Result of exporting a database to a snapshot directory.

    Attributes:
        success: True if every table was written.
        engine: Source engine tag.
        directory: Snapshot directory.
        row_counts: Rows written per table, in write order.
    """

    success: bool = False
    engine: str
    directory: str
    row_counts: dict[str, int] = Field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())
