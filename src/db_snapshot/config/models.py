"""Pydantic models for snapshot.toml configuration."""

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from snapshot.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    namespace: str | None = None  # Postgres schema or MySQL database to read


class StorageSettings(BaseModel):
    """Where local snapshots live."""

    path: str = ".snapshots"


class RestoreSettings(BaseModel):
    batch_size: int = Field(default=500, gt=0)


class ExportSettings(BaseModel):
    batch_size: int = Field(default=1000, gt=0)


class GenerateSettings(BaseModel):
    rows: int = Field(default=10, ge=0)
    null_probability: float = Field(default=0.1, ge=0.0, le=1.0)
    seed: int | None = None


class SnapshotConfig(BaseModel):
    """Complete configuration from snapshot.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    restore: RestoreSettings = Field(default_factory=RestoreSettings)
    generate: GenerateSettings = Field(default_factory=GenerateSettings)
    source_path: str | None = None  # File the config was read from
