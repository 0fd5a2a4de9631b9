"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from db_snapshot.config import load_config, DatabaseProfile, SnapshotConfig
"""

from db_snapshot.config.loader import CONFIG_FILENAME, find_config, load_config
from db_snapshot.config.models import (
    DatabaseProfile,
    ExportSettings,
    GenerateSettings,
    RestoreSettings,
    SnapshotConfig,
    StorageSettings,
)

__all__ = [
    "CONFIG_FILENAME",
    "find_config",
    "load_config",
    "DatabaseProfile",
    "ExportSettings",
    "GenerateSettings",
    "RestoreSettings",
    "SnapshotConfig",
    "StorageSettings",
]
