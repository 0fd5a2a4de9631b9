"""Load snapshot.toml.

The file is looked up in the working directory and its parents, so commands
run from a subdirectory of a project still find the project's config.
"""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_snapshot.config.models import SnapshotConfig
from db_snapshot.exceptions import ConfigError

CONFIG_FILENAME = "snapshot.toml"


def find_config(start: Path | None = None) -> Path | None:
    """Return the nearest snapshot.toml at or above ``start`` (default: cwd)."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Path | str | None = None) -> SnapshotConfig:
    """Load configuration from TOML file.

    Args:
        config_path: Path to snapshot.toml (default: nearest one at or above
            the working directory)

    Returns:
        SnapshotConfig with all profiles and settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigError: If the file is not valid TOML or a value is invalid
    """
    if config_path is None:
        config_path = find_config() or Path(CONFIG_FILENAME)
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Snapshot config not found: {config_path}\n"
            f"Create {CONFIG_FILENAME} with a [profiles.<name>] section, "
            f"or pass --url."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        return SnapshotConfig.model_validate({**data, "source_path": str(config_path)})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e
