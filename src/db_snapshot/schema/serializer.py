"""Read and write ``schema.json`` snapshot files.

Usage:
    from db_snapshot.schema.serializer import read_schema, write_schema

    write_schema(schema, "snapshots/app/v1/schema.json")
    schema = read_schema("snapshots/app/v1/schema.json", expected_engine="postgres")
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from db_snapshot.exceptions import SerializationError
from db_snapshot.schema.models import Schema

logger = logging.getLogger(__name__)

SCHEMA_FILENAME = "schema.json"


def dump_schema(schema: Schema) -> str:
    """Serialize a schema to pretty-printed JSON text."""
    return json.dumps(schema.to_document(), indent=2)


def load_schema(text: str) -> Schema:
    """Parse JSON text into a ``Schema``.

    Raises:
        SerializationError: If the text is not JSON or does not validate.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Invalid JSON in schema document: {e}") from e

    if not isinstance(document, dict):
        raise SerializationError("Schema document must be a JSON object")

    try:
        return Schema.model_validate(document)
    except ValidationError as e:
        raise SerializationError(f"Schema document does not validate: {e}") from e


def write_schema(schema: Schema, path: str | Path) -> Path:
    """Write ``schema`` to ``path``, creating parent directories.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_schema(schema))
    logger.debug("Wrote schema (%d tables) to %s", len(schema.tables), path)
    return path


def read_schema(path: str | Path, expected_engine: str | None = None) -> Schema:
    """Read a ``schema.json`` file.

    Args:
        path: File to read.  A directory is accepted and resolved to its
            ``schema.json``.
        expected_engine: When given and different from the stored
            ``databaseType``, a warning is logged (cross-engine restore).

    Raises:
        SerializationError: If the file is missing, unreadable, or invalid.
    """
    path = Path(path)
    if path.is_dir():
        path = path / SCHEMA_FILENAME

    try:
        text = path.read_text()
    except FileNotFoundError as e:
        raise SerializationError(f"Schema file not found: {path}") from e
    except OSError as e:
        raise SerializationError(f"Cannot read schema file {path}: {e}") from e

    schema = load_schema(text)

    if expected_engine and schema.database_type != expected_engine:
        logger.warning(
            "Schema was captured from %s but is being used with %s",
            schema.database_type,
            expected_engine,
        )
    return schema
