"""Type categories shared by the codec, DDL synthesizer, adapters and generator."""

from enum import Enum


class TypeCategory(str, Enum):
    """Coarse category of a declared column type."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"
    DATE = "date"
    TIME = "time"
    JSON = "json"
    ARRAY = "array"
    ENUM = "enum"
    UUID = "uuid"
    BINARY = "binary"
    TEXT = "text"


class RawText(str):
    """Field text passed through unmodified after every coercion attempt failed.

    Adapters send it to the database verbatim instead of re-serializing it.
    """


_INTEGER_TYPES = {
    "int", "integer", "int2", "int4", "int8", "smallint", "bigint",
    "mediumint", "serial", "bigserial", "smallserial", "serial4", "serial8",
}
_FLOAT_TYPES = {"float", "float4", "float8", "real", "double", "double precision"}
_DECIMAL_TYPES = {"numeric", "decimal", "money"}
_BOOLEAN_TYPES = {"bool", "boolean"}
_BINARY_TYPES = {"bytea", "blob", "tinyblob", "mediumblob", "longblob", "binary", "varbinary"}


def base_type(type_name: str) -> str:
    """Lower-case type name with any ``(...)`` modifier removed.

    Example:
        >>> base_type("character varying(255)")
        'character varying'
    """
    name = type_name.strip().lower()
    if "(" in name:
        name = name[: name.index("(")].strip()
    return name


def is_array_type(type_name: str) -> bool:
    name = type_name.strip().lower()
    return name.endswith("[]") or name.startswith("array")


def element_type(type_name: str) -> str:
    """Element type of an array type (``integer[]`` -> ``integer``; bare ``ARRAY`` -> ``text``)."""
    name = type_name.strip()
    if name.endswith("[]"):
        return name[:-2].strip() or "text"
    return "text"


def categorize(type_name: str, is_enum: bool = False) -> TypeCategory:
    """Classify a declared type name.

    Example:
        >>> categorize("timestamp with time zone")
        <TypeCategory.TIMESTAMP: 'timestamp'>
        >>> categorize("integer[]")
        <TypeCategory.ARRAY: 'array'>
    """
    if is_enum:
        return TypeCategory.ENUM
    if is_array_type(type_name):
        return TypeCategory.ARRAY

    name = base_type(type_name)
    if name == "enum":
        return TypeCategory.ENUM
    if name in ("json", "jsonb"):
        return TypeCategory.JSON
    if name in _BOOLEAN_TYPES:
        return TypeCategory.BOOLEAN
    if name == "tinyint" and type_name.strip().lower().startswith("tinyint(1)"):
        return TypeCategory.BOOLEAN
    if name in _INTEGER_TYPES or name.endswith("int"):
        return TypeCategory.INTEGER
    if name in _FLOAT_TYPES:
        return TypeCategory.FLOAT
    if name in _DECIMAL_TYPES:
        return TypeCategory.DECIMAL
    if name == "uuid":
        return TypeCategory.UUID
    if name in _BINARY_TYPES:
        return TypeCategory.BINARY
    if name == "date":
        return TypeCategory.DATE
    if "timestamp" in name or "datetime" in name:
        return TypeCategory.TIMESTAMP
    if name.startswith("time") or name == "year":
        return TypeCategory.TIME if name != "year" else TypeCategory.INTEGER
    return TypeCategory.TEXT
