"""Pydantic models for the normalized schema description.

This module contains the engine-agnostic schema model shared by every
component:
- ``ForeignKey``, ``EnumType``: referenced by columns and schemas
- ``Column``, ``Table``, ``Schema``: the structure captured by introspection

The models serialize to the ``schema.json`` layout (camelCase keys, e.g.
``databaseType``, ``isPrimary``).  PascalCase keys written by older tools are
accepted on load, and bare-string defaults are classified into the closed
``ColumnDefault`` variant using the schema's ``databaseType``.

Models are frozen: once built, a ``Schema`` is only read.
"""

from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from db_snapshot.schema.defaults import (
    ColumnDefault,
    NullDefault,
    classify_default,
)

Engine = Literal["postgres", "mysql"]

SUPPORTED_ENGINES: tuple[str, ...] = ("postgres", "mysql")


_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


def _camel_keys(data: Any) -> Any:
    """Lower-case the first letter of PascalCase keys (``IsPrimary`` -> ``isPrimary``)."""
    if not isinstance(data, dict):
        return data
    return {
        (key[:1].lower() + key[1:] if isinstance(key, str) else key): value
        for key, value in data.items()
    }


# ============================================================================
# Leaf Models
# ============================================================================


class ForeignKey(BaseModel):
    """Directed reference from a column to ``table.column``.

    Example:
        >>> fk = ForeignKey(table="users", column="id")
        >>> fk.qualified
        'users.id'
    """

    model_config = _MODEL_CONFIG

    table: str
    column: str

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        return _camel_keys(data)

    @property
    def qualified(self) -> str:
        return f"{self.table}.{self.column}"


class EnumType(BaseModel):
    """Named enumerated type; value order is significant."""

    model_config = _MODEL_CONFIG

    name: str
    values: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        return _camel_keys(data)


# ============================================================================
# Table Models
# ============================================================================


class Column(BaseModel):
    """Schema for a table column.

    Example:
        >>> col = Column(name="id", type="integer", nullable=False, is_primary=True)
        >>> col.default
        NullDefault(kind='null')
    """

    model_config = _MODEL_CONFIG

    name: str
    type: str
    nullable: bool = True
    default: ColumnDefault = Field(default_factory=NullDefault)
    is_primary: bool = False
    is_unique: bool = False
    foreign_key: ForeignKey | None = None
    enum: str | None = None
    values: list[str] | None = None
    max_length: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        return _camel_keys(data)

    @field_validator("default", mode="before")
    @classmethod
    def _coerce_default(cls, value: Any) -> Any:
        if value is None:
            return NullDefault()
        if isinstance(value, (str, int, float, bool)):
            return classify_default(value).model_dump()
        return value

    @field_serializer("default")
    def _serialize_default(self, value: Any) -> dict | None:
        if isinstance(value, NullDefault):
            return None
        return value.model_dump()

    @property
    def is_enum(self) -> bool:
        return self.enum is not None or self.type.lower() == "enum"

    @property
    def has_default(self) -> bool:
        return not isinstance(self.default, NullDefault)


class Table(BaseModel):
    """Schema for a table; column order is preserved end-to-end."""

    model_config = _MODEL_CONFIG

    name: str
    columns: list[Column] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        return _camel_keys(data)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def primary_key(self) -> list[Column]:
        return [c for c in self.columns if c.is_primary]

    @property
    def foreign_keys(self) -> list[Column]:
        return [c for c in self.columns if c.foreign_key is not None]

    def get_column(self, name: str) -> Column | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None


# ============================================================================
# Schema
# ============================================================================


class Schema(BaseModel):
    """Complete engine-agnostic schema.

    ``tables`` keeps introspection order; dependency order is computed on
    demand by ``db_snapshot.schema.ordering``.

    Example:
        >>> schema = Schema(database_type="postgres", tables=[Table(name="users")])
        >>> schema.get_table("users").name
        'users'
    """

    model_config = _MODEL_CONFIG

    database_type: str = "postgres"
    enums: list[EnumType] = Field(default_factory=list)
    tables: list[Table] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _classify_legacy_defaults(cls, data: Any) -> Any:
        """Normalize keys and classify bare-string defaults with the schema's engine."""
        data = _camel_keys(data)
        if not isinstance(data, dict):
            return data
        engine = data.get("databaseType") or data.get("database_type") or "postgres"
        tables = data.get("tables")
        if not isinstance(tables, list):
            return data

        normalized_tables = []
        for table in tables:
            table = _camel_keys(table)
            if isinstance(table, dict) and isinstance(table.get("columns"), list):
                columns = []
                for column in table["columns"]:
                    column = _camel_keys(column)
                    if isinstance(column, dict):
                        raw = column.get("default")
                        if isinstance(raw, (str, bool, int, float)):
                            column = {**column, "default": classify_default(raw, engine).model_dump()}
                    columns.append(column)
                table = {**table, "columns": columns}
            normalized_tables.append(table)
        return {**data, "tables": normalized_tables, "enums": data.get("enums") or []}

    @model_validator(mode="after")
    def _check_invariants(self) -> "Schema":
        seen: set[str] = set()
        for table in self.tables:
            if table.name in seen:
                raise ValueError(f"Duplicate table name: {table.name}")
            seen.add(table.name)

        enum_names = {e.name for e in self.enums}
        for table in self.tables:
            for column in table.columns:
                if column.enum is not None and column.enum not in enum_names:
                    raise ValueError(
                        f"Column {table.name}.{column.name} references "
                        f"unknown enum '{column.enum}'"
                    )
        return self

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str) -> Table | None:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def get_enum(self, name: str) -> EnumType | None:
        for enum in self.enums:
            if enum.name == name:
                return enum
        return None

    def enum_values(self, column: Column) -> list[str] | None:
        """Allowed values for an enum-typed column, or ``None`` if unknown."""
        if column.enum is not None:
            enum = self.get_enum(column.enum)
            if enum is not None and enum.values:
                return list(enum.values)
        if column.values:
            return list(column.values)
        return None

    def to_document(self) -> dict[str, Any]:
        """Serialize to the ``schema.json`` document shape."""
        return self.model_dump(mode="json", by_alias=True)
