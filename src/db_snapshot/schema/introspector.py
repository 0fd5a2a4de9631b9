"""Schema introspection via information_schema and the engine catalogs.

This module queries a live database through a ``DatabaseClient`` and builds
the engine-agnostic ``Schema``:
- Enumerated types (PostgreSQL ``pg_enum``; MySQL inline ``enum(...)``)
- Tables and columns in ordinal order, with types, nullability, defaults
- Primary key, single-column unique and foreign-key constraints

Usage:
    from db_snapshot.schema.introspector import get_introspector

    schema = get_introspector(client).introspect()
"""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.exceptions import (
    DatabaseConnectionError,
    IntrospectionError,
    SnapshotError,
)
from db_snapshot.schema.defaults import SequenceDefault, classify_default
from db_snapshot.schema.models import Column, EnumType, ForeignKey, Schema, Table

logger = logging.getLogger(__name__)


def parse_enum_values(column_type: str) -> list[str]:
    """Parse the member list of a MySQL ``enum(...)`` column type.

    Doubled quotes and backslash escapes inside a member are unescaped.

    Example:
        >>> parse_enum_values("enum('active','inactive','pending')")
        ['active', 'inactive', 'pending']
        >>> parse_enum_values("enum('it''s','b')")
        ["it's", 'b']
    """
    text = column_type.strip()
    start = text.find("(")
    end = text.rfind(")")
    if start == -1 or end <= start:
        return []
    body = text[start + 1 : end]

    values: list[str] = []
    i = 0
    while i < len(body):
        if body[i] != "'":
            i += 1
            continue
        i += 1
        chars: list[str] = []
        while i < len(body):
            ch = body[i]
            if ch == "\\" and i + 1 < len(body):
                chars.append(body[i + 1])
                i += 2
                continue
            if ch == "'":
                if i + 1 < len(body) and body[i + 1] == "'":
                    chars.append("'")
                    i += 2
                    continue
                break
            chars.append(ch)
            i += 1
        values.append("".join(chars))
        i += 1
    return values


def _required(row: dict, key: str, context: str) -> Any:
    value = row.get(key)
    if value is None:
        raise IntrospectionError(f"Catalog returned NULL {key} for {context}")
    return value


class SchemaIntrospector:
    """Base introspector.  Subclasses implement the catalog queries.

    Usage:
        introspector = PostgresIntrospector(client)
        schema = introspector.introspect()

    Args:
        client: Connected ``DatabaseClient``.
        namespace: Schema/database to read; defaults to ``client.namespace``
            and then to the connection default.
        excluded_tables: Extra table names to skip.
    """

    engine: str = ""

    # Tables to exclude from introspection (system tables)
    EXCLUDED_TABLES = {
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    def __init__(
        self,
        client: DatabaseClient | None,
        namespace: str | None = None,
        excluded_tables: set[str] | None = None,
    ):
        if client is None:
            raise DatabaseConnectionError("No database connection for introspection")
        self._client = client
        self._namespace = namespace if namespace is not None else getattr(client, "namespace", None)
        self._excluded = self.EXCLUDED_TABLES | set(excluded_tables or ())

    def _query(self, sql: str, **params: Any) -> list[dict]:
        return self._client.query(sql, {"ns": self._namespace, **params})

    def introspect(self) -> Schema:
        """Introspect the full schema.

        Raises:
            DatabaseConnectionError: If the client cannot reach the database.
            IntrospectionError: If a catalog query fails or returns NULL in a
                required field.
        """
        try:
            enums = self._get_enums()
            tables: list[Table] = []
            for table_name in self._get_tables():
                if table_name in self._excluded:
                    continue
                columns = self._get_columns(table_name, enums)
                tables.append(Table(name=table_name, columns=columns))
        except SnapshotError:
            raise
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Catalog query failed: {e}") from e

        schema = Schema(database_type=self.engine, enums=list(enums.values()), tables=tables)
        logger.info(
            "Introspected %s schema: %d tables, %d enums",
            self.engine,
            len(schema.tables),
            len(schema.enums),
        )
        return schema

    def _get_tables(self) -> list[str]:
        raise NotImplementedError

    def _get_enums(self) -> dict[str, EnumType]:
        raise NotImplementedError

    def _get_columns(self, table_name: str, enums: dict[str, EnumType]) -> list[Column]:
        raise NotImplementedError

    def _table_names(self, rows: list[dict]) -> list[str]:
        return [_required(row, "table_name", "table listing") for row in rows]


class PostgresIntrospector(SchemaIntrospector):
    """Introspects PostgreSQL via information_schema and pg_catalog."""

    engine = "postgres"

    _NS = "COALESCE(CAST(:ns AS text), current_schema())"

    # udt_name of array elements -> information_schema spelling
    _UDT_NAMES = {
        "int2": "smallint",
        "int4": "integer",
        "int8": "bigint",
        "float4": "real",
        "float8": "double precision",
        "bool": "boolean",
        "varchar": "character varying",
        "bpchar": "character",
        "timestamptz": "timestamp with time zone",
        "timestamp": "timestamp without time zone",
        "timetz": "time with time zone",
        "time": "time without time zone",
    }

    def _get_enums(self) -> dict[str, EnumType]:
        rows = self._query(
            f"""
            SELECT t.typname AS enum_name, e.enumlabel AS enum_value
            FROM pg_type t
            JOIN pg_enum e ON e.enumtypid = t.oid
            JOIN pg_namespace n ON n.oid = t.typnamespace
            WHERE n.nspname = {self._NS}
            ORDER BY t.typname, e.enumsortorder
            """
        )
        values: dict[str, list[str]] = {}
        for row in rows:
            name = _required(row, "enum_name", "enum type")
            values.setdefault(name, []).append(_required(row, "enum_value", f"enum {name}"))
        return {name: EnumType(name=name, values=vals) for name, vals in values.items()}

    def _get_tables(self) -> list[str]:
        rows = self._query(
            f"""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = {self._NS}
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
            """
        )
        return self._table_names(rows)

    def _get_constraint_columns(self, table_name: str) -> tuple[set[str], set[str]]:
        """Primary key columns and columns with a single-column UNIQUE constraint."""
        rows = self._query(
            f"""
            SELECT tc.constraint_name, tc.constraint_type, kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
                AND tc.table_name = kcu.table_name
            WHERE tc.table_schema = {self._NS}
              AND tc.table_name = :t
              AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
            ORDER BY tc.constraint_name, kcu.ordinal_position
            """,
            t=table_name,
        )
        primary: set[str] = set()
        unique_groups: dict[str, list[str]] = {}
        for row in rows:
            column = _required(row, "column_name", f"constraint on {table_name}")
            if row.get("constraint_type") == "PRIMARY KEY":
                primary.add(column)
            else:
                unique_groups.setdefault(row.get("constraint_name") or column, []).append(column)
        unique = {cols[0] for cols in unique_groups.values() if len(cols) == 1}
        return primary, unique

    def _get_foreign_keys(self, table_name: str) -> dict[str, ForeignKey]:
        rows = self._query(
            f"""
            SELECT
                kcu.column_name,
                ccu.table_name AS foreign_table_name,
                ccu.column_name AS foreign_column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
            JOIN information_schema.constraint_column_usage ccu
                ON ccu.constraint_name = tc.constraint_name
                AND ccu.constraint_schema = tc.table_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
              AND tc.table_schema = {self._NS}
              AND tc.table_name = :t
            """,
            t=table_name,
        )
        foreign_keys: dict[str, ForeignKey] = {}
        for row in rows:
            column = _required(row, "column_name", f"foreign key on {table_name}")
            foreign_keys.setdefault(
                column,
                ForeignKey(
                    table=_required(row, "foreign_table_name", f"foreign key {table_name}.{column}"),
                    column=_required(row, "foreign_column_name", f"foreign key {table_name}.{column}"),
                ),
            )
        return foreign_keys

    def _normalize_type(self, data_type: str, udt_name: str | None) -> str:
        if data_type == "ARRAY":
            element = (udt_name or "_text").lstrip("_")
            return f"{self._UDT_NAMES.get(element, element)}[]"
        if data_type == "USER-DEFINED" and udt_name:
            return udt_name
        return data_type

    def _column_default(self, row: dict[str, Any], table_name: str, column: str):
        # Identity columns report no column_default
        if row.get("column_default") is None and row.get("is_identity") == "YES":
            return SequenceDefault(name=f"{table_name}_{column}_seq")
        return classify_default(row.get("column_default"), self.engine)

    def _get_columns(self, table_name: str, enums: dict[str, EnumType]) -> list[Column]:
        rows = self._query(
            f"""
            SELECT
                column_name,
                data_type,
                udt_name,
                is_nullable,
                column_default,
                is_identity,
                character_maximum_length
            FROM information_schema.columns
            WHERE table_schema = {self._NS}
              AND table_name = :t
            ORDER BY ordinal_position
            """,
            t=table_name,
        )
        primary, unique = self._get_constraint_columns(table_name)
        foreign_keys = self._get_foreign_keys(table_name)

        columns: list[Column] = []
        for row in rows:
            name = _required(row, "column_name", f"column of {table_name}")
            context = f"{table_name}.{name}"
            data_type = _required(row, "data_type", context)
            is_nullable = _required(row, "is_nullable", context)
            udt_name = row.get("udt_name")

            fields: dict[str, Any] = {
                "name": name,
                "type": self._normalize_type(data_type, udt_name),
                "nullable": is_nullable == "YES",
                "default": self._column_default(row, table_name, name),
                "is_primary": name in primary,
                "is_unique": name in unique,
                "foreign_key": foreign_keys.get(name),
                "max_length": row.get("character_maximum_length"),
            }
            if udt_name in enums:
                fields["type"] = "enum"
                fields["enum"] = udt_name
                fields["values"] = list(enums[udt_name].values)
            columns.append(Column(**fields))
        return columns


class MySQLIntrospector(SchemaIntrospector):
    """Introspects MySQL via information_schema.

    Inline ``enum(...)`` columns get a synthesized ``<table>_<column>_enum``
    type so the schema document is shaped the same as PostgreSQL's.
    """

    engine = "mysql"

    _NS = "COALESCE(:ns, DATABASE())"

    def __init__(self, client, namespace=None, excluded_tables=None):
        super().__init__(client, namespace, excluded_tables)
        self._inline_enums: dict[str, EnumType] = {}

    def introspect(self) -> Schema:
        self._inline_enums = {}
        return super().introspect()

    def _get_enums(self) -> dict[str, EnumType]:
        # Filled while reading columns
        return self._inline_enums

    def _get_tables(self) -> list[str]:
        rows = self._query(
            f"""
            SELECT table_name AS table_name
            FROM information_schema.tables
            WHERE table_schema = {self._NS}
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
            """
        )
        return self._table_names(rows)

    def _get_foreign_keys(self, table_name: str) -> dict[str, ForeignKey]:
        rows = self._query(
            f"""
            SELECT
                column_name AS column_name,
                referenced_table_name AS foreign_table_name,
                referenced_column_name AS foreign_column_name
            FROM information_schema.key_column_usage
            WHERE table_schema = {self._NS}
              AND table_name = :t
              AND referenced_table_name IS NOT NULL
            ORDER BY ordinal_position
            """,
            t=table_name,
        )
        foreign_keys: dict[str, ForeignKey] = {}
        for row in rows:
            column = _required(row, "column_name", f"foreign key on {table_name}")
            foreign_keys.setdefault(
                column,
                ForeignKey(
                    table=_required(row, "foreign_table_name", f"foreign key {table_name}.{column}"),
                    column=_required(row, "foreign_column_name", f"foreign key {table_name}.{column}"),
                ),
            )
        return foreign_keys

    def _get_columns(self, table_name: str, enums: dict[str, EnumType]) -> list[Column]:
        rows = self._query(
            f"""
            SELECT
                column_name AS column_name,
                data_type AS data_type,
                column_type AS column_type,
                is_nullable AS is_nullable,
                column_default AS column_default,
                extra AS extra,
                column_key AS column_key,
                character_maximum_length AS character_maximum_length
            FROM information_schema.columns
            WHERE table_schema = {self._NS}
              AND table_name = :t
            ORDER BY ordinal_position
            """,
            t=table_name,
        )
        foreign_keys = self._get_foreign_keys(table_name)

        columns: list[Column] = []
        for row in rows:
            name = _required(row, "column_name", f"column of {table_name}")
            context = f"{table_name}.{name}"
            data_type = str(_required(row, "data_type", context)).lower()
            is_nullable = _required(row, "is_nullable", context)
            column_type = str(row.get("column_type") or data_type).lower()
            column_key = row.get("column_key") or ""

            fields: dict[str, Any] = {
                "name": name,
                "type": column_type,
                "nullable": is_nullable == "YES",
                "default": classify_default(
                    row.get("column_default"),
                    self.engine,
                    extra=row.get("extra"),
                    table=table_name,
                    column=name,
                ),
                "is_primary": column_key == "PRI",
                "is_unique": column_key == "UNI",
                "foreign_key": foreign_keys.get(name),
            }
            if data_type in ("char", "varchar"):
                fields["max_length"] = row.get("character_maximum_length")
            if column_type.startswith("tinyint(1)"):
                fields["type"] = "boolean"
            if data_type == "enum":
                fields["type"] = "enum"
                enum_name = f"{table_name}_{name}_enum"
                values = parse_enum_values(str(row.get("column_type") or ""))
                enums[enum_name] = EnumType(name=enum_name, values=values)
                fields["enum"] = enum_name
                fields["values"] = values
            columns.append(Column(**fields))
        return columns


_INTROSPECTORS: dict[str, type[SchemaIntrospector]] = {
    "postgres": PostgresIntrospector,
    "mysql": MySQLIntrospector,
}


def get_introspector(client: DatabaseClient | None, **kwargs: Any) -> SchemaIntrospector:
    """Return the introspector matching ``client.engine``.

    Raises:
        DatabaseConnectionError: If ``client`` is ``None``.
        IntrospectionError: If the engine is not supported.
    """
    if client is None:
        raise DatabaseConnectionError("No database connection for introspection")
    try:
        cls = _INTROSPECTORS[client.engine]
    except KeyError:
        raise IntrospectionError(f"No introspector for engine '{client.engine}'") from None
    return cls(client, **kwargs)
