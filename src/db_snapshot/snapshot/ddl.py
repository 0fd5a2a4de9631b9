"""DDL synthesis from a ``Schema`` for a target engine.

``DDLSynthesizer`` renders the statements a restore runs: enum types,
tables without foreign keys, foreign-key constraints attached afterwards,
and truncation.  Column types and defaults are mapped when the schema was
captured from a different engine than the target.

Every name is quoted through the engine's ``Quoter``.

Usage:
    from db_snapshot.snapshot.ddl import DDLSynthesizer

    ddl = DDLSynthesizer("postgres", schema)
    for enum in schema.enums:
        print(ddl.create_enum(enum))
    print(ddl.create_table(schema.get_table("users")))
"""

import logging
import re

from db_snapshot.adapters.quoting import get_quoter
from db_snapshot.schema.defaults import (
    ExpressionDefault,
    LiteralDefault,
    SequenceDefault,
)
from db_snapshot.schema.models import Column, EnumType, Schema, Table
from db_snapshot.types import TypeCategory, base_type, categorize, element_type, is_array_type

logger = logging.getLogger(__name__)

_MODIFIER = re.compile(r"\((?P<args>[^)]*)\)")

# Identifier length limit shared by PostgreSQL (63) and MySQL (64)
_MAX_IDENTIFIER = 63

_SERIAL_TYPES = {
    "smallint": "smallserial",
    "int2": "smallserial",
    "integer": "serial",
    "int": "serial",
    "int4": "serial",
    "bigint": "bigserial",
    "int8": "bigserial",
}

# Base type -> PostgreSQL type, for schemas captured from MySQL
_MYSQL_TO_POSTGRES = {
    "tinyint": "smallint",
    "smallint": "smallint",
    "mediumint": "integer",
    "int": "integer",
    "integer": "integer",
    "bigint": "bigint",
    "float": "real",
    "double": "double precision",
    "real": "double precision",
    "decimal": "numeric",
    "numeric": "numeric",
    "boolean": "boolean",
    "bool": "boolean",
    "varchar": "character varying",
    "char": "character",
    "tinytext": "text",
    "text": "text",
    "mediumtext": "text",
    "longtext": "text",
    "datetime": "timestamp without time zone",
    "timestamp": "timestamp without time zone",
    "date": "date",
    "time": "time without time zone",
    "year": "integer",
    "json": "jsonb",
    "binary": "bytea",
    "varbinary": "bytea",
    "tinyblob": "bytea",
    "blob": "bytea",
    "mediumblob": "bytea",
    "longblob": "bytea",
    "bit": "bit varying",
}

# Base type -> MySQL type, for schemas captured from PostgreSQL
_POSTGRES_TO_MYSQL = {
    "smallint": "SMALLINT",
    "int2": "SMALLINT",
    "integer": "INT",
    "int": "INT",
    "int4": "INT",
    "bigint": "BIGINT",
    "int8": "BIGINT",
    "serial": "INT",
    "bigserial": "BIGINT",
    "smallserial": "SMALLINT",
    "real": "FLOAT",
    "float4": "FLOAT",
    "double precision": "DOUBLE",
    "float8": "DOUBLE",
    "numeric": "DECIMAL",
    "decimal": "DECIMAL",
    "money": "DECIMAL(19,2)",
    "boolean": "BOOLEAN",
    "bool": "BOOLEAN",
    "text": "TEXT",
    "character varying": "VARCHAR",
    "varchar": "VARCHAR",
    "character": "CHAR",
    "char": "CHAR",
    "bpchar": "CHAR",
    "timestamp with time zone": "DATETIME(6)",
    "timestamp without time zone": "DATETIME(6)",
    "timestamp": "DATETIME(6)",
    "timestamptz": "DATETIME(6)",
    "date": "DATE",
    "time with time zone": "TIME(6)",
    "time without time zone": "TIME(6)",
    "time": "TIME(6)",
    "json": "JSON",
    "jsonb": "JSON",
    "uuid": "CHAR(36)",
    "bytea": "LONGBLOB",
}

_MYSQL_UNINDEXABLE = {"tinytext", "text", "mediumtext", "longtext", "blob", "mediumblob", "longblob", "json"}

# Expression defaults recognized across engines, keyed by normalized text
_NOW = {
    "now()",
    "current_timestamp",
    "current_timestamp()",
    "localtimestamp",
    "localtimestamp()",
    "transaction_timestamp()",
    "statement_timestamp()",
    "clock_timestamp()",
}
_TODAY = {"current_date", "current_date()", "curdate()"}
_UUID = {"gen_random_uuid()", "uuid_generate_v4()", "uuid()"}


def _normalize_expression(expression: str) -> str:
    text = expression.strip().lower()
    while text.startswith("(") and text.endswith(")"):
        text = text[1:-1].strip()
    text = re.sub(r"::[\w\s]+$", "", text)
    text = re.sub(r"^current_timestamp\(\d\)$", "current_timestamp", text)
    text = re.sub(r"^now\(\d\)$", "now()", text)
    return text


class DDLSynthesizer:
    """Render DDL for ``target_engine`` from a schema.

    Args:
        target_engine: ``"postgres"`` or ``"mysql"``.
        schema: Schema the statements describe; its ``database_type`` is the
            source engine for type and default mapping.
        namespace: Optional schema/database qualifier for every object name.
    """

    def __init__(self, target_engine: str, schema: Schema, namespace: str | None = None):
        self.engine = target_engine
        self.schema = schema
        self.namespace = namespace
        self.quoter = get_quoter(target_engine)
        self.source_engine = schema.database_type
        self._enum_names = {e.name for e in schema.enums}

    @property
    def cross_engine(self) -> bool:
        return self.source_engine != self.engine

    def name(self, object_name: str) -> str:
        """Quoted object name, qualified by the namespace when set."""
        if self.namespace:
            return self.quoter.qualified(self.namespace, object_name)
        return self.quoter.identifier(object_name)

    # ------------------------------------------------------------------
    # Enums
    # ------------------------------------------------------------------

    def create_enum(self, enum: EnumType) -> str | None:
        """``CREATE TYPE ... AS ENUM``; ``None`` on MySQL (enums are inline)."""
        if self.engine != "postgres":
            return None
        values = ", ".join(self.quoter.literal(v) for v in enum.values)
        return f"CREATE TYPE {self.name(enum.name)} AS ENUM ({values})"

    def _enum_name(self, table: Table | None, column: Column) -> str | None:
        if column.enum:
            return column.enum
        if table is not None:
            return f"{table.name}_{column.name}_enum"
        return None

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def column_type(self, column: Column, table: Table | None = None) -> str:
        """Target SQL type for a column (without default or nullability)."""
        if column.is_enum:
            return self._enum_type(column, table)
        if is_array_type(column.type):
            return self._array_type(column)
        if self.engine == "postgres":
            return self._postgres_type(column)
        return self._mysql_type(column)

    def _enum_type(self, column: Column, table: Table | None) -> str:
        if self.engine == "postgres":
            name = self._enum_name(table, column)
            if name is None:
                return "text"
            return self.name(name)
        values = self.schema.enum_values(column)
        if not values:
            return "VARCHAR(255)"
        return "ENUM(" + ", ".join(self.quoter.literal(v) for v in values) + ")"

    def _array_type(self, column: Column) -> str:
        if self.engine == "mysql":
            return "JSON"
        element = element_type(column.type)
        if element in self._enum_names:
            return f"{self.name(element)}[]"
        mapped = self._postgres_type(Column(name=column.name, type=element))
        return f"{mapped}[]"

    def _with_length(self, type_name: str, column: Column) -> str:
        if "(" not in type_name and column.max_length:
            return f"{type_name}({column.max_length})"
        return type_name

    def _modifier(self, type_name: str) -> str:
        match = _MODIFIER.search(type_name)
        return f"({match.group('args')})" if match else ""

    def _postgres_type(self, column: Column) -> str:
        type_name = column.type.strip()
        if self.source_engine == "postgres":
            return self._with_length(type_name, column)

        base = base_type(type_name)
        if categorize(type_name) == TypeCategory.BOOLEAN:
            return "boolean"
        mapped = _MYSQL_TO_POSTGRES.get(base)
        if mapped is None:
            logger.warning("No PostgreSQL mapping for type %s of %s; using text", type_name, column.name)
            return "text"
        if base in ("decimal", "numeric", "varchar", "char"):
            return self._with_length(mapped + self._modifier(type_name), column)
        return mapped

    def _mysql_type(self, column: Column) -> str:
        type_name = column.type.strip()
        base = base_type(type_name)
        if self.source_engine == "mysql":
            mapped = type_name.upper()
            if base == "varchar" and "(" not in type_name:
                mapped = f"VARCHAR({column.max_length or 255})"
        else:
            mapped = _POSTGRES_TO_MYSQL.get(base)
            if mapped is None:
                logger.warning("No MySQL mapping for type %s of %s; using TEXT", type_name, column.name)
                mapped = "TEXT"
            elif base in ("numeric", "decimal", "character varying", "varchar", "character", "char", "bpchar"):
                modifier = self._modifier(type_name)
                if modifier:
                    mapped += modifier
                elif column.max_length:
                    mapped += f"({column.max_length})"
                elif mapped == "VARCHAR":
                    mapped = "VARCHAR(255)"
                elif mapped == "DECIMAL":
                    mapped = "DECIMAL(65,30)"

        # TEXT/BLOB cannot be indexed without a prefix length
        if (column.is_primary or column.is_unique) and base_type(mapped) in _MYSQL_UNINDEXABLE:
            return "VARCHAR(255)"
        return mapped

    def parameter_cast(self, column: Column, table: Table | None = None) -> str | None:
        """SQL type an insert parameter for this column is cast to, if any."""
        category = categorize(column.type, column.is_enum)
        if self.engine == "mysql":
            return "json" if category in (TypeCategory.JSON, TypeCategory.ARRAY) else None
        if category == TypeCategory.JSON:
            return self.column_type(column, table)
        if category in (TypeCategory.ENUM, TypeCategory.ARRAY):
            return self.column_type(column, table)
        return None

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def _literal_default(self, column: Column, value: str, target_type: str) -> str:
        category = categorize(column.type, column.is_enum)
        if category == TypeCategory.BOOLEAN:
            truthy = value.strip().lower() in ("true", "t", "1", "yes", "y", "b'1'")
            if self.engine == "mysql":
                return "1" if truthy else "0"
            return "true" if truthy else "false"
        if category in (TypeCategory.INTEGER, TypeCategory.FLOAT, TypeCategory.DECIMAL):
            if re.fullmatch(r"-?\d+(\.\d+)?([eE][-+]?\d+)?", value.strip()):
                return value.strip()
        literal = self.quoter.literal(value)
        if self.engine == "mysql" and base_type(target_type) in _MYSQL_UNINDEXABLE:
            # MySQL 8.0.13+ only accepts expression defaults on TEXT/BLOB/JSON
            return f"({literal})"
        return literal

    def _expression_default(self, column: Column, expression: str, target_type: str) -> str | None:
        if not self.cross_engine:
            if self.engine == "mysql" and not expression.strip().upper().startswith("CURRENT_TIMESTAMP"):
                return f"({expression})"
            return expression

        normalized = _normalize_expression(expression)
        if normalized in _NOW:
            if self.engine == "postgres":
                return "now()"
            precision = self._modifier(target_type)
            return f"CURRENT_TIMESTAMP{precision}"
        if normalized in _TODAY:
            return "CURRENT_DATE" if self.engine == "postgres" else "(CURRENT_DATE)"
        if normalized in _UUID:
            return "gen_random_uuid()" if self.engine == "postgres" else "(UUID())"

        logger.warning(
            "Dropping %s default %r of column %s: no %s equivalent",
            self.source_engine,
            expression,
            column.name,
            self.engine,
        )
        return None

    def column_definition(self, column: Column, table: Table | None = None) -> str:
        """``"name" type [NOT NULL] [DEFAULT ...]`` for CREATE TABLE."""
        target_type = self.column_type(column, table)
        default_sql: str | None = None
        suffix = ""

        default = column.default
        if isinstance(default, SequenceDefault):
            if self.engine == "postgres":
                serial = _SERIAL_TYPES.get(base_type(target_type))
                if serial:
                    target_type = serial
                else:
                    logger.warning("Column %s has a sequence default but type %s", column.name, target_type)
            elif column.is_primary or column.is_unique:
                suffix = " AUTO_INCREMENT"
            else:
                logger.warning(
                    "Dropping AUTO_INCREMENT on %s: MySQL requires it on a key column",
                    column.name,
                )
        elif isinstance(default, LiteralDefault):
            default_sql = self._literal_default(column, default.value, target_type)
        elif isinstance(default, ExpressionDefault):
            default_sql = self._expression_default(column, default.expression, target_type)

        parts = [self.quoter.identifier(column.name), target_type]
        if not column.nullable:
            parts.append("NOT NULL")
        if default_sql is not None:
            parts.append(f"DEFAULT {default_sql}")
        return " ".join(parts) + suffix

    # ------------------------------------------------------------------
    # Tables and constraints
    # ------------------------------------------------------------------

    def create_table(self, table: Table) -> str:
        """``CREATE TABLE`` with primary key and unique clauses, no foreign keys."""
        lines = [self.column_definition(c, table) for c in table.columns]

        primary = [self.quoter.identifier(c.name) for c in table.primary_key]
        if primary:
            lines.append(f"PRIMARY KEY ({', '.join(primary)})")
        for column in table.columns:
            if column.is_unique and not (column.is_primary and len(primary) == 1):
                lines.append(f"UNIQUE ({self.quoter.identifier(column.name)})")

        body = ",\n    ".join(lines)
        return f"CREATE TABLE {self.name(table.name)} (\n    {body}\n)"

    def constraint_name(self, table: str, column: str) -> str:
        return f"{table}_{column}_fkey"[:_MAX_IDENTIFIER]

    def add_foreign_key(self, table: Table, column: Column) -> str:
        """``ALTER TABLE ... ADD CONSTRAINT <table>_<column>_fkey FOREIGN KEY ...``.

        Raises:
            ValueError: If the column has no foreign key.
        """
        if column.foreign_key is None:
            raise ValueError(f"Column {table.name}.{column.name} has no foreign key")
        fk = column.foreign_key
        return (
            f"ALTER TABLE {self.name(table.name)} "
            f"ADD CONSTRAINT {self.quoter.identifier(self.constraint_name(table.name, column.name))} "
            f"FOREIGN KEY ({self.quoter.identifier(column.name)}) "
            f"REFERENCES {self.name(fk.table)} ({self.quoter.identifier(fk.column)})"
        )

    def truncate_table(self, table: Table | str) -> str:
        name = table.name if isinstance(table, Table) else table
        if self.engine == "postgres":
            return f"TRUNCATE TABLE {self.name(name)} CASCADE"
        return f"TRUNCATE TABLE {self.name(name)}"
