"""Schema model, introspection, dependency ordering and schema.json I/O.

Usage:
    from db_snapshot.schema import Schema, get_introspector, order_tables, read_schema
"""

from db_snapshot.schema.defaults import (
    ColumnDefault,
    ExpressionDefault,
    LiteralDefault,
    NullDefault,
    SequenceDefault,
    classify_default,
)
from db_snapshot.schema.introspector import (
    MySQLIntrospector,
    PostgresIntrospector,
    SchemaIntrospector,
    get_introspector,
    parse_enum_values,
)
from db_snapshot.schema.models import Column, EnumType, ForeignKey, Schema, Table
from db_snapshot.schema.ordering import build_dependency_graph, find_cycles, order_tables
from db_snapshot.schema.serializer import (
    SCHEMA_FILENAME,
    dump_schema,
    load_schema,
    read_schema,
    write_schema,
)

__all__ = [
    # models
    "Schema",
    "Table",
    "Column",
    "ForeignKey",
    "EnumType",
    # defaults
    "ColumnDefault",
    "NullDefault",
    "LiteralDefault",
    "SequenceDefault",
    "ExpressionDefault",
    "classify_default",
    # introspection
    "SchemaIntrospector",
    "PostgresIntrospector",
    "MySQLIntrospector",
    "get_introspector",
    "parse_enum_values",
    # ordering
    "build_dependency_graph",
    "order_tables",
    "find_cycles",
    # serializer
    "SCHEMA_FILENAME",
    "dump_schema",
    "load_schema",
    "read_schema",
    "write_schema",
]
