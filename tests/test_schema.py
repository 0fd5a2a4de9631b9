"""Tests for the schema model, default classification, ordering and schema.json I/O."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from db_snapshot.exceptions import SerializationError
from db_snapshot.schema.defaults import (
    ExpressionDefault,
    LiteralDefault,
    NullDefault,
    SequenceDefault,
    classify_default,
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


def fk_table(name: str, *targets: str) -> Table:
    columns = [Column(name="id", type="integer", is_primary=True)]
    for target in targets:
        columns.append(
            Column(name=f"{target}_id", type="integer", foreign_key=ForeignKey(table=target, column="id"))
        )
    return Table(name=name, columns=columns)


# ============================================================================
# Default classification
# ============================================================================


class TestClassifyDefault:
    """Raw catalog defaults resolve to the closed variant once."""

    def test_none(self) -> None:
        assert classify_default(None) == NullDefault()

    def test_postgres_nextval(self) -> None:
        result = classify_default("nextval('users_id_seq'::regclass)", "postgres")
        assert result == SequenceDefault(name="users_id_seq")

    def test_postgres_quoted_literal_with_cast(self) -> None:
        result = classify_default("'active'::status", "postgres")
        assert result == LiteralDefault(value="active")

    def test_postgres_escaped_quote(self) -> None:
        result = classify_default("'it''s'::text", "postgres")
        assert result == LiteralDefault(value="it's")

    def test_postgres_number_and_boolean(self) -> None:
        assert classify_default("0", "postgres") == LiteralDefault(value="0")
        assert classify_default("(-1.5)::numeric", "postgres") == LiteralDefault(value="-1.5")
        assert classify_default("TRUE", "postgres") == LiteralDefault(value="true")

    def test_postgres_null_cast(self) -> None:
        assert classify_default("NULL::character varying", "postgres") == NullDefault()

    def test_postgres_expression(self) -> None:
        assert classify_default("now()", "postgres") == ExpressionDefault(expression="now()")

    def test_mysql_auto_increment(self) -> None:
        result = classify_default(None, "mysql", extra="auto_increment", table="users", column="id")
        assert result == SequenceDefault(name="users_id_seq")

    def test_mysql_current_timestamp(self) -> None:
        result = classify_default("CURRENT_TIMESTAMP", "mysql", extra="DEFAULT_GENERATED")
        assert result == ExpressionDefault(expression="CURRENT_TIMESTAMP")

    def test_mysql_plain_literal(self) -> None:
        assert classify_default("pending", "mysql") == LiteralDefault(value="pending")

    def test_mariadb_quoted_literal(self) -> None:
        assert classify_default("'pending'", "mysql") == LiteralDefault(value="pending")

    def test_scalars(self) -> None:
        assert classify_default(True) == LiteralDefault(value="true")
        assert classify_default(5) == LiteralDefault(value="5")


# ============================================================================
# Models
# ============================================================================


class TestModels:
    """Schema model helpers and invariants."""

    def test_foreign_key_qualified(self) -> None:
        assert ForeignKey(table="users", column="id").qualified == "users.id"

    def test_table_helpers(self, users_table: Table, posts_table: Table) -> None:
        assert users_table.column_names == ["id", "email", "name"]
        assert [c.name for c in users_table.primary_key] == ["id"]
        assert [c.name for c in posts_table.foreign_keys] == ["user_id"]
        assert users_table.get_column("missing") is None

    def test_models_are_frozen(self, users_table: Table) -> None:
        with pytest.raises(ValidationError):
            users_table.name = "other"

    def test_duplicate_table_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate table name"):
            Schema(tables=[Table(name="a"), Table(name="a")])

    def test_unknown_enum_rejected(self) -> None:
        table = Table(name="t", columns=[Column(name="s", type="enum", enum="mood")])
        with pytest.raises(ValidationError, match="unknown enum"):
            Schema(tables=[table])

    def test_enum_values_prefers_named_enum(self) -> None:
        column = Column(name="s", type="enum", enum="mood", values=["x"])
        schema = Schema(
            enums=[EnumType(name="mood", values=["happy", "sad"])],
            tables=[Table(name="t", columns=[column])],
        )
        assert schema.enum_values(column) == ["happy", "sad"]

    def test_enum_values_falls_back_to_inline(self) -> None:
        column = Column(name="s", type="enum", values=["a", "b"])
        assert Schema().enum_values(column) == ["a", "b"]

    def test_enum_values_unknown(self) -> None:
        assert Schema().enum_values(Column(name="s", type="enum")) is None

    def test_bare_string_default_classified(self) -> None:
        column = Column(name="id", type="integer", default="nextval('t_id_seq'::regclass)")
        assert column.default == SequenceDefault(name="t_id_seq")

    def test_pascal_case_keys_accepted(self) -> None:
        document = {
            "DatabaseType": "mysql",
            "Tables": [
                {
                    "Name": "users",
                    "Columns": [
                        {"Name": "id", "Type": "int", "IsPrimary": True, "Nullable": False},
                    ],
                }
            ],
        }
        schema = Schema.model_validate(document)
        assert schema.database_type == "mysql"
        assert schema.tables[0].columns[0].is_primary is True

    def test_legacy_default_uses_schema_engine(self) -> None:
        """A bare-string default is classified with the document's databaseType."""
        document = {
            "databaseType": "mysql",
            "tables": [
                {"name": "t", "columns": [{"name": "c", "type": "varchar(10)", "default": "pending"}]}
            ],
        }
        schema = Schema.model_validate(document)
        assert schema.tables[0].columns[0].default == LiteralDefault(value="pending")


# ============================================================================
# Serializer
# ============================================================================


class TestSerializer:
    """schema.json round trip and error reporting."""

    def test_round_trip(self, blog_schema: Schema) -> None:
        assert load_schema(dump_schema(blog_schema)) == blog_schema

    def test_camel_case_document(self, users_table: Table) -> None:
        document = json.loads(dump_schema(Schema(tables=[users_table])))
        assert "databaseType" in document
        column = document["tables"][0]["columns"][0]
        assert column["isPrimary"] is True
        assert column["default"] == {"kind": "sequence", "name": "users_id_seq"}
        assert document["tables"][0]["columns"][2]["default"] is None

    def test_write_and_read_directory(self, tmp_path: Path, blog_schema: Schema) -> None:
        write_schema(blog_schema, tmp_path / "snap" / SCHEMA_FILENAME)
        assert read_schema(tmp_path / "snap") == blog_schema

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SerializationError, match="not found"):
            read_schema(tmp_path)

    def test_invalid_json(self) -> None:
        with pytest.raises(SerializationError, match="Invalid JSON"):
            load_schema("{not json")

    def test_not_an_object(self) -> None:
        with pytest.raises(SerializationError):
            load_schema("[]")

    def test_invalid_document(self) -> None:
        with pytest.raises(SerializationError, match="does not validate"):
            load_schema('{"tables": [{"columns": []}]}')


# ============================================================================
# Ordering
# ============================================================================


class TestOrdering:
    """Referenced tables come before the tables that reference them."""

    def test_dependency_graph(self) -> None:
        graph = build_dependency_graph([fk_table("posts", "users"), fk_table("users")])
        assert graph == {"posts": {"users"}, "users": set()}

    def test_referenced_first(self) -> None:
        tables = [fk_table("comments", "posts", "users"), fk_table("posts", "users"), fk_table("users")]
        names = [t.name for t in order_tables(tables)]
        assert names.index("users") < names.index("posts") < names.index("comments")

    def test_every_table_once(self) -> None:
        tables = [fk_table("a", "b"), fk_table("b", "c"), fk_table("c"), fk_table("d")]
        assert sorted(t.name for t in order_tables(tables)) == ["a", "b", "c", "d"]

    def test_deterministic(self) -> None:
        tables = [fk_table("x", "z", "y"), fk_table("y"), fk_table("z")]
        assert [t.name for t in order_tables(tables)] == ["y", "z", "x"]

    def test_dangling_reference_ignored(self) -> None:
        tables = [fk_table("posts", "users")]
        assert [t.name for t in order_tables(tables)] == ["posts"]
        assert build_dependency_graph(tables) == {"posts": set()}

    def test_self_reference_ignored(self) -> None:
        table = Table(
            name="employees",
            columns=[
                Column(name="id", type="integer", is_primary=True),
                Column(name="manager_id", type="integer", foreign_key=ForeignKey(table="employees", column="id")),
            ],
        )
        assert [t.name for t in order_tables([table])] == ["employees"]
        assert find_cycles([table]) == []

    def test_cycle_does_not_fail(self) -> None:
        tables = [fk_table("a", "b"), fk_table("b", "a")]
        assert sorted(t.name for t in order_tables(tables)) == ["a", "b"]
        assert find_cycles(tables) == [("b", "a")]
