"""Tests for offline snapshot validation."""

from pathlib import Path

from db_snapshot.schema.models import Column, ForeignKey, Schema, Table
from db_snapshot.schema.serializer import SCHEMA_FILENAME, write_schema
from db_snapshot.snapshot.rowfile import write_rows
from db_snapshot.snapshot.validate import validate_snapshot


def write_blog(directory: Path, schema: Schema, users=None, posts=None) -> None:
    write_schema(schema, directory / SCHEMA_FILENAME)
    if users is not None:
        write_rows(directory / "users.csv", ["id", "email", "name"], users)
    if posts is not None:
        write_rows(directory / "posts.csv", ["id", "user_id", "title"], posts)


class TestValidateSnapshot:
    """Structural checks without a database."""

    def test_valid(self, tmp_path: Path, blog_schema: Schema) -> None:
        write_blog(
            tmp_path,
            blog_schema,
            users=[["1", "a@x.io", "A"], ["2", "b@x.io", "NULL"]],
            posts=[["1", "2", "Hi"]],
        )

        report = validate_snapshot(tmp_path)

        assert report.valid is True
        assert report.database_type == "postgres"
        assert report.errors == []
        assert report.warnings == []
        assert report.total_rows == 3

    def test_missing_schema(self, tmp_path: Path) -> None:
        report = validate_snapshot(tmp_path)
        assert report.valid is False
        assert "not found" in report.errors[0]

    def test_missing_row_file_is_warning(self, tmp_path: Path, blog_schema: Schema) -> None:
        write_blog(tmp_path, blog_schema, users=[["1", "a@x.io", "A"]])

        report = validate_snapshot(tmp_path)

        assert report.valid is True
        assert report.warnings == ["No row file for posts"]
        posts = next(t for t in report.tables if t.table == "posts")
        assert posts.present is False

    def test_header_mismatch(self, tmp_path: Path, blog_schema: Schema) -> None:
        write_schema(blog_schema, tmp_path / SCHEMA_FILENAME)
        write_rows(tmp_path / "users.csv", ["email", "id", "name"], [])

        report = validate_snapshot(tmp_path)

        assert report.valid is False
        assert report.errors[0].startswith("users: Header")

    def test_field_count(self, tmp_path: Path, blog_schema: Schema) -> None:
        write_blog(tmp_path, blog_schema, users=[["1", "a@x.io", "A"], ["2", "b@x.io"]], posts=[])

        report = validate_snapshot(tmp_path)

        assert report.valid is False
        assert report.errors == ["users: Expected 3 fields, got 2 (line 3)"]

    def test_dangling_reference(self, tmp_path: Path, blog_schema: Schema) -> None:
        write_blog(
            tmp_path,
            blog_schema,
            users=[["1", "a@x.io", "A"]],
            posts=[["1", "1", "ok"], ["2", "9", "orphan"], ["3", "NULL", "none"]],
        )

        report = validate_snapshot(tmp_path)

        assert report.valid is True
        assert report.warnings == ["posts.user_id line 3: '9' not found in users.id"]

    def test_reference_into_missing_table_not_checked(self, tmp_path: Path, posts_table: Table) -> None:
        write_schema(Schema(tables=[posts_table]), tmp_path / SCHEMA_FILENAME)
        write_rows(tmp_path / "posts.csv", ["id", "user_id", "title"], [["1", "9", "x"]])

        report = validate_snapshot(tmp_path)

        assert report.valid is True
        assert report.warnings == []

    def test_cycle_warning(self, tmp_path: Path) -> None:
        a = Table(
            name="a",
            columns=[Column(name="id", type="integer"), Column(name="b_id", type="integer", foreign_key=ForeignKey(table="b", column="id"))],
        )
        b = Table(
            name="b",
            columns=[Column(name="id", type="integer"), Column(name="a_id", type="integer", foreign_key=ForeignKey(table="a", column="id"))],
        )
        write_schema(Schema(tables=[a, b]), tmp_path / SCHEMA_FILENAME)
        write_rows(tmp_path / "a.csv", ["id", "b_id"], [["1", "1"]])
        write_rows(tmp_path / "b.csv", ["id", "a_id"], [["1", "1"]])

        report = validate_snapshot(tmp_path)

        assert report.valid is True
        assert any("cycle" in w for w in report.warnings)
