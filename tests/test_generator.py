"""Tests for synthetic dataset generation."""

from datetime import date, datetime
from pathlib import Path

import pytest

from db_snapshot.generator import (
    GeneratorContext,
    build_key_pools,
    generate_dataset,
    with_placeholder_enums,
    write_dataset,
)
from db_snapshot.generator.dataset import PLACEHOLDER_ENUM_VALUES
from db_snapshot.generator.values import fake_value, key_value, unique_value
from db_snapshot.schema.models import Column, EnumType, ForeignKey, Schema, Table
from db_snapshot.snapshot.restore import restore_snapshot
from db_snapshot.snapshot.rowfile import read_rows

from conftest import FakeClient


# ============================================================================
# Scenario C: referential consistency
# ============================================================================


class TestReferentialConsistency:
    """Every generated foreign key points at a generated primary key."""

    def test_fifty_rows(self, blog_schema: Schema) -> None:
        dataset = generate_dataset(blog_schema, 50, GeneratorContext(seed=3))

        assert len(dataset.rows["users"]) == 50
        assert len(dataset.rows["posts"]) == 50
        user_ids = set(dataset.column_values("users", "id"))
        assert user_ids == set(range(1, 51))
        assert set(dataset.column_values("posts", "user_id")) <= user_ids
        assert None not in dataset.column_values("posts", "user_id")

    def test_primary_and_unique_distinct(self, blog_schema: Schema) -> None:
        dataset = generate_dataset(blog_schema, 40, GeneratorContext(seed=11))

        post_ids = dataset.column_values("posts", "id")
        emails = dataset.column_values("users", "email")
        assert len(set(post_ids)) == 40
        assert len(set(emails)) == 40

    def test_referenced_non_key_column(self) -> None:
        accounts = Table(
            name="accounts",
            columns=[
                Column(name="id", type="integer", is_primary=True),
                Column(name="code", type="text", is_unique=True),
            ],
        )
        invoices = Table(
            name="invoices",
            columns=[
                Column(name="id", type="integer", is_primary=True),
                Column(name="account_code", type="text", foreign_key=ForeignKey(table="accounts", column="code")),
            ],
        )
        dataset = generate_dataset(Schema(tables=[invoices, accounts]), 10, GeneratorContext(seed=5))

        codes = dataset.column_values("accounts", "code")
        assert len(set(codes)) == 10
        assert set(dataset.column_values("invoices", "account_code")) <= set(codes)

    def test_primary_key_that_is_foreign_key_shares_pool(self, users_table: Table) -> None:
        profiles = Table(
            name="profiles",
            columns=[
                Column(
                    name="user_id",
                    type="integer",
                    is_primary=True,
                    foreign_key=ForeignKey(table="users", column="id"),
                ),
                Column(name="bio", type="text"),
            ],
        )
        schema = Schema(tables=[profiles, users_table])
        ctx = GeneratorContext(seed=1)
        build_key_pools(schema, 5, ctx)

        assert ctx.key_pools["profiles.user_id"] is ctx.key_pools["users.id"]

    def test_generated_snapshot_restores(self, tmp_path: Path, blog_schema: Schema) -> None:
        dataset = generate_dataset(blog_schema, 50, GeneratorContext(seed=9))
        written = write_dataset(dataset, tmp_path)

        target = FakeClient()
        result = restore_snapshot(target, tmp_path)

        assert written.row_counts == {"users": 50, "posts": 50}
        assert result.failed_tables == []
        assert result.rows_loaded == 100
        loaded_users = {row[0] for row in target.inserted["users"]}
        assert {row[1] for row in target.inserted["posts"]} <= loaded_users


# ============================================================================
# Determinism and options
# ============================================================================


class TestGenerationOptions:
    """Seeding, null probability and row counts."""

    def test_same_seed_same_dataset(self, blog_schema: Schema) -> None:
        first = generate_dataset(blog_schema, 20, GeneratorContext(seed=42))
        second = generate_dataset(blog_schema, 20, GeneratorContext(seed=42))
        assert first.rows == second.rows

    def test_seeded_random_source(self) -> None:
        ctx = GeneratorContext(seed=7)
        first = [ctx.rng.random() for _ in range(3)]
        ctx.reset()
        assert [ctx.rng.random() for _ in range(3)] == first

    def test_context_reset_between_runs(self, blog_schema: Schema) -> None:
        ctx = GeneratorContext(seed=42)
        first = generate_dataset(blog_schema, 10, ctx)
        second = generate_dataset(blog_schema, 10, ctx)
        assert first.rows == second.rows
        assert ctx.id_counters == {"users": 10, "posts": 10}

    def test_zero_null_probability(self, blog_schema: Schema) -> None:
        dataset = generate_dataset(blog_schema, 30, GeneratorContext(seed=2, null_probability=0.0))
        assert None not in dataset.column_values("users", "name")

    def test_full_null_probability_spares_required_columns(self, blog_schema: Schema) -> None:
        dataset = generate_dataset(blog_schema, 10, GeneratorContext(seed=2, null_probability=1.0))
        assert set(dataset.column_values("users", "name")) == {None}
        assert None not in dataset.column_values("users", "email")
        assert None not in dataset.column_values("posts", "user_id")

    def test_zero_rows(self, blog_schema: Schema) -> None:
        dataset = generate_dataset(blog_schema, 0)
        assert dataset.rows == {"users": [], "posts": []}
        assert dataset.total_rows == 0

    def test_negative_rows_rejected(self, blog_schema: Schema) -> None:
        with pytest.raises(ValueError, match="row_count"):
            generate_dataset(blog_schema, -1)

    def test_max_length_respected(self, blog_schema: Schema) -> None:
        dataset = generate_dataset(blog_schema, 25, GeneratorContext(seed=4, null_probability=0.0))
        assert all(len(title) <= 200 for title in dataset.column_values("posts", "title"))


# ============================================================================
# Enums
# ============================================================================


class TestEnums:
    """Enum columns draw from their declared or placeholder members."""

    def test_declared_enum_values(self) -> None:
        schema = Schema(
            enums=[EnumType(name="mood", values=["happy", "sad"])],
            tables=[Table(name="people", columns=[Column(name="mood", type="enum", enum="mood", nullable=False)])],
        )
        dataset = generate_dataset(schema, 6, GeneratorContext(seed=1))
        assert dataset.column_values("people", "mood") == ["happy", "sad"] * 3

    def test_placeholder_enum(self) -> None:
        schema = Schema(tables=[Table(name="orders", columns=[Column(name="state", type="enum")])])

        patched = with_placeholder_enums(schema)

        enum = patched.get_enum("orders_state_enum")
        assert enum is not None
        assert enum.values == PLACEHOLDER_ENUM_VALUES
        assert patched.get_table("orders").columns[0].enum == "orders_state_enum"

    def test_placeholder_values_generated(self) -> None:
        schema = Schema(tables=[Table(name="orders", columns=[Column(name="state", type="enum")])])
        dataset = generate_dataset(schema, 5, GeneratorContext(seed=1, null_probability=0.0))

        assert set(dataset.column_values("orders", "state")) <= set(PLACEHOLDER_ENUM_VALUES)
        assert dataset.schema.get_enum("orders_state_enum") is not None

    def test_resolved_schema_unchanged(self, blog_schema: Schema) -> None:
        assert with_placeholder_enums(blog_schema) is blog_schema


# ============================================================================
# Values
# ============================================================================


class TestValues:
    """Per-column value producers."""

    def test_email_column(self) -> None:
        ctx = GeneratorContext(seed=1)
        assert fake_value(ctx, Column(name="email", type="text"), 4) == "user4@example.com"

    def test_typed_values(self) -> None:
        ctx = GeneratorContext(seed=1)
        assert isinstance(fake_value(ctx, Column(name="n", type="integer"), 0), int)
        assert isinstance(fake_value(ctx, Column(name="b", type="boolean"), 0), bool)
        assert isinstance(fake_value(ctx, Column(name="d", type="date"), 0), date)
        assert isinstance(fake_value(ctx, Column(name="j", type="jsonb"), 0), dict)
        assert isinstance(fake_value(ctx, Column(name="a", type="integer[]"), 0), list)

    def test_zoned_timestamp(self) -> None:
        ctx = GeneratorContext(seed=1)
        value = fake_value(ctx, Column(name="t", type="timestamp with time zone"), 0)
        assert isinstance(value, datetime)
        assert value.tzinfo is not None
        assert value.microsecond == 0

    def test_small_integer_in_range(self) -> None:
        ctx = GeneratorContext(seed=1)
        values = [fake_value(ctx, Column(name="n", type="smallint"), i) for i in range(50)]
        assert all(1 <= v <= 32767 for v in values)

    def test_integer_key_counter_per_table(self) -> None:
        ctx = GeneratorContext()
        column = Column(name="id", type="integer", is_primary=True)
        assert [key_value(ctx, "a", column, i) for i in range(3)] == [1, 2, 3]
        assert key_value(ctx, "b", column, 0) == 1

    def test_text_key_fits_max_length(self) -> None:
        ctx = GeneratorContext(seed=1)
        value = key_value(ctx, "t", Column(name="code", type="varchar(6)", max_length=6), 0)
        assert len(value) <= 6
        assert value.endswith("_1")

    def test_unique_fallback_suffix(self) -> None:
        ctx = GeneratorContext(seed=1, max_unique_attempts=2)
        column = Column(name="email", type="text", is_unique=True)
        ctx.seen("users.email").update({"user0@example.com", "user0@example.com_1_1"})

        value = unique_value(ctx, "users", column, 0)

        assert value == "user0@example.com_1_1_0"
        assert value in ctx.seen("users.email")

    def test_unique_json_values(self) -> None:
        ctx = GeneratorContext(seed=1)
        column = Column(name="meta", type="jsonb", is_unique=True)
        values = [unique_value(ctx, "t", column, 0) for _ in range(3)]
        assert len({v["uniqueKey"] for v in values}) == 3


# ============================================================================
# Output
# ============================================================================


class TestWriteDataset:
    """A dataset is written in the snapshot layout."""

    def test_layout(self, tmp_path: Path, blog_schema: Schema) -> None:
        dataset = generate_dataset(blog_schema, 3, GeneratorContext(seed=1))

        result = write_dataset(dataset, tmp_path / "synthetic")

        assert result.success is True
        assert result.total_rows == 6
        assert (tmp_path / "synthetic" / "schema.json").exists()
        header, rows = read_rows(tmp_path / "synthetic" / "users.csv")
        assert header == ["id", "email", "name"]
        assert [row[0] for row in rows] == ["1", "2", "3"]
        assert [row[1] for row in rows] == [f"user{i}@example.com" for i in range(3)]
