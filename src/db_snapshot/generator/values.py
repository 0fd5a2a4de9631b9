"""Type-appropriate synthetic values for a column."""

import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from db_snapshot.generator.context import GeneratorContext
from db_snapshot.schema.models import Column
from db_snapshot.types import TypeCategory, base_type, categorize, element_type

logger = logging.getLogger(__name__)

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
_SMALL_INTS = {"smallint", "int2", "tinyint", "smallserial"}
_SUFFIXABLE = {TypeCategory.TEXT, TypeCategory.BINARY}


def _is_zoned(column: Column) -> bool:
    name = column.type.lower()
    return "with time zone" in name or name == "timestamptz"


def _fit(text: str, column: Column) -> str:
    if column.max_length and len(text) > column.max_length:
        return text[: column.max_length]
    return text


def _with_suffix(text: str, suffix: str, column: Column) -> str:
    if column.max_length and len(text) + len(suffix) > column.max_length:
        text = text[: max(0, column.max_length - len(suffix))]
    return text + suffix


def text_value(ctx: GeneratorContext, column: Column, row_index: int) -> str:
    """Text, using the column name to pick a realistic generator."""
    name = column.name.lower()
    if "email" in name:
        return _fit(f"user{row_index}@example.com", column)
    if "name" in name:
        return _fit(ctx.faker.name(), column)
    if "phone" in name:
        return _fit(ctx.faker.phone_number(), column)
    return _fit(ctx.faker.word(), column)


def fake_value(
    ctx: GeneratorContext,
    column: Column,
    row_index: int,
    enum_values: list[str] | None = None,
) -> Any:
    """A plausible value for an ordinary (non-key) column."""
    category = categorize(column.type, column.is_enum)

    if category == TypeCategory.ENUM:
        values = enum_values or column.values or []
        return values[row_index % len(values)] if values else None
    if category == TypeCategory.BOOLEAN:
        return ctx.rng.random() < 0.5
    if category == TypeCategory.INTEGER:
        upper = 32767 if base_type(column.type) in _SMALL_INTS else 1_000_000
        return ctx.rng.randint(1, upper)
    if category == TypeCategory.FLOAT:
        return round(ctx.rng.uniform(0, 1000), 2)
    if category == TypeCategory.DECIMAL:
        return Decimal(f"{ctx.rng.uniform(0, 1000):.2f}")
    if category == TypeCategory.TIMESTAMP:
        value = ctx.faker.date_time_between(start_date="-5y", end_date="now")
        value = value.replace(microsecond=0)
        return value.replace(tzinfo=timezone.utc) if _is_zoned(column) else value
    if category == TypeCategory.DATE:
        return ctx.faker.date_between(start_date="-5y", end_date="today")
    if category == TypeCategory.TIME:
        return ctx.faker.time_object()
    if category == TypeCategory.JSON:
        return {"id": row_index + 1, "value": ctx.faker.word(), "active": ctx.rng.random() < 0.5}
    if category == TypeCategory.ARRAY:
        element = Column(name=column.name, type=element_type(column.type))
        return [fake_value(ctx, element, row_index) for _ in range(ctx.rng.randint(1, 3))]
    if category == TypeCategory.UUID:
        return ctx.faker.uuid4()
    if category == TypeCategory.BINARY:
        return ctx.faker.binary(length=16)
    return text_value(ctx, column, row_index)


def key_value(ctx: GeneratorContext, table: str, column: Column, row_index: int) -> Any:
    """A primary-key style value: counters, identifiers, or distinguishing words."""
    category = categorize(column.type, column.is_enum)
    if category == TypeCategory.INTEGER:
        return ctx.next_id(table)
    if category == TypeCategory.UUID:
        return ctx.faker.uuid4()
    if category in (TypeCategory.FLOAT, TypeCategory.DECIMAL):
        return ctx.next_id(table)
    if category == TypeCategory.TIMESTAMP:
        value = _BASE_TIME + timedelta(seconds=row_index)
        return value if _is_zoned(column) else value.replace(tzinfo=None)
    if category == TypeCategory.DATE:
        return (_BASE_TIME + timedelta(days=row_index)).date()
    return _with_suffix(ctx.faker.word(), f"_{row_index + 1}", column)


def _candidate(
    ctx: GeneratorContext,
    column: Column,
    category: TypeCategory,
    row_index: int,
    attempt: int,
    enum_values: list[str] | None,
) -> Any:
    if category in (TypeCategory.INTEGER, TypeCategory.FLOAT, TypeCategory.DECIMAL):
        return row_index + 1 + attempt
    if category == TypeCategory.TIMESTAMP:
        value = _BASE_TIME + timedelta(seconds=row_index + attempt)
        return value if _is_zoned(column) else value.replace(tzinfo=None)
    if category == TypeCategory.DATE:
        return (_BASE_TIME + timedelta(days=row_index + attempt)).date()
    if category == TypeCategory.JSON:
        return {"id": row_index + 1 + attempt, "uniqueKey": f"key_{row_index + 1}_{attempt}"}
    if category == TypeCategory.ENUM:
        values = enum_values or column.values or []
        return values[(row_index + attempt) % len(values)] if values else None
    if category == TypeCategory.TEXT:
        value = text_value(ctx, column, row_index)
        if attempt:
            value = _with_suffix(value, f"_{row_index + 1}_{attempt}", column)
        return value
    return fake_value(ctx, column, row_index, enum_values)


def _hashable(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return value


def unique_value(
    ctx: GeneratorContext,
    table: str,
    column: Column,
    row_index: int,
    enum_values: list[str] | None = None,
) -> Any:
    """A value not yet used in ``table.column``.

    Retries up to ``ctx.max_unique_attempts`` times, then appends the row
    index as a suffix (text columns) so the loop always terminates.
    """
    category = categorize(column.type, column.is_enum)
    seen = ctx.seen(f"{table}.{column.name}")

    value: Any = None
    for attempt in range(ctx.max_unique_attempts):
        value = _candidate(ctx, column, category, row_index, attempt, enum_values)
        key = _hashable(value)
        if key not in seen:
            seen.add(key)
            return value

    if category in _SUFFIXABLE and isinstance(value, str):
        value = _with_suffix(value, f"_{row_index}", column)
    else:
        logger.warning(
            "Could not find a unique value for %s.%s after %d attempts",
            table,
            column.name,
            ctx.max_unique_attempts,
        )
    seen.add(_hashable(value))
    return value
