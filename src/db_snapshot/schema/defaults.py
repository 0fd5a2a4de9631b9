"""Column default values as a closed variant.

Catalogs report defaults as free text: a quoted literal with a cast, a
``nextval(...)`` call, or an arbitrary SQL expression.  ``classify_default``
resolves that text once, at introspection time, so nothing downstream has to
re-parse it.

Usage:
    from db_snapshot.schema.defaults import classify_default

    classify_default("nextval('users_id_seq'::regclass)", "postgres")
    # SequenceDefault(kind='sequence', name='users_id_seq')
    classify_default("'active'::status", "postgres")
    # LiteralDefault(kind='literal', value='active')
"""

import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class NullDefault(BaseModel):
    """No default (or an explicit ``DEFAULT NULL``)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["null"] = "null"


class LiteralDefault(BaseModel):
    """A constant value, stored unquoted."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["literal"] = "literal"
    value: str


class SequenceDefault(BaseModel):
    """Value drawn from a sequence (serial / identity / auto_increment)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["sequence"] = "sequence"
    name: str


class ExpressionDefault(BaseModel):
    """A SQL expression evaluated by the engine, e.g. ``now()``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["expression"] = "expression"
    expression: str


ColumnDefault = Annotated[
    Union[NullDefault, LiteralDefault, SequenceDefault, ExpressionDefault],
    Field(discriminator="kind"),
]


_PG_NEXTVAL = re.compile(r"^nextval\('(?P<name>(?:[^']|'')+)'(?:::regclass)?\)$", re.IGNORECASE)
_PG_NULL = re.compile(r"^NULL(?:::.+)?$", re.IGNORECASE)
_PG_QUOTED = re.compile(r"^'(?P<value>(?:[^']|'')*)'(?:::.+)?$", re.DOTALL)
_PG_NUMBER = re.compile(r"^\(?(?P<value>-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)\)?(?:::.+)?$")
_BOOLEAN = re.compile(r"^(?P<value>true|false)(?:::.+)?$", re.IGNORECASE)

_MYSQL_FUNCTIONS = (
    "CURRENT_TIMESTAMP",
    "CURRENT_DATE",
    "CURRENT_TIME",
    "NOW(",
    "LOCALTIME",
    "LOCALTIMESTAMP",
    "UUID(",
)


def classify_default(
    raw: Any,
    engine: str = "postgres",
    *,
    extra: str | None = None,
    table: str | None = None,
    column: str | None = None,
) -> NullDefault | LiteralDefault | SequenceDefault | ExpressionDefault:
    """Resolve a raw catalog default into the closed variant.

    Args:
        raw: Default as reported by the catalog (text, or a scalar from a
            legacy snapshot file).  ``None`` means no default.
        engine: Engine tag of the catalog the text came from.
        extra: MySQL ``information_schema.columns.extra`` (carries
            ``auto_increment`` and ``DEFAULT_GENERATED``).
        table: Owning table, used to name MySQL auto-increment sequences.
        column: Owning column, used to name MySQL auto-increment sequences.

    Returns:
        One of ``NullDefault``, ``LiteralDefault``, ``SequenceDefault``,
        ``ExpressionDefault``.
    """
    if engine == "mysql" and extra and "auto_increment" in extra.lower():
        return SequenceDefault(name=f"{table}_{column}_seq")

    if raw is None:
        return NullDefault()
    if isinstance(raw, bool):
        return LiteralDefault(value="true" if raw else "false")
    if isinstance(raw, (int, float)):
        return LiteralDefault(value=str(raw))

    text = str(raw).strip()
    if engine == "mysql":
        return _classify_mysql(text, extra)
    return _classify_postgres(text)


def _classify_postgres(text: str):
    match = _PG_NEXTVAL.match(text)
    if match:
        name = match.group("name").replace("''", "'")
        return SequenceDefault(name=name)
    if _PG_NULL.match(text):
        return NullDefault()
    match = _PG_QUOTED.match(text)
    if match:
        return LiteralDefault(value=match.group("value").replace("''", "'"))
    match = _PG_NUMBER.match(text)
    if match:
        return LiteralDefault(value=match.group("value"))
    match = _BOOLEAN.match(text)
    if match:
        return LiteralDefault(value=match.group("value").lower())
    return ExpressionDefault(expression=text)


def _classify_mysql(text: str, extra: str | None):
    if text.upper() == "NULL":
        return NullDefault()
    if extra and "default_generated" in extra.lower():
        return ExpressionDefault(expression=text)
    if text.upper().startswith(_MYSQL_FUNCTIONS):
        return ExpressionDefault(expression=text)
    # MariaDB reports string literals quoted
    if len(text) >= 2 and text.startswith("'") and text.endswith("'"):
        return LiteralDefault(value=text[1:-1].replace("''", "'"))
    return LiteralDefault(value=text)
