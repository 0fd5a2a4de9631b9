"""Canonical text encoding of column values for row files.

``encode`` turns a native driver value into the text written to a row file;
``decode`` turns that text back into a value an insert accepts.  The rules
depend only on the column's declared type (its ``TypeCategory``):

==========  ==========================================  ==============================================
category    encode                                      decode
==========  ==========================================  ==============================================
null        ``NULL``                                    ``NULL``, ``""`` or ``null`` -> ``None``
boolean     ``true`` / ``false``                        ``true/t/yes/y/1``, ``false/f/no/n/0``
timestamp   ``YYYY-MM-DD HH:MM:SS.ffffff +HHMM``        zone-suffixed, then ISO-8601, then date-only
json        JSON text                                   strict, quote substitution, repair, raw text
array       ``{a,b}`` native syntax                     native, JSON array, bare scalar; naive split
enum        member string                               member string
numeric     ``str(value)``                              int, else float (Decimal for exact types)
==========  ==========================================  ==============================================

Field-level failures never raise out of ``decode``: the original text is
kept.  Only a field-count mismatch in ``decode_row`` is fatal.
"""

import json
import logging
import re
import uuid
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from db_snapshot.exceptions import RowFormatError, ValueCoercionError
from db_snapshot.schema.models import Column
from db_snapshot.types import (
    RawText,
    TypeCategory,
    categorize,
    element_type,
)

logger = logging.getLogger(__name__)

NULL_TOKEN = "NULL"

_NULL_INPUTS = {"", NULL_TOKEN, "null"}
_TRUE_INPUTS = {"true", "t", "yes", "y", "1"}
_FALSE_INPUTS = {"false", "f", "no", "n", "0"}

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"
TIMESTAMP_TZ_FORMAT = "%Y-%m-%d %H:%M:%S.%f %z"

# Trailing zone name after a numeric offset, e.g. "+0000 UTC"
_ZONE_NAME = re.compile(r"(?P<head>.*[+-]\d{2}:?\d{2})\s+[A-Za-z_/]+$")
_BARE_KEY = re.compile(r"(?P<lead>[{,]\s*)(?P<key>[A-Za-z_][\w\-]*)\s*:")
_TRAILING_COMMA = re.compile(r",\s*(?P<close>[}\]])")
_ARRAY_NEEDS_QUOTES = re.compile(r'[,{}"\\\s]')


def column_category(column: Column) -> TypeCategory:
    """Category of a column's declared type."""
    return categorize(column.type, column.is_enum)


# ============================================================================
# Encode
# ============================================================================


def encode(value: Any, column: Column) -> str:
    """Encode a native value as row-file text.

    Example:
        >>> encode(None, Column(name="a", type="text"))
        'NULL'
        >>> encode([1, 2], Column(name="a", type="integer[]"))
        '{1,2}'
    """
    if value is None:
        return NULL_TOKEN
    category = column_category(column)

    if category == TypeCategory.BOOLEAN and isinstance(value, (bool, int)):
        return "true" if value else "false"
    if category == TypeCategory.JSON:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode("utf-8")
        if isinstance(value, str) and _is_json_text(value):
            return value
        return json.dumps(value, ensure_ascii=False, default=str)
    if category == TypeCategory.ARRAY:
        return _encode_array(value)
    return _encode_scalar(value)


def _encode_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.strftime(TIMESTAMP_TZ_FORMAT)
        return value.strftime(TIMESTAMP_FORMAT)
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _is_json_text(text: str) -> bool:
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


def _quote_array_element(text: str) -> str:
    if text == "" or text.upper() == NULL_TOKEN or _ARRAY_NEEDS_QUOTES.search(text):
        return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return text


def _encode_array(value: Any) -> str:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("{") and stripped.endswith("}"):
            return stripped
        if stripped.startswith("[") and stripped.endswith("]"):
            try:
                return _encode_array(json.loads(stripped))
            except json.JSONDecodeError:
                pass
        return "{" + _quote_array_element(value) + "}"
    if not isinstance(value, (list, tuple)):
        return "{" + _quote_array_element(_encode_scalar(value)) + "}"

    parts = []
    for element in value:
        if element is None:
            parts.append(NULL_TOKEN)
        elif isinstance(element, (list, tuple)):
            parts.append(_encode_array(element))
        else:
            parts.append(_quote_array_element(_encode_scalar(element)))
    return "{" + ",".join(parts) + "}"


# ============================================================================
# Decode
# ============================================================================


def decode(text: str | None, column: Column) -> Any:
    """Decode row-file text into a value for insertion.

    Never raises for a single field: text that cannot be coerced is returned
    as-is (``RawText`` for JSON columns so adapters send it verbatim).

    Example:
        >>> decode("{'a':1}", Column(name="data", type="jsonb"))
        {'a': 1}
        >>> decode("yes", Column(name="active", type="boolean"))
        True
    """
    if text is None or text in _NULL_INPUTS:
        return None
    category = column_category(column)

    if category == TypeCategory.JSON:
        return decode_json(text)
    if category == TypeCategory.ARRAY:
        return decode_array(text, element_type(column.type))

    try:
        return _coerce(text, category, column.type)
    except ValueCoercionError as e:
        logger.debug("Keeping original text for %s: %s", column.name, e)
        return text


def _coerce(text: str, category: TypeCategory, type_name: str) -> Any:
    """Strict conversion of non-null text; raises ``ValueCoercionError``."""
    if category == TypeCategory.BOOLEAN:
        lowered = text.strip().lower()
        if lowered in _TRUE_INPUTS:
            return True
        if lowered in _FALSE_INPUTS:
            return False
        raise ValueCoercionError(f"Not a boolean: {text!r}")
    if category == TypeCategory.TIMESTAMP:
        return parse_timestamp(text)
    if category == TypeCategory.DATE:
        try:
            return date.fromisoformat(text.strip())
        except ValueError:
            return parse_timestamp(text).date()
    if category == TypeCategory.TIME:
        try:
            return time.fromisoformat(text.strip())
        except ValueError as e:
            raise ValueCoercionError(f"Not a time: {text!r}") from e
    if category in (TypeCategory.INTEGER, TypeCategory.FLOAT, TypeCategory.DECIMAL):
        return parse_number(text, exact=category == TypeCategory.DECIMAL)
    if category == TypeCategory.UUID:
        try:
            return uuid.UUID(text.strip())
        except ValueError as e:
            raise ValueCoercionError(f"Not a UUID: {text!r}") from e
    if category == TypeCategory.BINARY:
        if text.startswith("\\x"):
            try:
                return bytes.fromhex(text[2:])
            except ValueError as e:
                raise ValueCoercionError(f"Bad hex bytes: {text!r}") from e
        return text.encode("utf-8")
    # enum and text
    return text


def parse_number(text: str, exact: bool = False) -> int | float | Decimal:
    """Integer parse, else float (``Decimal`` when ``exact``).

    Raises:
        ValueCoercionError: If the text is not numeric.
    """
    stripped = text.strip()
    try:
        return int(stripped)
    except ValueError:
        pass
    if exact:
        try:
            return Decimal(stripped)
        except InvalidOperation as e:
            raise ValueCoercionError(f"Not a number: {text!r}") from e
    try:
        return float(stripped)
    except ValueError as e:
        raise ValueCoercionError(f"Not a number: {text!r}") from e


def parse_timestamp(text: str) -> datetime:
    """Parse a timestamp: zone-suffixed format, then ISO-8601, then date-only.

    The zone-suffixed step also accepts a trailing zone name after the offset
    (``2024-01-02 03:04:05.5 +0000 UTC``) and a missing fractional part.

    Raises:
        ValueCoercionError: If no format matches.
    """
    stripped = text.strip()

    candidate = stripped
    match = _ZONE_NAME.match(candidate)
    if match:
        candidate = match.group("head")
    for fmt in (TIMESTAMP_TZ_FORMAT, "%Y-%m-%d %H:%M:%S %z"):
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(stripped)
    except ValueError:
        pass

    try:
        return datetime.strptime(stripped, "%Y-%m-%d")
    except ValueError as e:
        raise ValueCoercionError(f"Not a timestamp: {text!r}") from e


# ----------------------------------------------------------------------------
# JSON
# ----------------------------------------------------------------------------


def repair_json(text: str) -> str:
    """Best-effort repair: quote bare object keys and drop trailing commas."""
    repaired = _BARE_KEY.sub(lambda m: f'{m.group("lead")}"{m.group("key")}":', text)
    return _TRAILING_COMMA.sub(lambda m: m.group("close"), repaired)


def decode_json(text: str) -> Any:
    """Decode JSON text through the fallback ladder.

    1. strict parse
    2. single quotes replaced by double quotes
    3. ``repair_json`` on the result of step 2
    4. the original text, as ``RawText``

    Example:
        >>> decode_json("{'a':1}")
        {'a': 1}
        >>> decode_json("{a: 1,}")
        {'a': 1}
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    substituted = text.replace("'", '"')
    try:
        return json.loads(substituted)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(repair_json(substituted))
    except json.JSONDecodeError:
        logger.debug("Passing through unparseable JSON text: %.60s", text)
        return RawText(text)


# ----------------------------------------------------------------------------
# Arrays
# ----------------------------------------------------------------------------


def parse_array_literal(text: str) -> list:
    """Parse native ``{...}`` array syntax (nested, quoted, ``NULL`` aware).

    Raises:
        ValueCoercionError: If braces or quotes are unbalanced.

    Example:
        >>> parse_array_literal('{1,"a b",NULL}')
        ['1', 'a b', None]
    """
    stripped = text.strip()
    if not (stripped.startswith("{") and stripped.endswith("}")):
        raise ValueCoercionError(f"Not an array literal: {text!r}")

    pos = 0

    def parse_list() -> list:
        nonlocal pos
        pos += 1  # opening brace
        items: list = []
        if stripped[pos : pos + 1] == "}":
            pos += 1
            return items
        while pos < len(stripped):
            ch = stripped[pos]
            if ch == "{":
                items.append(parse_list())
            elif ch == '"':
                pos += 1
                chars: list[str] = []
                while pos < len(stripped) and stripped[pos] != '"':
                    if stripped[pos] == "\\" and pos + 1 < len(stripped):
                        pos += 1
                    chars.append(stripped[pos])
                    pos += 1
                if pos >= len(stripped):
                    raise ValueCoercionError(f"Unterminated quote in {text!r}")
                pos += 1
                items.append("".join(chars))
            else:
                start = pos
                while pos < len(stripped) and stripped[pos] not in ",}":
                    pos += 1
                token = stripped[start:pos].strip()
                items.append(None if token.upper() == NULL_TOKEN else token)

            while pos < len(stripped) and stripped[pos] == " ":
                pos += 1
            if pos >= len(stripped):
                break
            if stripped[pos] == ",":
                pos += 1
                continue
            if stripped[pos] == "}":
                pos += 1
                return items
            raise ValueCoercionError(f"Unexpected {stripped[pos]!r} in {text!r}")
        raise ValueCoercionError(f"Unbalanced braces in {text!r}")

    result = parse_list()
    if pos != len(stripped):
        raise ValueCoercionError(f"Trailing text after array in {text!r}")
    return result


def split_array_naive(text: str) -> list[str]:
    """Split on commas outside double quotes, after dropping outer brackets."""
    body = text.strip()
    if body[:1] in "{[" and body[-1:] in "}]":
        body = body[1:-1]

    items: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in body:
        if ch == '"':
            in_quotes = not in_quotes
            current.append(ch)
        elif ch == "," and not in_quotes:
            items.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    if current:
        items.append("".join(current).strip())
    return [item[1:-1] if len(item) >= 2 and item[0] == item[-1] == '"' else item for item in items]


def decode_array(text: str, element_type_name: str = "text") -> list:
    """Decode array text into a list of element-typed values.

    Native syntax is parsed first, then a JSON array, then a bare scalar is
    wrapped as a one-element list.  Malformed native or JSON input falls back
    to ``split_array_naive``.

    Example:
        >>> decode_array("{1,2,3}", "integer")
        [1, 2, 3]
        >>> decode_array("['x', 'y']", "text")
        ['x', 'y']
    """
    category = categorize(element_type_name)
    stripped = text.strip()

    def convert(items: list) -> list:
        out = []
        for item in items:
            if isinstance(item, list):
                out.append(convert(item))
            elif isinstance(item, str):
                out.append(_coerce_element(item, category, element_type_name))
            else:
                out.append(item)
        return out

    if stripped.startswith("{") and stripped.endswith("}"):
        try:
            return convert(parse_array_literal(stripped))
        except ValueCoercionError as e:
            logger.debug("Falling back to naive array split: %s", e)
            return convert(split_array_naive(stripped))

    if stripped.startswith("[") and stripped.endswith("]"):
        for candidate in (stripped, stripped.replace("'", '"')):
            try:
                parsed = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, list):
                return convert(parsed)
        return convert(split_array_naive(stripped))

    return convert([stripped])


def _coerce_element(text: str, category: TypeCategory, type_name: str) -> Any:
    if category == TypeCategory.JSON:
        return decode_json(text)
    try:
        return _coerce(text, category, type_name)
    except ValueCoercionError:
        return text


# ============================================================================
# Rows
# ============================================================================


def encode_row(values: Sequence[Any], columns: Sequence[Column]) -> list[str]:
    """Encode one row; ``values`` are in ``columns`` order."""
    return [encode(value, column) for value, column in zip(values, columns)]


def decode_row(
    fields: Sequence[str | None],
    columns: Sequence[Column],
    *,
    table: str | None = None,
    line: int | None = None,
) -> list[Any]:
    """Decode one row-file record.

    Raises:
        RowFormatError: If the field count differs from the column count.
    """
    if len(fields) != len(columns):
        raise RowFormatError(
            f"Expected {len(columns)} fields, got {len(fields)}",
            table=table,
            line=line,
        )
    return [decode(field, column) for field, column in zip(fields, columns)]
