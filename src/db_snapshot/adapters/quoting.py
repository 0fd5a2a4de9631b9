"""Identifier and literal quoting per engine.

Every statement built from catalog names goes through a ``Quoter`` so that
names containing quotes, spaces or reserved words are always escaped the
same way.

Usage:
    from db_snapshot.adapters.quoting import get_quoter

    q = get_quoter("postgres")
    q.identifier('odd"name')   # '"odd""name"'
    q.literal("it's")          # "'it''s'"
"""

from typing import Protocol


class Quoter(Protocol):
    """Engine-specific quoting rules."""

    engine: str

    def identifier(self, name: str) -> str:
        ...

    def qualified(self, *parts: str) -> str:
        ...

    def literal(self, value: str) -> str:
        ...


class PostgresQuoter:
    """Double-quoted identifiers, single-quoted literals."""

    engine = "postgres"

    def identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def qualified(self, *parts: str) -> str:
        return ".".join(self.identifier(p) for p in parts if p)

    def literal(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"


class MySQLQuoter:
    """Backtick identifiers; literals also escape backslashes."""

    engine = "mysql"

    def identifier(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def qualified(self, *parts: str) -> str:
        return ".".join(self.identifier(p) for p in parts if p)

    def literal(self, value: str) -> str:
        return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


_QUOTERS: dict[str, type] = {
    "postgres": PostgresQuoter,
    "mysql": MySQLQuoter,
}


def get_quoter(engine: str) -> Quoter:
    """Return the quoter for an engine tag.

    Raises:
        ValueError: If the engine is not supported.
    """
    try:
        return _QUOTERS[engine]()
    except KeyError:
        raise ValueError(
            f"Unsupported engine: '{engine}'. Supported: {', '.join(_QUOTERS)}"
        ) from None
