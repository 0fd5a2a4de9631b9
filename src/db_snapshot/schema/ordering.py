"""Dependency ordering of tables by foreign-key edges.

An edge ``A -> B`` means "A has a foreign key into B".  ``order_tables``
returns referenced tables before the tables that reference them.

Cycles never fail: the back edge closing a cycle is logged and treated as
satisfied, so ordering across a cycle is best-effort.  Callers that need
circular integrity attach foreign-key constraints separately.

References to tables outside the given list (dangling or cross-namespace)
add no edge; the foreign key itself stays on the column.

Usage:
    from db_snapshot.schema.ordering import order_tables

    for table in order_tables(schema.tables):
        load(table)
"""

import logging

from db_snapshot.schema.models import Table

logger = logging.getLogger(__name__)


def build_dependency_graph(tables: list[Table]) -> dict[str, set[str]]:
    """Map each table name to the set of table names it references.

    Self references and references to tables not in ``tables`` are dropped.

    Example:
        >>> graph = build_dependency_graph(schema.tables)
        >>> graph["posts"]
        {'users'}
    """
    names = {t.name for t in tables}
    graph: dict[str, set[str]] = {}
    for table in tables:
        deps: set[str] = set()
        for column in table.foreign_keys:
            target = column.foreign_key.table
            if target != table.name and target in names:
                deps.add(target)
        graph[table.name] = deps
    return graph


def _sort(tables: list[Table]) -> tuple[list[str], list[tuple[str, str]]]:
    graph = build_dependency_graph(tables)

    sorted_names: list[str] = []
    back_edges: list[tuple[str, str]] = []
    visited: set[str] = set()
    visiting: set[str] = set()  # For cycle detection

    def visit(name: str) -> None:
        visiting.add(name)
        for dep in sorted(graph[name]):
            if dep in visited:
                continue
            if dep in visiting:
                # Cycle detected -- treat the back edge as satisfied
                back_edges.append((name, dep))
                continue
            visit(dep)
        visiting.discard(name)
        visited.add(name)
        sorted_names.append(name)

    for table in tables:
        if table.name not in visited:
            visit(table.name)

    return sorted_names, back_edges


def order_tables(tables: list[Table]) -> list[Table]:
    """Topologically sort tables, referenced tables first.

    Roots are visited in input order and dependencies in name order, so the
    result is deterministic.  Every table appears exactly once.

    Args:
        tables: Tables to order (typically ``schema.tables``).

    Returns:
        New list of the same ``Table`` objects in dependency order.
    """
    sorted_names, back_edges = _sort(tables)
    for source, target in back_edges:
        logger.warning(
            "Foreign-key cycle between %s and %s; ordering across it is not guaranteed",
            source,
            target,
        )
    by_name = {t.name: t for t in tables}
    return [by_name[name] for name in sorted_names]


def find_cycles(tables: list[Table]) -> list[tuple[str, str]]:
    """Return the back edges ``(referencing, referenced)`` that close cycles."""
    _, back_edges = _sort(tables)
    return back_edges
