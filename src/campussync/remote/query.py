"""Query constraints understood by the bundled remote stores.

The sync engine treats constraints as opaque and passes them through to
``RemoteDocumentStore.query``.  The stores in this package interpret them
with ``apply_constraints``, following document-database semantics: all
filters first, then ordering, then the limit.  A document lacking a filtered
or ordered field never matches.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

FILTER_OPS: tuple[str, ...] = ("==", "!=", "<", "<=", ">", ">=", "in", "not-in", "array-contains")
DIRECTIONS: tuple[str, ...] = ("asc", "desc")

_MISSING = object()


@dataclass(frozen=True)
class Where:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = "asc"


@dataclass(frozen=True)
class Limit:
    count: int


def where(field: str, op: str, value: Any) -> Where:
    """Filter on *field* (dotted paths reach into nested objects)."""
    if not field:
        raise ValueError("where() needs a field name")
    if op not in FILTER_OPS:
        raise ValueError(f"Unsupported operator {op!r}; expected one of {', '.join(FILTER_OPS)}")
    if op in ("in", "not-in") and not isinstance(value, (list, tuple)):
        raise ValueError(f"Operator {op!r} needs a list value")
    return Where(field, op, value)


def order_by(field: str, direction: str = "asc") -> OrderBy:
    if not field:
        raise ValueError("order_by() needs a field name")
    if direction not in DIRECTIONS:
        raise ValueError(f"Direction must be 'asc' or 'desc', got {direction!r}")
    return OrderBy(field, direction)


def limit(count: int) -> Limit:
    if not isinstance(count, int) or isinstance(count, bool) or count < 0:
        raise ValueError(f"limit() needs a non-negative integer, got {count!r}")
    return Limit(count)


def apply_constraints(docs: Iterable, constraints: Sequence[object] = ()) -> list:
    """Filter, sort, and truncate documents.

    *docs* are ``(id, fields)`` pairs; the same pairs are returned.
    """
    filters: list[Where] = []
    orders: list[OrderBy] = []
    cap: int | None = None
    for constraint in constraints:
        if isinstance(constraint, Where):
            filters.append(constraint)
        elif isinstance(constraint, OrderBy):
            orders.append(constraint)
        elif isinstance(constraint, Limit):
            cap = constraint.count if cap is None else min(cap, constraint.count)
        else:
            raise ValueError(f"Unsupported query constraint: {constraint!r}")

    result = [d for d in docs if all(_matches(d[1], f) for f in filters)]

    for order in orders:
        result = [d for d in result if _lookup(d[1], order.field) is not _MISSING]
    # Stable sorts applied last-key-first give multi-key ordering.
    for order in reversed(orders):
        result.sort(
            key=lambda d, f=order.field: _sort_key(_lookup(d[1], f)),
            reverse=order.direction == "desc",
        )

    if cap is not None:
        result = result[:cap]
    return result


def _lookup(fields: dict, path: str) -> Any:
    value: Any = fields
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _matches(fields: dict, f: Where) -> bool:
    value = _lookup(fields, f.field)
    if value is _MISSING:
        return False
    try:
        if f.op == "==":
            return value == f.value
        if f.op == "!=":
            return value != f.value
        if f.op == "<":
            return value < f.value
        if f.op == "<=":
            return value <= f.value
        if f.op == ">":
            return value > f.value
        if f.op == ">=":
            return value >= f.value
        if f.op == "in":
            return value in f.value
        if f.op == "not-in":
            return value not in f.value
        if f.op == "array-contains":
            return isinstance(value, list) and f.value in value
    except TypeError:
        # Values of different types never compare as ordered.
        return False
    return False


def _sort_key(value: Any) -> tuple:
    # Mixed types order by type rank first, the way document databases do.
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, repr(value))
