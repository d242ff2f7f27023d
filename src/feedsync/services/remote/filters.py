"""Row filter predicates understood by every remote store.

Comparison semantics follow SQL: ``eq``/``neq``/``ilike`` never match a
NULL column or a NULL operand; use ``is`` to test for NULL.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Iterable, Mapping, Union


class FilterOp(str, Enum):
    """Supported comparison operators."""

    EQ = "eq"
    NEQ = "neq"
    ILIKE = "ilike"
    IN = "in"
    IS = "is"


@lru_cache(maxsize=256)
def _like_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class Filter:
    """Compare one column of a row against a value."""

    column: str
    op: FilterOp
    value: Any = None

    def matches(self, row: Mapping[str, Any]) -> bool:
        actual = row.get(self.column)
        op = FilterOp(self.op)

        if op is FilterOp.IS:
            if self.value is None:
                return actual is None
            return actual is not None and actual == self.value
        if op is FilterOp.IN:
            return actual is not None and actual in tuple(self.value)
        if actual is None or self.value is None:
            return False
        if op is FilterOp.EQ:
            return actual == self.value
        if op is FilterOp.NEQ:
            return actual != self.value
        return _like_regex(str(self.value)).fullmatch(str(actual)) is not None


@dataclass(frozen=True)
class AnyOf:
    """OR of AND-groups: matches when every filter of any group matches."""

    groups: tuple[tuple[Filter, ...], ...]

    def matches(self, row: Mapping[str, Any]) -> bool:
        return any(all(f.matches(row) for f in group) for group in self.groups)


Predicate = Union[Filter, AnyOf]


def eq(column: str, value: Any) -> Filter:
    return Filter(column, FilterOp.EQ, value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, FilterOp.NEQ, value)


def ilike(column: str, pattern: str) -> Filter:
    return Filter(column, FilterOp.ILIKE, pattern)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, FilterOp.IN, tuple(values))


def is_(column: str, value: Any) -> Filter:
    return Filter(column, FilterOp.IS, value)


def any_of(*groups: Iterable[Filter]) -> AnyOf:
    return AnyOf(tuple(tuple(group) for group in groups))


def match_all(row: Mapping[str, Any], predicates: Iterable[Predicate]) -> bool:
    return all(predicate.matches(row) for predicate in predicates)


__all__ = [
    "AnyOf",
    "Filter",
    "FilterOp",
    "Predicate",
    "any_of",
    "eq",
    "ilike",
    "in_",
    "is_",
    "match_all",
    "neq",
]
