"""
Condition clauses used by WHERE and HAVING.

Each clause is built once from caller input and rendered later against a
`Placeholders` counter, so re-rendering always yields the same numbering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Tuple, Union


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


UNSET: Any = _Unset()
"""Marks a condition value as absent: the entry produces no clause and
consumes no parameter."""

# Bound to the sentinel placeholder so that `1 = $n` never matches
EMPTY_IN_SENTINEL = 0


class Placeholders:
    """Hands out `$1`, `$2`, ... and collects the bound values in order"""

    def __init__(self) -> None:
        self.values: List[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


@dataclass(frozen=True)
class Equals:
    column: str
    value: Any

    def render(self, placeholders: Placeholders) -> str:
        return f"{self.column} = {placeholders.bind(self.value)}"


@dataclass(frozen=True)
class In:
    column: str
    values: Tuple[Any, ...]

    def render(self, placeholders: Placeholders) -> str:
        if not self.values:
            return f"1 = {placeholders.bind(EMPTY_IN_SENTINEL)}"
        markers = ", ".join(placeholders.bind(value) for value in self.values)
        return f"{self.column} IN ({markers})"


@dataclass(frozen=True)
class IsNull:
    column: str

    def render(self, placeholders: Placeholders) -> str:
        return f"{self.column} IS NULL"


@dataclass(frozen=True)
class IsNotNull:
    column: str

    def render(self, placeholders: Placeholders) -> str:
        return f"{self.column} IS NOT NULL"


@dataclass(frozen=True)
class Op:
    column: str
    operator: str
    value: Any

    def render(self, placeholders: Placeholders) -> str:
        return f"{self.column} {self.operator} {placeholders.bind(self.value)}"


Condition = Union[Equals, In, IsNull, IsNotNull, Op]


def from_value(column: str, value: Any) -> Condition:
    if value is None:
        return IsNull(column)
    if isinstance(value, (list, tuple)):
        return In(column, tuple(value))
    return Equals(column, value)


def from_mapping(conditions: Mapping[str, Any]) -> Iterator[Condition]:
    for column, value in conditions.items():
        if value is UNSET:
            continue
        yield from_value(column, value)
