from __future__ import annotations

from copy import deepcopy
from enum import Enum, auto
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, Sequence

from querywright.exception import ValidationError

from .condition import (
    Condition,
    In,
    IsNotNull,
    IsNull,
    Op,
    Placeholders,
    from_mapping,
)
from .sql import SQLQuery


class SelectMode(Enum):
    PLAIN = auto()
    COUNT = auto()


class Join(NamedTuple):
    kind: str
    table: str
    on: str


class OrderClause(NamedTuple):
    column: str
    direction: str


DIRECTIONS = ("ASC", "DESC")


def _non_negative(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer")
    return value


class QueryBuilder:
    """Fluent builder for parameterized SELECT statements.

    Values always travel as `$n` placeholders and never touch the statement
    text. Identifiers, operators and join expressions are trusted and
    inserted verbatim: they must come from code, not from user input.

    Example:

        ```python
        text, values = (
            QueryBuilder()
            .select(["id", "name"])
            .from_("users")
            .where({"tenant_id": "t1", "active": True})
            .build()
        )
        # SELECT id, name FROM users WHERE tenant_id = $1 AND active = $2
        ```
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> QueryBuilder:
        """Return the builder to its pristine state"""
        self._columns: List[str] = []
        self._mode = SelectMode.PLAIN
        self._count_column = "*"
        self._table: Optional[str] = None
        self._conditions: List[Condition] = []
        self._joins: List[Join] = []
        self._group_by: List[str] = []
        self._having: List[Condition] = []
        self._order: List[OrderClause] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        return self

    def select(self, columns: Sequence[str]) -> QueryBuilder:
        if isinstance(columns, str):
            columns = [columns]
        columns = list(columns)
        if not columns:
            raise ValidationError("select requires at least one column")
        if not all(isinstance(column, str) and column for column in columns):
            raise ValidationError("select columns must be non-empty strings")
        self._columns = columns
        self._mode = SelectMode.PLAIN
        return self

    def select_count(self, column: Optional[str] = None) -> QueryBuilder:
        self._columns = []
        self._mode = SelectMode.COUNT
        self._count_column = column or "*"
        return self

    def from_(self, table: str, alias: Optional[str] = None) -> QueryBuilder:
        if not isinstance(table, str) or not table.strip():
            raise ValidationError("from requires a table name")
        self._table = f"{table} AS {alias}" if alias else table
        return self

    def where(self, conditions: Mapping[str, Any]) -> QueryBuilder:
        """Add one clause per entry, joined with AND.

        `None` renders `IS NULL`, a list or tuple renders `IN (...)`, `UNSET`
        skips the entry and anything else renders `=`.
        """
        self._conditions.extend(from_mapping(conditions))
        return self

    def where_op(self, column: str, operator: str, value: Any) -> QueryBuilder:
        self._conditions.append(Op(column, operator, value))
        return self

    def where_null(self, column: str) -> QueryBuilder:
        self._conditions.append(IsNull(column))
        return self

    def where_not_null(self, column: str) -> QueryBuilder:
        self._conditions.append(IsNotNull(column))
        return self

    def where_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        if isinstance(values, (str, bytes)):
            raise ValidationError("where_in requires a sequence of values")
        self._conditions.append(In(column, tuple(values)))
        return self

    def join(self, kind: str, table: str, on: str) -> QueryBuilder:
        self._joins.append(Join(kind, table, on))
        return self

    def group_by(self, columns: Sequence[str]) -> QueryBuilder:
        if isinstance(columns, str):
            columns = [columns]
        self._group_by.extend(columns)
        return self

    def having(self, conditions: Mapping[str, Any]) -> QueryBuilder:
        self._having.extend(from_mapping(conditions))
        return self

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder:
        normalized = str(direction).upper()
        if normalized not in DIRECTIONS:
            raise ValidationError("order direction must be ASC or DESC")
        self._order.append(OrderClause(column, normalized))
        return self

    def limit(self, n: int) -> QueryBuilder:
        self._limit = _non_negative("limit", n)
        return self

    def offset(self, n: int) -> QueryBuilder:
        self._offset = _non_negative("offset", n)
        return self

    def clone(self) -> QueryBuilder:
        return deepcopy(self)

    def build(self) -> SQLQuery:
        if self._table is None:
            raise ValidationError("from must precede build")

        if self._mode is SelectMode.COUNT:
            parts = [f"SELECT COUNT({self._count_column}) AS count"]
        elif self._columns:
            parts = [f"SELECT {', '.join(self._columns)}"]
        else:
            raise ValidationError("select requires at least one column")

        parts.append(f"FROM {self._table}")
        parts.extend(
            f"{join.kind} JOIN {join.table} ON {join.on}"
            for join in self._joins
        )

        placeholders = Placeholders()
        if self._conditions:
            parts.append(
                "WHERE " + self._render(self._conditions, placeholders)
            )
        if self._group_by:
            parts.append(f"GROUP BY {', '.join(self._group_by)}")
        if self._having:
            parts.append("HAVING " + self._render(self._having, placeholders))
        if self._order:
            parts.append(
                "ORDER BY "
                + ", ".join(
                    f"{clause.column} {clause.direction}"
                    for clause in self._order
                )
            )
        if self._limit is not None:
            parts.append(f"LIMIT {self._limit}")
        if self._offset is not None:
            parts.append(f"OFFSET {self._offset}")

        return SQLQuery(" ".join(parts), placeholders.values)

    @staticmethod
    def _render(
        conditions: List[Condition], placeholders: Placeholders
    ) -> str:
        return " AND ".join(
            condition.render(placeholders) for condition in conditions
        )
