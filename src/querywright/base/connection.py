from __future__ import annotations

from typing import (
    Any,
    Dict,
    List,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)


class QueryResult(NamedTuple):
    """Rows returned by a statement, as dictionaries, plus the row count
    reported by the driver"""

    rows: List[Dict[str, Any]]
    row_count: int

    @property
    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


@runtime_checkable
class Connection(Protocol):
    async def execute(
        self, query: str, values: Optional[Sequence[Any]] = None
    ) -> QueryResult:
        ...

    async def release(self) -> None:
        ...


@runtime_checkable
class Pool(Protocol):
    async def acquire(self) -> Connection:
        ...
