from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from querywright.exception import RepositoryError

T = TypeVar("T")


@dataclass(frozen=True)
class RepositoryConfig:
    table_name: str
    columns: Sequence[str]
    primary_key: str = "id"
    tenant_column: str = "tenant_id"
    soft_delete_column: str = "deleted_at"
    supports_soft_delete: bool = True

    def __post_init__(self) -> None:
        if not self.table_name:
            raise RepositoryError("BaseRepository: table_name is required")
        if not self.columns:
            raise RepositoryError(
                "BaseRepository: columns are required and must not be empty"
            )
        if "*" in self.columns:
            raise RepositoryError(
                "BaseRepository: columns must be explicit, not '*'"
            )
        object.__setattr__(self, "columns", tuple(self.columns))


@dataclass
class FindOptions:
    order_by: Optional[str] = None
    direction: str = "ASC"
    limit: Optional[int] = None
    offset: Optional[int] = None
    include_deleted: bool = False


@dataclass
class PaginatedResult(Generic[T]):
    data: List[T] = field(default_factory=list)
    total: int = 0
    limit: int = 20
    offset: int = 0
    has_more: bool = False


Row = Dict[str, Any]
