from .base import BaseRepository
from .types import FindOptions, PaginatedResult, RepositoryConfig

__all__ = (
    "BaseRepository",
    "FindOptions",
    "PaginatedResult",
    "RepositoryConfig",
)
