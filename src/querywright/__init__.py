from importlib.metadata import version

from .base import BaseInterface, Connection, Pool, QueryResult
from .exception import (
    DatabaseError,
    QuerywrightError,
    RepositoryError,
    ValidationError,
)
from .query import UNSET, QueryBuilder, SQLQuery
from .repository import (
    BaseRepository,
    FindOptions,
    PaginatedResult,
    RepositoryConfig,
)
from .sql.postgres import PostgresConnection, PostgresPool
from .transaction import (
    IsolationLevel,
    Savepoint,
    TransactionCoordinator,
    TransactionError,
    TransactionOptions,
    create_savepoint,
    release_savepoint,
    rollback_to_savepoint,
    run_in_transaction,
    run_parallel_in_transaction,
    run_with_existing_connection,
)

__version__ = version("querywright")

__all__ = (
    "UNSET",
    "BaseInterface",
    "BaseRepository",
    "Connection",
    "DatabaseError",
    "FindOptions",
    "IsolationLevel",
    "PaginatedResult",
    "Pool",
    "PostgresConnection",
    "PostgresPool",
    "QueryBuilder",
    "QueryResult",
    "QuerywrightError",
    "RepositoryConfig",
    "RepositoryError",
    "SQLQuery",
    "Savepoint",
    "TransactionCoordinator",
    "TransactionError",
    "TransactionOptions",
    "ValidationError",
    "create_savepoint",
    "release_savepoint",
    "rollback_to_savepoint",
    "run_in_transaction",
    "run_parallel_in_transaction",
    "run_with_existing_connection",
)
