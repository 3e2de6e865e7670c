"""
Transaction coordination: connection checkout, transaction boundaries,
parallel callbacks and savepoints.
"""

from .connection_manager import checkout
from .coordinator import (
    TransactionCoordinator,
    run_in_transaction,
    run_parallel_in_transaction,
    run_with_existing_connection,
)
from .interfaces import (
    IsolationLevel,
    TransactionError,
    TransactionOptions,
    TransactionState,
)
from .savepoint import (
    Savepoint,
    create_savepoint,
    release_savepoint,
    rollback_to_savepoint,
    validate_savepoint_name,
)

__all__ = [
    "TransactionCoordinator",
    "TransactionError",
    "TransactionOptions",
    "TransactionState",
    "IsolationLevel",
    "Savepoint",
    "checkout",
    "create_savepoint",
    "release_savepoint",
    "rollback_to_savepoint",
    "run_in_transaction",
    "run_parallel_in_transaction",
    "run_with_existing_connection",
    "validate_savepoint_name",
]
