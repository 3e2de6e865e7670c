from __future__ import annotations

import asyncio
import logging
from inspect import isawaitable
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)
from uuid import uuid4

from .connection_manager import checkout
from .interfaces import TransactionError, TransactionOptions, TransactionState
from .savepoint import Savepoint, create_savepoint, validate_savepoint_name

if TYPE_CHECKING:
    from querywright.base.connection import Connection, Pool

logger = logging.getLogger(__name__)

T = TypeVar("T")
Callback = Callable[["Connection"], Union[Awaitable[T], T]]
Options = Union[TransactionOptions, Mapping[str, Any], None]


class TransactionCoordinator:
    """One transaction on one connection checked out from a pool.

    The coordinator walks ``ACQUIRING -> ACTIVE -> COMMITTING|ABORTING ->
    DONE`` exactly once and hands the connection back to the pool when it
    reaches ``DONE``, whatever happened on the way.

    Example:

        ```python
        async with TransactionCoordinator(pool, {"read_only": True}) as txn:
            await txn.connection.execute("SELECT 1")
        ```
    """

    def __init__(self, pool: Pool, options: Options = None):
        self.transaction_id = f"txn_{uuid4().hex[:8]}"
        self.options = TransactionOptions.coerce(options)
        self._pool = pool
        self._state = TransactionState.ACQUIRING
        self._checkout: Optional[AsyncContextManager[Connection]] = None
        self._connection: Optional[Connection] = None
        self._begun = False
        self._committed = False
        self._rolled_back = False
        self._savepoints: Dict[str, Savepoint] = {}

    async def begin(self) -> None:
        """Acquire a connection and open the transaction on it"""
        if self._state is TransactionState.DONE:
            raise TransactionError(
                f"Transaction {self.transaction_id} already finalized"
            )
        if self._checkout is not None:
            raise TransactionError(
                f"Transaction {self.transaction_id} already begun"
            )

        logger.debug("Beginning transaction %s", self.transaction_id)

        lease = checkout(self._pool)
        try:
            self._connection = await lease.__aenter__()
        except BaseException:
            self._state = TransactionState.DONE
            raise
        self._checkout = lease

        try:
            await self._connection.execute(self.options.begin_statement())
            self._begun = True
            timeout_sql = self.options.timeout_statement()
            if timeout_sql:
                await self._connection.execute(timeout_sql)
        except BaseException as e:
            logger.error(
                "Failed to begin transaction %s: %s", self.transaction_id, e
            )
            await self._abort(e)
            raise

        self._state = TransactionState.ACTIVE
        logger.info("Transaction %s started", self.transaction_id)

    async def commit(self) -> None:
        """Commit the transaction and release the connection"""
        self._check_active()
        self._state = TransactionState.COMMITTING
        logger.debug("Committing transaction %s", self.transaction_id)

        try:
            await self._require_connection().execute("COMMIT")
        except BaseException as e:
            logger.error(
                "Commit failed for %s, attempting rollback: %s",
                self.transaction_id,
                e,
            )
            await self._abort(e)
            raise

        self._committed = True
        await self._release()
        logger.info("Transaction %s committed", self.transaction_id)

    async def rollback(self) -> None:
        """Rollback the transaction and release the connection"""
        self._check_active()
        self._state = TransactionState.ABORTING
        logger.debug("Rolling back transaction %s", self.transaction_id)

        try:
            await self._require_connection().execute("ROLLBACK")
        except BaseException as e:
            logger.critical(
                "CRITICAL: Rollback failed for %s: %s", self.transaction_id, e
            )
            self._rolled_back = True
            await self._release(e)
            raise

        self._rolled_back = True
        await self._release()
        logger.info("Transaction %s rolled back", self.transaction_id)

    async def savepoint(self, name: str) -> Savepoint:
        """Create a savepoint for nested rollback points"""
        validate_savepoint_name(name)
        self._check_active()

        if name in self._savepoints:
            raise TransactionError(f"Savepoint {name} already exists")

        await create_savepoint(self.connection, name)
        savepoint = Savepoint(name, self)
        self._savepoints[name] = savepoint
        logger.info(
            "Created savepoint %s in transaction %s",
            name,
            self.transaction_id,
        )
        return savepoint

    def _forget_savepoint(self, name: str) -> None:
        self._savepoints.pop(name, None)

    def _check_active(self) -> None:
        if self._committed or self._rolled_back:
            raise TransactionError(
                f"Transaction {self.transaction_id} already finalized"
            )
        if self._state is not TransactionState.ACTIVE:
            raise TransactionError(
                f"Transaction {self.transaction_id} not begun"
            )

    async def _abort(self, error: BaseException) -> None:
        """Best-effort rollback after `error`, then release.

        A failing ROLLBACK is logged and never replaces `error`.
        """
        self._state = TransactionState.ABORTING
        try:
            if self._begun and not self._rolled_back:
                try:
                    await self._require_connection().execute("ROLLBACK")
                    logger.info(
                        "Transaction %s rolled back after: %r",
                        self.transaction_id,
                        error,
                    )
                except Exception as rollback_error:
                    logger.critical(
                        "Rollback of transaction %s also failed: %s",
                        self.transaction_id,
                        rollback_error,
                    )
                finally:
                    self._rolled_back = True
        finally:
            await self._release(error)

    async def _release(self, error: Optional[BaseException] = None) -> None:
        lease, self._checkout = self._checkout, None
        self._state = TransactionState.DONE
        self._savepoints.clear()
        if lease is None:
            return
        if error is None:
            await lease.__aexit__(None, None, None)
        else:
            await lease.__aexit__(type(error), error, error.__traceback__)

    async def __aenter__(self) -> TransactionCoordinator:
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        # Explicit commit/rollback inside the block already finalized us
        if self._state is TransactionState.DONE:
            return False
        if exc_type is None:
            await self.commit()
        else:
            await self._abort(exc_val)
        return False

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise TransactionError(
                f"Transaction {self.transaction_id} has no connection"
            )
        return self._connection

    @property
    def connection(self) -> Connection:
        """The connection the transaction runs on, while it is active"""
        if self._state is not TransactionState.ACTIVE:
            raise TransactionError(
                f"Transaction {self.transaction_id} not active"
            )
        return self._require_connection()

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    @property
    def is_committed(self) -> bool:
        return self._committed

    @property
    def is_rolled_back(self) -> bool:
        return self._rolled_back


async def _invoke(callback: Callback[T], connection: Connection) -> T:
    result = callback(connection)
    if isawaitable(result):
        result = await result
    return result


async def run_in_transaction(
    pool: Pool, callback: Callback[T], options: Options = None
) -> T:
    """Run `callback(connection)` inside a transaction on a pooled connection.

    Commits when the callback returns, rolls back when it raises. The
    callback's own exception is always the one that propagates, even when the
    rollback fails too. The connection goes back to the pool exactly once.

    Args:
        pool (Pool): Anything with an awaitable `acquire()`
        callback (Callable): Receives the connection, may be async
        options (TransactionOptions | Mapping, optional): Isolation level,
            read-only mode and statement timeout. Defaults to `None`.
    """
    async with TransactionCoordinator(pool, options) as txn:
        return await _invoke(callback, txn.connection)


async def run_with_existing_connection(
    connection: Connection, callback: Callback[T]
) -> T:
    """Run `callback` on a connection whose transaction the caller owns.

    Nothing is begun, committed, rolled back or released here.
    """
    return await _invoke(callback, connection)


async def run_parallel_in_transaction(
    pool: Pool, callbacks: Sequence[Callback[Any]], options: Options = None
) -> List[Any]:
    """Run every callback concurrently inside one transaction.

    All callbacks share one connection, so their statements may interleave
    in any order on the wire. Results come back in the order of `callbacks`.
    If any callback fails, the whole transaction is rolled back once and the
    first failure to complete is raised.
    """
    callbacks = list(callbacks)
    async with TransactionCoordinator(pool, options) as txn:
        return await _gather_in_order(txn.connection, callbacks)


async def _gather_in_order(
    connection: Connection, callbacks: List[Callback[Any]]
) -> List[Any]:
    if not callbacks:
        return []

    finished: List[asyncio.Future] = []
    tasks = [
        asyncio.ensure_future(_invoke(callback, connection))
        for callback in callbacks
    ]
    for task in tasks:
        task.add_done_callback(finished.append)

    try:
        await asyncio.wait(tasks)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    completion_order = finished + [t for t in tasks if t not in finished]
    for task in completion_order:
        if task.cancelled() or task.exception() is not None:
            # re-raises the task's exception
            task.result()

    return [task.result() for task in tasks]
