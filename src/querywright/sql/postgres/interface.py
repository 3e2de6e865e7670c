from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import psycopg
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from querywright.base.connection import QueryResult
from querywright.base.interface import BaseInterface
from querywright.convert import convert_positional
from querywright.exception import DatabaseError
from querywright.registry import InterfaceRegistry

logger = logging.getLogger(__name__)


def _database_error(error: psycopg.Error) -> DatabaseError:
    return DatabaseError(str(error), code=getattr(error, "sqlstate", None))


class PostgresConnection:
    """A pooled psycopg connection speaking `$n` placeholders.

    Connections run in autocommit mode: transaction boundaries are whatever
    `BEGIN`/`COMMIT`/`ROLLBACK` statements the caller sends.
    """

    def __init__(self, pool: PostgresPool, raw: AsyncConnection) -> None:
        self._pool = pool
        self._raw = raw
        self._released = False

    @property
    def raw(self) -> AsyncConnection:
        return self._raw

    async def execute(
        self, query: str, values: Optional[Sequence[Any]] = None
    ) -> QueryResult:
        query, params = convert_positional(query, values)
        try:
            cursor = await self._raw.execute(query, params or None)
            rows = await cursor.fetchall() if cursor.description else []
        except psycopg.Error as e:
            raise _database_error(e) from e
        row_count = cursor.rowcount if cursor.rowcount >= 0 else len(rows)
        return QueryResult(list(rows), row_count)

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        await self._pool._putconn(self._raw)

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self._pool.dsn}>"


class PostgresPool(BaseInterface):
    """Interface for connecting to a Postgres database"""

    scheme = "postgres"
    default_port = 5432

    def _setup_pool(self):
        self._pool = AsyncConnectionPool(
            self.full_dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            kwargs={"autocommit": True, "row_factory": dict_row},
            open=False,
        )

    async def open(self):
        """Open connections to the pool"""
        await self._pool.open()

    async def close(self):
        """Close connections to the pool"""
        await self._pool.close()
        InterfaceRegistry.remove(self)

    async def acquire(
        self, timeout: Optional[float] = None
    ) -> PostgresConnection:
        """Check a connection out of the pool

        Args:
            timeout (float, optional): Time before an error is raised on
                failure to obtain a connection. Defaults to `None`.

        Raises:
            DatabaseError: If no connection could be obtained
        """
        try:
            raw = await self._pool.getconn(timeout=timeout)
        except psycopg.Error as e:
            logger.error("Could not acquire connection from %s: %s", self, e)
            raise _database_error(e) from e
        return PostgresConnection(self, raw)

    async def _putconn(self, raw: AsyncConnection) -> None:
        try:
            await self._pool.putconn(raw)
        except psycopg.Error as e:
            raise _database_error(e) from e
