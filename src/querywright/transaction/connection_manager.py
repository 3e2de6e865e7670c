from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

if TYPE_CHECKING:
    from querywright.base.connection import Connection, Pool

logger = logging.getLogger(__name__)


async def _release_after_failure(connection: Connection) -> None:
    try:
        await connection.release()
    except Exception as e:
        logger.warning(
            "Error releasing connection %s after failure: %s", connection, e
        )


@asynccontextmanager
async def checkout(pool: Pool) -> AsyncIterator[Connection]:
    """Acquire a connection from `pool` and release it exactly once when the
    block exits.

    A failure while releasing after the block itself failed is logged and the
    block's exception keeps propagating. On the success path a release
    failure is raised.
    """
    connection = await pool.acquire()
    logger.debug("Acquired connection %s from %s", connection, pool)
    try:
        yield connection
    except BaseException:
        await _release_after_failure(connection)
        raise
    else:
        await connection.release()
    logger.debug("Released connection %s", connection)
