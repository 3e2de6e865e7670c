from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from querywright.base.interface import BaseInterface
from querywright.exception import QuerywrightError
from querywright.registry import InterfaceRegistry
from querywright.sql.postgres.interface import PostgresPool

try:
    import starlette  # noqa: F401

    STARLETTE_INSTALLED = True
except ModuleNotFoundError:
    STARLETTE_INSTALLED = False

if TYPE_CHECKING:
    from starlette.applications import Starlette

logger = logging.getLogger(__name__)


class StarletteQuerywrightExtension:
    """Opens and closes database pools with a Starlette application.

    Example:

        ```python
        ext = StarletteQuerywrightExtension(dsn="postgres://...")
        app = Starlette(routes=routes, lifespan=ext.lifespan)

        async def handler(request):
            pool = request.app.state.querywright
            return await run_in_transaction(pool, do_work)
        ```
    """

    def __init__(
        self,
        *,
        dsn: str = "",
        pool: Optional[BaseInterface] = None,
        min_size: int = 1,
        max_size: Optional[int] = None,
    ):
        if not STARLETTE_INSTALLED:
            raise QuerywrightError(
                "Could not locate Starlette. It must be installed to use "
                "StarletteQuerywrightExtension. Try: pip install "
                "querywright[starlette]"
            )
        if pool and dsn:
            raise QuerywrightError("Conflict with pool and DSN")
        self._dsn = dsn
        self._pool = pool
        self._min_size = min_size
        self._max_size = max_size

    @property
    def pool(self) -> BaseInterface:
        if self._pool is None:
            if not self._dsn:
                raise QuerywrightError("Either a pool or a DSN is required")
            self._pool = PostgresPool(
                dsn=self._dsn, min_size=self._min_size, max_size=self._max_size
            )
        return self._pool

    @asynccontextmanager
    async def lifespan(self, app: Starlette) -> AsyncIterator[None]:
        app.state.querywright = self.pool
        for interface in InterfaceRegistry():
            logger.debug("Opening %s", interface)
            await interface.open()
        try:
            yield
        finally:
            for interface in InterfaceRegistry():
                logger.debug("Closing %s", interface)
                await interface.close()
