from __future__ import annotations

from abc import ABC, abstractmethod
from collections import namedtuple
from typing import Any, AsyncContextManager, Optional, Sequence
from urllib.parse import urlparse

from querywright.base.connection import Connection, QueryResult
from querywright.exception import QuerywrightError
from querywright.registry import InterfaceRegistry
from querywright.transaction.connection_manager import checkout

UrlMapping = namedtuple("UrlMapping", ("key", "cast"))


URLPARSE_MAPPING = {
    "hostname": UrlMapping("_host", str),
    "username": UrlMapping("_user", str),
    "password": UrlMapping("_password", str),
    "port": UrlMapping("_port", int),
    "path": UrlMapping("_db", lambda value: value.replace("/", "")),
    "query": UrlMapping("_query", str),
}


class BaseInterface(ABC):
    scheme = "dummy"
    default_port: Optional[int] = None

    @abstractmethod
    def _setup_pool(self):
        ...

    @abstractmethod
    async def open(self):
        ...

    @abstractmethod
    async def close(self):
        ...

    @abstractmethod
    async def acquire(self, timeout: Optional[float] = None) -> Connection:
        ...

    def __init__(
        self,
        dsn: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        db: Optional[str] = None,
        min_size: int = 1,
        max_size: Optional[int] = None,
    ) -> None:
        """DB class initialization.

        Args:
            dsn (str, optional): DB data source name
            host (str, optional): DB address URL or IP
            port (int, optional): DB port
            user (str, optional): DB user
            password (str, optional): DB password
            db (str, optional): DB name
            min_size (int, optional): Connections kept open by the pool.
                Defaults to 1
            max_size (int, optional): Upper bound of the pool. Defaults to
                `min_size`
        """

        if dsn and host:
            raise QuerywrightError("Cannot connect to DB using host and dsn")

        if not dsn:
            if port and (
                not isinstance(port, int) or port not in range(0, 65536)
            ):
                raise QuerywrightError(
                    "port: must be an integer between 0 and 65535"
                )

            if host and (not isinstance(host, str) or not len(host) > 0):
                raise QuerywrightError(
                    "host: must be a string at least 1 character long"
                )

        if password is not None and (
            not isinstance(password, str) or not len(password) > 0
        ):
            raise QuerywrightError(
                "password: must be a string at least 1 character long"
            )

        if min_size < 0 or (max_size is not None and max_size < min_size):
            raise QuerywrightError(
                "min_size and max_size must satisfy 0 <= min_size <= max_size"
            )

        self._dsn = dsn
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._db = db
        self._query: Optional[str] = None
        self._full_dsn: Optional[str] = None
        self.min_size = min_size
        self.max_size = max_size

        self._populate_connection_args()
        self._populate_dsn()
        self._setup_pool()
        InterfaceRegistry.add(self)

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.dsn}>"

    def _populate_connection_args(self):
        dsn = self.dsn or ""
        parts = urlparse(dsn) if dsn else None
        defaults = {
            "port": self.default_port,
            "hostname": "localhost",
            "path": "/",
            "query": "",
        }
        for key, mapping in URLPARSE_MAPPING.items():
            if not getattr(self, mapping.key):
                value = getattr(parts, key, None)
                if value is None:
                    value = defaults.get(key)
                if value is not None:
                    setattr(self, mapping.key, mapping.cast(value))

    def _populate_dsn(self):
        self._dsn = (
            (
                f"{self.scheme}://{self.user}:...@"
                f"{self.host}:{self.port}/{self.db}"
            )
            if self.password
            else (
                f"{self.scheme}://{self.user}@"
                f"{self.host}:{self.port}/{self.db}"
            )
        )
        self._full_dsn = (
            f"{self.scheme}://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.db}"
            if self.password
            else self.dsn
        )
        self._full_dsn += f"?{self._query}" if self._query else ""

    @property
    def dsn(self):
        return self._dsn

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def user(self):
        return self._user

    @property
    def password(self):
        return self._password

    @property
    def db(self):
        return self._db

    @property
    def query(self):
        return self._query

    @property
    def full_dsn(self):
        return self._full_dsn

    def connection(self) -> AsyncContextManager[Connection]:
        """Check out a connection that is released when the block exits

        Example:

            ```python
            async with pool.connection() as conn:
                await conn.execute("SELECT 1")
            ```
        """
        return checkout(self)

    async def execute(
        self, query: str, values: Optional[Sequence[Any]] = None
    ) -> QueryResult:
        """Run a single statement on a freshly checked out connection"""
        async with self.connection() as conn:
            return await conn.execute(query, values)
