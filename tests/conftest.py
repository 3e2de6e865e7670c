from typing import Any, Dict, List, Optional, Sequence, Tuple
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from querywright.base.connection import QueryResult
from querywright.registry import InterfaceRegistry
from querywright.sql.postgres import interface


class RecordingConnection:
    """Connection double that logs every statement in the order it was
    issued and fails on demand"""

    def __init__(self):
        self.calls: List[Tuple[str, List[Any]]] = []
        self.failures: Dict[str, BaseException] = {}
        self.results: Dict[str, QueryResult] = {}
        self.release = AsyncMock()

    @property
    def statements(self) -> List[str]:
        return [statement for statement, _ in self.calls]

    async def execute(
        self, query: str, values: Optional[Sequence[Any]] = None
    ) -> QueryResult:
        self.calls.append((query, list(values or ())))
        error = self.failures.get(query)
        if error is not None:
            raise error
        return self.results.get(query, QueryResult([], 0))


@pytest.fixture(autouse=True)
def reset_registry():
    InterfaceRegistry.reset()


@pytest.fixture
def connection():
    return RecordingConnection()


@pytest.fixture
def pool(connection):
    pool = Mock()
    pool.acquire = AsyncMock(return_value=connection)
    return pool


@pytest.fixture
def raw_cursor():
    cursor = MagicMock()
    cursor.description = [("id",), ("name",)]
    cursor.rowcount = 1
    cursor.fetchall = AsyncMock(return_value=[{"id": 1, "name": "Foo"}])
    return cursor


@pytest.fixture
def raw_connection(raw_cursor):
    raw = AsyncMock()
    raw.execute = AsyncMock(return_value=raw_cursor)
    return raw


@pytest.fixture
def postgres_pool_instance(raw_connection):
    pool = AsyncMock()
    pool.getconn = AsyncMock(return_value=raw_connection)
    return pool


@pytest.fixture(autouse=True)
def mock_postgres_pool(monkeypatch, postgres_pool_instance):
    mock = MagicMock(return_value=postgres_pool_instance)
    monkeypatch.setattr(interface, "AsyncConnectionPool", mock)
    return mock
