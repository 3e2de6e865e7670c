import asyncio
import logging

import pytest

from querywright.exception import DatabaseError, ValidationError
from querywright.transaction import (
    IsolationLevel,
    TransactionOptions,
    run_in_transaction,
    run_parallel_in_transaction,
    run_with_existing_connection,
)


async def test_commit_on_success(pool, connection):
    received = []

    async def callback(conn):
        received.append(conn)
        await conn.execute("INSERT INTO t (a) VALUES ($1)", [1])
        return "done"

    result = await run_in_transaction(pool, callback)

    assert result == "done"
    assert received == [connection]
    assert connection.statements == [
        "BEGIN",
        "INSERT INTO t (a) VALUES ($1)",
        "COMMIT",
    ]
    pool.acquire.assert_awaited_once()
    connection.release.assert_awaited_once()


async def test_sync_callback(pool, connection):
    result = await run_in_transaction(pool, lambda conn: 42)

    assert result == 42
    assert connection.statements == ["BEGIN", "COMMIT"]


async def test_rollback_on_failure(pool, connection):
    error = ValueError("boom")

    async def callback(conn):
        raise error

    with pytest.raises(ValueError) as exc_info:
        await run_in_transaction(pool, callback)

    assert exc_info.value is error
    assert connection.statements == ["BEGIN", "ROLLBACK"]
    connection.release.assert_awaited_once()


async def test_rollback_failure_keeps_original_error(pool, connection, caplog):
    connection.failures["ROLLBACK"] = DatabaseError("connection lost")
    error = ValueError("boom")

    async def callback(conn):
        raise error

    with caplog.at_level(logging.CRITICAL):
        with pytest.raises(ValueError) as exc_info:
            await run_in_transaction(pool, callback)

    assert exc_info.value is error
    assert connection.statements == ["BEGIN", "ROLLBACK"]
    connection.release.assert_awaited_once()
    assert "connection lost" in caplog.text


async def test_release_failure_after_callback_failure(pool, connection):
    connection.release.side_effect = DatabaseError("pool closed")
    error = ValueError("boom")

    async def callback(conn):
        raise error

    with pytest.raises(ValueError) as exc_info:
        await run_in_transaction(pool, callback)

    assert exc_info.value is error
    connection.release.assert_awaited_once()


async def test_release_failure_after_commit_is_raised(pool, connection):
    connection.release.side_effect = DatabaseError("pool closed")

    with pytest.raises(DatabaseError, match="pool closed"):
        await run_in_transaction(pool, lambda conn: None)

    assert connection.statements == ["BEGIN", "COMMIT"]
    connection.release.assert_awaited_once()


@pytest.mark.parametrize(
    "options,expected",
    (
        (None, ["BEGIN"]),
        ({}, ["BEGIN"]),
        (
            {"isolation_level": "SERIALIZABLE"},
            ["BEGIN ISOLATION LEVEL SERIALIZABLE"],
        ),
        (
            {"isolation_level": "repeatable_read"},
            ["BEGIN ISOLATION LEVEL REPEATABLE READ"],
        ),
        ({"read_only": True}, ["BEGIN READ ONLY"]),
        (
            {
                "isolation_level": IsolationLevel.READ_COMMITTED,
                "read_only": True,
            },
            ["BEGIN ISOLATION LEVEL READ COMMITTED READ ONLY"],
        ),
        (
            {"timeout_millis": 5000},
            ["BEGIN", "SET LOCAL statement_timeout = 5000"],
        ),
        (
            TransactionOptions(
                isolation_level=IsolationLevel.SERIALIZABLE,
                read_only=True,
                timeout_millis=0,
            ),
            [
                "BEGIN ISOLATION LEVEL SERIALIZABLE READ ONLY",
                "SET LOCAL statement_timeout = 0",
            ],
        ),
    ),
)
async def test_begin_statements(pool, connection, options, expected):
    await run_in_transaction(pool, lambda conn: None, options)

    assert connection.statements == [*expected, "COMMIT"]


@pytest.mark.parametrize(
    "options",
    (
        {"isolation_level": "READ COMMITTED; DROP TABLE users"},
        {"isolation_level": 3},
        {"timeout_millis": -1},
        {"timeout_millis": "1000; DROP TABLE users"},
        {"timeout_millis": 1.5},
        {"timeout_millis": True},
        {"isolation": "SERIALIZABLE"},
        ["read_only"],
    ),
)
async def test_invalid_options_fail_before_acquiring(pool, options):
    with pytest.raises(ValidationError):
        await run_in_transaction(pool, lambda conn: None, options)

    pool.acquire.assert_not_awaited()


async def test_acquire_failure(pool, connection):
    pool.acquire.side_effect = DatabaseError("too many clients")
    called = False

    async def callback(conn):
        nonlocal called
        called = True

    with pytest.raises(DatabaseError, match="too many clients"):
        await run_in_transaction(pool, callback)

    assert not called
    assert connection.statements == []
    connection.release.assert_not_awaited()


async def test_begin_failure_releases_without_rollback(pool, connection):
    connection.failures["BEGIN"] = DatabaseError("cannot begin")

    with pytest.raises(DatabaseError, match="cannot begin"):
        await run_in_transaction(pool, lambda conn: None)

    assert connection.statements == ["BEGIN"]
    connection.release.assert_awaited_once()


async def test_timeout_failure_rolls_back(pool, connection):
    statement = "SET LOCAL statement_timeout = 10"
    connection.failures[statement] = DatabaseError("bad setting")

    with pytest.raises(DatabaseError, match="bad setting"):
        await run_in_transaction(
            pool, lambda conn: None, {"timeout_millis": 10}
        )

    assert connection.statements == ["BEGIN", statement, "ROLLBACK"]
    connection.release.assert_awaited_once()


async def test_commit_failure_rolls_back(pool, connection):
    connection.failures["COMMIT"] = DatabaseError("serialization failure")

    with pytest.raises(DatabaseError, match="serialization failure"):
        await run_in_transaction(pool, lambda conn: "never returned")

    assert connection.statements == ["BEGIN", "COMMIT", "ROLLBACK"]
    connection.release.assert_awaited_once()


async def test_existing_connection(connection):
    async def callback(conn):
        await conn.execute("SELECT 1")
        return conn

    result = await run_with_existing_connection(connection, callback)

    assert result is connection
    assert connection.statements == ["SELECT 1"]
    connection.release.assert_not_awaited()


async def test_existing_connection_error_propagates_unchanged(connection):
    error = KeyError("missing")

    async def callback(conn):
        raise error

    with pytest.raises(KeyError) as exc_info:
        await run_with_existing_connection(connection, callback)

    assert exc_info.value is error
    assert connection.statements == []
    connection.release.assert_not_awaited()


async def test_nested_helper_joins_outer_transaction(pool, connection):
    async def helper(conn):
        await conn.execute("UPDATE t SET a = 1")

    async def outer(conn):
        await run_with_existing_connection(conn, helper)
        await conn.execute("UPDATE t SET b = 2")

    await run_in_transaction(pool, outer)

    assert connection.statements == [
        "BEGIN",
        "UPDATE t SET a = 1",
        "UPDATE t SET b = 2",
        "COMMIT",
    ]
    pool.acquire.assert_awaited_once()


async def test_parallel_results_keep_input_order(pool, connection):
    seen = []

    async def slow(conn):
        seen.append(conn)
        await asyncio.sleep(0.02)
        return "slow"

    async def fast(conn):
        seen.append(conn)
        return "fast"

    results = await run_parallel_in_transaction(pool, [slow, fast])

    assert results == ["slow", "fast"]
    assert seen == [connection, connection]
    assert connection.statements == ["BEGIN", "COMMIT"]
    pool.acquire.assert_awaited_once()
    connection.release.assert_awaited_once()


async def test_parallel_uses_options(pool, connection):
    await run_parallel_in_transaction(
        pool, [lambda conn: 1], {"read_only": True}
    )

    assert connection.statements == ["BEGIN READ ONLY", "COMMIT"]


async def test_parallel_failure_waits_for_all_then_rolls_back(
    pool, connection
):
    error = ValueError("boom")

    async def slow(conn):
        await asyncio.sleep(0.02)
        await conn.execute("SELECT 1")
        return "slow"

    async def failing(conn):
        raise error

    with pytest.raises(ValueError) as exc_info:
        await run_parallel_in_transaction(pool, [slow, failing])

    assert exc_info.value is error
    assert connection.statements == ["BEGIN", "SELECT 1", "ROLLBACK"]
    connection.release.assert_awaited_once()


async def test_parallel_raises_first_failure_to_complete(pool, connection):
    async def late(conn):
        await asyncio.sleep(0.02)
        raise ValueError("late")

    async def early(conn):
        raise KeyError("early")

    with pytest.raises(KeyError):
        await run_parallel_in_transaction(pool, [late, early])

    assert connection.statements.count("ROLLBACK") == 1
    assert "COMMIT" not in connection.statements


async def test_parallel_empty(pool, connection):
    assert await run_parallel_in_transaction(pool, []) == []
    assert connection.statements == ["BEGIN", "COMMIT"]
    connection.release.assert_awaited_once()


async def test_parallel_cancelled(pool, connection):
    started = asyncio.Event()
    cancelled = []

    async def hang(conn):
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    task = asyncio.ensure_future(
        run_parallel_in_transaction(pool, [hang, hang])
    )
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert cancelled == [True, True]
    assert connection.statements == ["BEGIN", "ROLLBACK"]
    connection.release.assert_awaited_once()
