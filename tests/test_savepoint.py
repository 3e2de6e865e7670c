import pytest

from querywright import (
    ValidationError,
    create_savepoint,
    release_savepoint,
    rollback_to_savepoint,
    run_in_transaction,
)

INVALID_NAMES = (
    "invalid-name",
    "123bad",
    "",
    "has space",
    "sp; DROP TABLE users",
    "sp\n",
    "naïve",
    None,
    42,
)


@pytest.mark.parametrize("name", INVALID_NAMES)
@pytest.mark.parametrize(
    "operation", (create_savepoint, rollback_to_savepoint, release_savepoint)
)
async def test_invalid_names_rejected(connection, operation, name):
    with pytest.raises(
        ValidationError, match="savepoint name must be a valid identifier"
    ):
        await operation(connection, name)

    assert connection.statements == []


@pytest.mark.parametrize(
    "operation,expected",
    (
        (create_savepoint, "SAVEPOINT _ok_123"),
        (rollback_to_savepoint, "ROLLBACK TO SAVEPOINT _ok_123"),
        (release_savepoint, "RELEASE SAVEPOINT _ok_123"),
    ),
)
async def test_valid_name(connection, operation, expected):
    await operation(connection, "_ok_123")

    assert connection.statements == [expected]


async def test_partial_rollback_inside_transaction(pool, connection):
    async def callback(conn):
        await conn.execute("INSERT INTO orders (id) VALUES ($1)", [1])
        await create_savepoint(conn, "items")
        await conn.execute("INSERT INTO items (id) VALUES ($1)", [2])
        await rollback_to_savepoint(conn, "items")
        await release_savepoint(conn, "items")

    await run_in_transaction(pool, callback)

    assert connection.statements == [
        "BEGIN",
        "INSERT INTO orders (id) VALUES ($1)",
        "SAVEPOINT items",
        "INSERT INTO items (id) VALUES ($1)",
        "ROLLBACK TO SAVEPOINT items",
        "RELEASE SAVEPOINT items",
        "COMMIT",
    ]
