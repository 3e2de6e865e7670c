"""
Savepoints: named rollback points inside an open transaction.

Savepoint names cannot be bound as parameters, so they are inlined into the
statement text. Every operation therefore validates the name before anything
is sent to the database.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from querywright.exception import ValidationError

from .interfaces import TransactionError

if TYPE_CHECKING:
    from querywright.base.connection import Connection

    from .coordinator import TransactionCoordinator

logger = logging.getLogger(__name__)

SAVEPOINT_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def validate_savepoint_name(name: Any) -> str:
    if not isinstance(name, str) or not SAVEPOINT_NAME.fullmatch(name):
        raise ValidationError("savepoint name must be a valid identifier")
    return name


async def create_savepoint(connection: Connection, name: str) -> None:
    """Issue `SAVEPOINT <name>` on a connection with an open transaction"""
    validate_savepoint_name(name)
    logger.debug("Creating savepoint %s", name)
    await connection.execute(f"SAVEPOINT {name}")


async def rollback_to_savepoint(connection: Connection, name: str) -> None:
    """Issue `ROLLBACK TO SAVEPOINT <name>`"""
    validate_savepoint_name(name)
    logger.debug("Rolling back to savepoint %s", name)
    await connection.execute(f"ROLLBACK TO SAVEPOINT {name}")


async def release_savepoint(connection: Connection, name: str) -> None:
    """Issue `RELEASE SAVEPOINT <name>`"""
    validate_savepoint_name(name)
    logger.debug("Releasing savepoint %s", name)
    await connection.execute(f"RELEASE SAVEPOINT {name}")


class Savepoint:
    """
    Handle to a savepoint created through `TransactionCoordinator.savepoint`.
    """

    def __init__(self, name: str, coordinator: TransactionCoordinator):
        self.name = name
        self.coordinator = coordinator
        self._released = False

    def _check_usable(self, action: str) -> None:
        if self._released:
            raise TransactionError(f"Savepoint {self.name} already released")

        if not self.coordinator.is_active:
            raise TransactionError(
                f"Cannot {action} savepoint {self.name} - "
                f"transaction not active"
            )

    async def rollback(self) -> None:
        """Rollback to this savepoint. The savepoint stays usable."""
        self._check_usable("rollback")
        await rollback_to_savepoint(self.coordinator.connection, self.name)
        logger.info("Rolled back to savepoint %s", self.name)

    async def release(self) -> None:
        """Release this savepoint, keeping the work done since it was set"""
        self._check_usable("release")
        await release_savepoint(self.coordinator.connection, self.name)
        self._released = True
        self.coordinator._forget_savepoint(self.name)

    @property
    def is_released(self) -> bool:
        return self._released

    def __str__(self) -> str:
        status = "released" if self._released else "active"
        return f"<Savepoint {self.name} ({status})>"
