from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Mapping, Optional, Union

from querywright.exception import QuerywrightError, ValidationError


class IsolationLevel(Enum):
    """SQL transaction isolation levels"""

    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"

    @classmethod
    def parse(cls, value: Union[str, IsolationLevel]) -> IsolationLevel:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = " ".join(value.replace("_", " ").upper().split())
            for level in cls:
                if level.value == normalized:
                    return level
        raise ValidationError(f"Unknown isolation level: {value!r}")


class TransactionState(Enum):
    ACQUIRING = auto()
    ACTIVE = auto()
    COMMITTING = auto()
    ABORTING = auto()
    DONE = auto()


class TransactionError(QuerywrightError):
    """Base exception for transaction lifecycle errors"""

    pass


@dataclass(frozen=True)
class TransactionOptions:
    """How a transaction is opened.

    Both the isolation level and the timeout end up inlined in the statement
    text, so they are validated here rather than trusted.
    """

    isolation_level: Optional[IsolationLevel] = None
    read_only: bool = False
    timeout_millis: Optional[int] = None

    def __post_init__(self) -> None:
        if self.isolation_level is not None:
            object.__setattr__(
                self,
                "isolation_level",
                IsolationLevel.parse(self.isolation_level),
            )
        if self.timeout_millis is not None and (
            isinstance(self.timeout_millis, bool)
            or not isinstance(self.timeout_millis, int)
            or self.timeout_millis < 0
        ):
            raise ValidationError(
                "timeout_millis must be a non-negative integer"
            )

    @classmethod
    def coerce(
        cls,
        options: Union[TransactionOptions, Mapping[str, Any], None] = None,
    ) -> TransactionOptions:
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if isinstance(options, Mapping):
            unknown = set(options) - {
                "isolation_level",
                "read_only",
                "timeout_millis",
            }
            if unknown:
                raise ValidationError(
                    f"Unknown transaction options: {', '.join(sorted(unknown))}"
                )
            return cls(**options)
        raise ValidationError(
            f"Cannot build transaction options from {type(options).__name__}"
        )

    def begin_statement(self) -> str:
        statement = "BEGIN"
        if self.isolation_level is not None:
            statement += f" ISOLATION LEVEL {self.isolation_level.value}"
        if self.read_only:
            statement += " READ ONLY"
        return statement

    def timeout_statement(self) -> Optional[str]:
        if self.timeout_millis is None:
            return None
        return f"SET LOCAL statement_timeout = {self.timeout_millis}"
