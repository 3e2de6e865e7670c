from typing import Optional


class QuerywrightError(Exception):
    """Base exception for everything raised by querywright"""


class ValidationError(QuerywrightError):
    """Raised when a caller misuses the API before any statement is sent"""


class DatabaseError(QuerywrightError):
    """Raised when the driver or the pool reports a failure"""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class RepositoryError(QuerywrightError):
    ...
