from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when a create collides with an existing unique key."""


class RepositoryAuthenticationError(RepositoryError):
    """Raised when a username/password pair does not match a stored user."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


class EmptyUpdateError(RepositoryValidationError):
    """Raised when a partial update carries no fields."""

    def __init__(self, message: str = "no data") -> None:
        super().__init__(message)


class FilterValidationError(RepositoryValidationError):
    """Raised when a search criterion is unknown, malformed or conflicting."""

    def __init__(self, criterion: str, message: str) -> None:
        super().__init__(message)
        self.criterion = criterion


class RepositoryQueryError(RepositoryError):
    """Raised when a dynamically built statement fails to execute.

    Carries the statement text and bound parameters for diagnosis; the driver
    exception is chained as ``__cause__``.
    """

    def __init__(self, statement: str, params: list[Any]) -> None:
        super().__init__("query execution failed")
        self.statement = statement
        self.params = params
