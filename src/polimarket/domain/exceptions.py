"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the outer layers (CLI, HTTP API, orchestrator) can catch them uniformly.
Each class carries an ``ErrorKind`` that the outer layers map to exit
messages, HTTP status codes and transaction outcomes.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    NOT_FOUND = "NotFound"
    INVALID_ARGUMENT = "InvalidArgument"
    INVALID_STOCK_OPERATION = "InvalidStockOperation"
    DEPENDENCY_FAILURE = "DependencyFailure"
    TIMEOUT = "Timeout"
    UNKNOWN = "Unknown"


class DomainException(Exception):
    """Base class for all domain errors."""

    kind = ErrorKind.UNKNOWN


class ValidationError(DomainException):
    """A business rule or invariant was violated, or an argument is malformed."""

    kind = ErrorKind.INVALID_ARGUMENT


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""

    kind = ErrorKind.NOT_FOUND


class InvalidStockOperationError(DomainException):
    """A stock mutation would drive quantity or reservations out of range."""

    kind = ErrorKind.INVALID_STOCK_OPERATION


class DependencyFailureError(DomainException):
    """An external collaborator reported a failure."""

    kind = ErrorKind.DEPENDENCY_FAILURE

    def __init__(self, collaborator: str, message: str) -> None:
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator


class OperationTimeoutError(DomainException):
    """An operation did not finish within its time bound."""

    kind = ErrorKind.TIMEOUT


class TransactionCancelledError(DomainException):
    """The caller cancelled a running business transaction."""

    kind = ErrorKind.TIMEOUT
