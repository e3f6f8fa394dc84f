"""Standardized exception hierarchy for the dispatch core."""

from typing import Any


class DispatchError(Exception):
    """Base exception for all dispatch core errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PermanentError(DispatchError):
    """Errors that will not succeed if repeated with the same input."""

    pass


class InvalidTransition(PermanentError):
    """Lifecycle operation attempted from a status that does not permit it."""

    pass


class ConcurrentModificationError(InvalidTransition):
    """Booking changed since it was read (optimistic version mismatch)."""

    pass


class InvalidFare(PermanentError):
    """Price or refund amount is non-positive or malformed."""

    pass


class NotFound(PermanentError):
    """Referenced booking or pricing config does not exist."""

    pass


class ValidationError(PermanentError):
    """Invalid input or data format."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass

