"""Exceptions shared by the generator, transport and storage layers."""

from __future__ import annotations


class AlreadyRunningError(RuntimeError):
    """Raised when starting a generator that is already producing readings."""


class NotRunningError(RuntimeError):
    """Raised when stopping a generator that is not producing readings."""


class InvalidCadenceError(ValueError):
    """Raised when a cadence string is not a positive duration."""


class TransportError(Exception):
    """A reading could not be delivered to the storage service."""


class ApplicationRejectedError(TransportError):
    """The storage service answered but declined the request."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"server error: {reason}")
        self.reason = reason


class NotFoundError(LookupError):
    """Raised when a stored reading does not exist or was deleted."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "record not found"


class InvalidCredentialsError(Exception):
    """Raised for unknown users, wrong passwords and unusable tokens."""
