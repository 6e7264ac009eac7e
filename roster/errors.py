"""Exception hierarchy shared by the roster components."""

from __future__ import annotations


class RosterError(Exception):
    """Base class for every error raised by the roster package."""


class ValidationError(RosterError, ValueError):
    """Raised when operator input is missing or malformed."""


class WeakPasswordError(ValidationError):
    """Raised when a new credential does not meet the strength rules."""


class ConfigurationError(RosterError):
    """Raised when the configuration file or settings are invalid."""


class RecordStoreError(RosterError):
    """Raised when the roster file cannot be read or written."""


class AuthenticationError(RosterError):
    """Base class for the distinct authentication outcomes."""

    def __init__(self, handle: str, message: str) -> None:
        super().__init__(message)
        self.handle = handle


class NotFoundError(AuthenticationError):
    def __init__(self, handle: str) -> None:
        super().__init__(handle, f"No account found for {handle!r}")


class AccountLockedError(AuthenticationError):
    def __init__(self, handle: str) -> None:
        super().__init__(handle, f"Account {handle!r} is locked")


class AccountInactiveError(AuthenticationError):
    def __init__(self, handle: str) -> None:
        super().__init__(handle, f"Account {handle!r} is inactive")


class InvalidCredentialError(AuthenticationError):
    def __init__(self, handle: str) -> None:
        super().__init__(handle, f"Invalid credential for {handle!r}")


class DirectoryError(RosterError):
    """Wraps any failure reported by the directory layer."""


__all__ = [
    "AccountInactiveError",
    "AccountLockedError",
    "AuthenticationError",
    "ConfigurationError",
    "DirectoryError",
    "InvalidCredentialError",
    "NotFoundError",
    "RecordStoreError",
    "RosterError",
    "ValidationError",
    "WeakPasswordError",
]
