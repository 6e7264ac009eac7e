"""Input validation helpers for account creation."""

from __future__ import annotations

from .errors import ValidationError

MIN_PASSWORD_LENGTH = 8
SPECIAL_CHARACTERS = frozenset("!/$%?&*()-_+<>[]^{}")


def is_strong_password(credential: str) -> bool:
    """Return ``True`` when ``credential`` satisfies every strength rule.

    A strong password is at least eight characters long and contains an ASCII
    lowercase letter, an ASCII uppercase letter and one of the characters in
    :data:`SPECIAL_CHARACTERS`. Digits do not count as special characters.
    """

    if len(credential) < MIN_PASSWORD_LENGTH:
        return False

    has_lower = any("a" <= char <= "z" for char in credential)
    has_upper = any("A" <= char <= "Z" for char in credential)
    has_special = any(char in SPECIAL_CHARACTERS for char in credential)
    return has_lower and has_upper and has_special


def require_non_blank(value: str | None, field: str) -> str:
    """Return ``value`` stripped of surrounding whitespace, rejecting blanks."""

    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} must not be empty")
    return cleaned


__all__ = ["MIN_PASSWORD_LENGTH", "SPECIAL_CHARACTERS", "is_strong_password", "require_non_blank"]
