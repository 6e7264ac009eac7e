"""Derivation of unique login handles from name fields."""

from __future__ import annotations

import logging
from typing import AbstractSet

from .errors import ValidationError

logger = logging.getLogger("rosterctl.handles")


def base_handle(given_name: str, surname: str) -> str:
    """Return the undecorated handle candidate for a person."""

    given = "".join(given_name.split())
    if not given:
        raise ValidationError("Given name must not be empty")
    return "".join((given[0] + surname).split()).lower()


def generate_handle(given_name: str, surname: str, existing_handles: AbstractSet[str]) -> str:
    """Return a handle that is not present in ``existing_handles``.

    The candidate is the first letter of the given name followed by the
    surname, lower-cased with whitespace removed. Collisions are resolved by
    appending ``1``, ``2`` and so on.
    """

    candidate = base_handle(given_name, surname)
    if candidate not in existing_handles:
        return candidate

    logger.debug("Handle %s is already taken; looking for a numbered variant", candidate)
    suffix = 1
    while f"{candidate}{suffix}" in existing_handles:
        suffix += 1
    return f"{candidate}{suffix}"


__all__ = ["base_handle", "generate_handle"]
