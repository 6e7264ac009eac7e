"""Storage and comparison of account credentials."""
from __future__ import annotations

import secrets

from passlib.context import CryptContext

from .errors import ConfigurationError

PLAINTEXT_SCHEME = "plaintext"


class CredentialPolicy:
    """Encode credentials for storage and verify login attempts.

    The ``plaintext`` scheme stores credentials verbatim, matching how existing
    roster files are laid out. Any other value is treated as a passlib scheme
    name (for example ``pbkdf2_sha256``) and credentials are hashed at rest.
    """

    def __init__(self, scheme: str = PLAINTEXT_SCHEME) -> None:
        self._scheme = scheme.strip() or PLAINTEXT_SCHEME
        if self._scheme == PLAINTEXT_SCHEME:
            self._context = None
        else:
            try:
                self._context = CryptContext(schemes=[self._scheme], deprecated="auto")
            except (KeyError, ValueError) as exc:
                raise ConfigurationError(f"Unsupported credential scheme {scheme!r}") from exc

    @property
    def hashes_credentials(self) -> bool:
        return self._context is not None

    def encode(self, credential: str) -> str:
        if self._context is None:
            return credential
        return self._context.hash(credential)

    def verify(self, credential: str, stored: str) -> bool:
        if self._context is None:
            return secrets.compare_digest(credential.encode("utf-8"), stored.encode("utf-8"))

        try:
            return self._context.verify(credential, stored)
        except ValueError:
            return False


__all__ = ["CredentialPolicy", "PLAINTEXT_SCHEME"]
