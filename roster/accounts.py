"""Account listing, creation and authentication over a roster."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from .credentials import CredentialPolicy
from .errors import (
    AccountInactiveError,
    AccountLockedError,
    InvalidCredentialError,
    NotFoundError,
    ValidationError,
    WeakPasswordError,
)
from .handles import generate_handle
from .models import AccountStatus, Position, Roster, UserRecord
from .validation import is_strong_password, require_non_blank

logger = logging.getLogger("rosterctl.accounts")

Clock = Callable[[], datetime]


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _find_index(roster: Sequence[UserRecord], handle: str) -> Optional[int]:
    for index, record in enumerate(roster):
        if record.handle == handle:
            return index
    return None


class AccountService:
    """Operations on a roster borrowed from the caller.

    None of the methods modify the roster they are given. Mutating operations
    return the updated roster, which the caller is expected to persist in full.
    """

    def __init__(
        self,
        credentials: Optional[CredentialPolicy] = None,
        *,
        clock: Clock = _current_timestamp,
    ) -> None:
        self._credentials = credentials or CredentialPolicy()
        self._clock = clock

    def list_active(self, roster: Sequence[UserRecord]) -> List[UserRecord]:
        return [record for record in roster if record.is_active]

    def validate_identity(
        self,
        surname: str,
        given_name: str,
        position: Position | str,
    ) -> Tuple[str, str, Position]:
        """Return the stripped names and the parsed position, or raise :class:`ValidationError`."""

        surname = require_non_blank(surname, "Surname")
        given_name = require_non_blank(given_name, "Given name")
        return surname, given_name, self._resolve_position(position)

    def create_account(
        self,
        roster: Sequence[UserRecord],
        surname: str,
        given_name: str,
        position: Position | str,
        credential: str,
    ) -> Tuple[UserRecord, Roster]:
        """Append a new active account and return it with the updated roster.

        Raises :class:`ValidationError` for blank names, an unknown position or
        a weak credential. Nothing is changed when validation fails.
        """

        surname, given_name, resolved_position = self.validate_identity(surname, given_name, position)

        handle = generate_handle(given_name, surname, {record.handle for record in roster})

        if not is_strong_password(credential):
            raise WeakPasswordError(
                "Password must be at least 8 characters long and contain lowercase, "
                "uppercase and special characters"
            )

        record = UserRecord(
            surname=surname,
            given_name=given_name,
            position=resolved_position,
            handle=handle,
            credential=self._credentials.encode(credential),
            status=AccountStatus.ACTIVE,
            last_login=self._clock(),
        )
        logger.info("Created account %s for %s (%s)", handle, record.full_name, resolved_position.value)
        return record, [*roster, record]

    def authenticate(
        self,
        roster: Sequence[UserRecord],
        handle: str,
        credential: str,
    ) -> Tuple[UserRecord, Roster]:
        """Verify a login attempt and stamp the account's last login time.

        Checks run in a fixed order: the account must exist, must not be
        locked, must not be inactive, and the credential must match.
        """

        index = _find_index(roster, handle)
        if index is None:
            logger.warning("Login attempt for unknown account %s", handle)
            raise NotFoundError(handle)

        record = roster[index]
        if record.status is AccountStatus.LOCKED:
            logger.warning("Login attempt for locked account %s", handle)
            raise AccountLockedError(handle)
        if record.status is AccountStatus.INACTIVE:
            logger.warning("Login attempt for inactive account %s", handle)
            raise AccountInactiveError(handle)
        if not self._credentials.verify(credential, record.credential):
            logger.warning("Failed login attempt for %s", handle)
            raise InvalidCredentialError(handle)

        updated = replace(record, last_login=self._clock())
        logger.info("Account %s signed in", handle)
        return updated, self._replace_at(roster, index, updated)

    def set_status(
        self,
        roster: Sequence[UserRecord],
        handle: str,
        status: AccountStatus | str,
    ) -> Tuple[UserRecord, Roster]:
        index = _find_index(roster, handle)
        if index is None:
            raise NotFoundError(handle)

        if isinstance(status, str) and not isinstance(status, AccountStatus):
            try:
                status = AccountStatus.parse(status)
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

        updated = replace(roster[index], status=status)
        logger.info("Account %s is now %s", handle, status.value)
        return updated, self._replace_at(roster, index, updated)

    @staticmethod
    def _resolve_position(position: Position | str) -> Position:
        if isinstance(position, Position):
            return position
        try:
            return Position.parse(position or "")
        except ValueError as exc:
            choices = ", ".join(member.value for member in Position)
            raise ValidationError(f"Position must be one of: {choices}") from exc

    @staticmethod
    def _replace_at(roster: Sequence[UserRecord], index: int, record: UserRecord) -> Roster:
        updated = list(roster)
        updated[index] = record
        return updated


__all__ = ["AccountService"]
