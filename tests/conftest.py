from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import pytest

from roster.directory import DirectoryAccount, DirectoryEntry, DirectoryPlacement
from roster.errors import DirectoryError
from roster.models import AccountStatus, Position, UserRecord


FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


class FakeDirectory:
    """Stateful in-memory stand-in for the directory service."""

    def __init__(
        self,
        *,
        fail_create: Iterable[str] = (),
        fail_group: Iterable[str] = (),
        fail_lookup: Iterable[str] = (),
    ) -> None:
        self.accounts: Dict[str, DirectoryAccount] = {}
        self.groups: Dict[str, List[str]] = {}
        self.fail_create = set(fail_create)
        self.fail_group = set(fail_group)
        self.fail_lookup = set(fail_lookup)

    def find_by_handle(self, handle: str) -> Optional[DirectoryEntry]:
        if handle in self.fail_lookup:
            raise DirectoryError(f"lookup of {handle} timed out")
        account = self.accounts.get(handle)
        if account is None:
            return None
        return DirectoryEntry(dn=f"CN={account.full_name},{account.ou}", handle=handle)

    def create_account(self, account: DirectoryAccount) -> DirectoryEntry:
        if account.login_name in self.fail_create:
            raise DirectoryError("insufficient access rights")
        self.accounts[account.login_name] = account
        return DirectoryEntry(dn=f"CN={account.full_name},{account.ou}", handle=account.login_name)

    def add_to_group(self, group: str, handle: str) -> None:
        if group in self.fail_group:
            raise DirectoryError(f"group {group} does not exist")
        self.groups.setdefault(group, []).append(handle)


def make_record(
    handle: str,
    *,
    surname: str = "Dupont",
    given_name: str = "Jean",
    position: Position = Position.TTP,
    credential: str = "Secr3t!pw",
    status: AccountStatus = AccountStatus.ACTIVE,
    last_login: Optional[datetime] = FIXED_NOW,
) -> UserRecord:
    return UserRecord(
        surname=surname,
        given_name=given_name,
        position=position,
        handle=handle,
        credential=credential,
        status=status,
        last_login=last_login,
    )


@pytest.fixture()
def fake_directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture()
def mapping() -> Dict[Position, DirectoryPlacement]:
    return {
        Position.TTP: DirectoryPlacement(ou="OU=TTP,DC=example,DC=com", group="GG_TTP"),
        Position.SECRETARY: DirectoryPlacement(ou="OU=Secretariat,DC=example,DC=com", group="GG_Secretariat"),
        Position.ADMIN: DirectoryPlacement(ou="OU=Admins,DC=example,DC=com"),
    }
