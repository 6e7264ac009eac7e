"""Domain models for the user roster."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Position(str, Enum):
    """Job position of a roster member."""

    TTP = "TTP"
    SECRETARY = "Secretary"
    ADMIN = "Admin"

    @classmethod
    def parse(cls, value: str) -> "Position":
        cleaned = value.strip()
        for member in cls:
            if member.value.lower() == cleaned.lower():
                return member
        raise ValueError(f"Unknown position {value!r}")


class AccountStatus(str, Enum):
    """Lifecycle state of an account."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    LOCKED = "Locked"

    @classmethod
    def parse(cls, value: str) -> "AccountStatus":
        cleaned = value.strip()
        for member in cls:
            if member.value.lower() == cleaned.lower():
                return member
        raise ValueError(f"Unknown account status {value!r}")


@dataclass(frozen=True)
class UserRecord:
    """Represents a single account stored in the roster file."""

    surname: str
    given_name: str
    position: Position
    handle: str
    credential: str
    status: AccountStatus
    last_login: Optional[datetime]

    @property
    def full_name(self) -> str:
        return f"{self.given_name} {self.surname}"

    @property
    def is_active(self) -> bool:
        return self.status is AccountStatus.ACTIVE


Roster = List[UserRecord]


__all__ = ["AccountStatus", "Position", "Roster", "UserRecord"]
