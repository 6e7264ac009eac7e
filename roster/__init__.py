"""Core components of the roster management tool."""

from __future__ import annotations

from .accounts import AccountService
from .credentials import CredentialPolicy
from .models import AccountStatus, Position, Roster, UserRecord
from .provisioning import DirectoryProvisioner, ExportSummary
from .store import RecordStore, resolve_roster_path

__all__ = [
    "AccountService",
    "AccountStatus",
    "CredentialPolicy",
    "DirectoryProvisioner",
    "ExportSummary",
    "Position",
    "RecordStore",
    "Roster",
    "UserRecord",
    "resolve_roster_path",
]
