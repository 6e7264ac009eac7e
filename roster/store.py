"""Flat-file persistence for the user roster."""
from __future__ import annotations

import csv
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .errors import RecordStoreError
from .models import AccountStatus, Position, Roster, UserRecord

logger = logging.getLogger("rosterctl.store")

FIELD_ORDER = (
    "surname",
    "given_name",
    "position",
    "handle",
    "credential",
    "status",
    "last_login",
)

DEFAULT_DELIMITER = ";"


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_roster_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the roster file."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.txt").resolve(strict=False)


def _serialize_datetime(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else ""


def _parse_datetime(value: str) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def validate_delimiter(delimiter: str) -> str:
    if len(delimiter) != 1 or delimiter in {"\n", "\r", '"'}:
        raise ValueError(f"Invalid field delimiter {delimiter!r}")
    return delimiter


class RecordStore:
    """Read and write the complete roster as delimited text.

    Every save rewrites the whole file. The new content is written to a
    temporary file next to the target and moved into place with
    :func:`os.replace` so readers never observe a partially written roster.
    """

    def __init__(self, path: Path, *, delimiter: str = DEFAULT_DELIMITER) -> None:
        self._path = path
        self._delimiter = validate_delimiter(delimiter)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def delimiter(self) -> str:
        return self._delimiter

    def load(self) -> Roster:
        """Return every record in file order. A missing file is an empty roster."""

        if not self._path.exists():
            logger.debug("Roster file %s does not exist yet", self._path)
            return []

        try:
            with self._path.open("r", encoding="utf-8", newline="") as handle:
                rows = list(csv.reader(handle, delimiter=self._delimiter))
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise RecordStoreError(f"Unable to read roster file {self._path}: {exc}") from exc

        roster: List[UserRecord] = []
        for line_number, row in enumerate(rows, start=1):
            if not row or all(not value.strip() for value in row):
                continue
            roster.append(self._row_to_record(row, line_number))

        logger.debug("Loaded %d record(s) from %s", len(roster), self._path)
        return roster

    def save(self, roster: Iterable[UserRecord]) -> None:
        """Replace the roster file with ``roster``."""

        records = list(roster)
        seen: set[str] = set()
        for record in records:
            if record.handle in seen:
                raise RecordStoreError(f"Duplicate handle {record.handle!r} in roster")
            seen.add(record.handle)

        _ensure_directory(self._path)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                writer = csv.writer(handle, delimiter=self._delimiter, lineterminator="\n")
                for record in records:
                    writer.writerow(self._record_to_row(record))
            os.replace(tmp_name, self._path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise RecordStoreError(f"Unable to write roster file {self._path}: {exc}") from exc

        logger.debug("Wrote %d record(s) to %s", len(records), self._path)

    @staticmethod
    def _record_to_row(record: UserRecord) -> List[str]:
        return [
            record.surname,
            record.given_name,
            record.position.value,
            record.handle,
            record.credential,
            record.status.value,
            _serialize_datetime(record.last_login),
        ]

    def _row_to_record(self, row: Sequence[str], line_number: int) -> UserRecord:
        if len(row) != len(FIELD_ORDER):
            raise RecordStoreError(
                f"{self._path}:{line_number}: expected {len(FIELD_ORDER)} fields, found {len(row)}"
            )

        surname, given_name, position, handle, credential, status, last_login = row
        try:
            return UserRecord(
                surname=surname,
                given_name=given_name,
                position=Position.parse(position),
                handle=handle,
                credential=credential,
                status=AccountStatus.parse(status),
                last_login=_parse_datetime(last_login.strip()),
            )
        except ValueError as exc:
            raise RecordStoreError(f"{self._path}:{line_number}: {exc}") from exc


__all__ = ["DEFAULT_DELIMITER", "FIELD_ORDER", "RecordStore", "resolve_roster_path", "validate_delimiter"]
