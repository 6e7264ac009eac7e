"""Reconcile roster records against the directory service."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List

from .directory import DirectoryAccount, DirectoryClient, DirectoryMapping
from .models import UserRecord

logger = logging.getLogger("rosterctl.provisioning")


class ExportOutcome(str, Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class ExportResult:
    handle: str
    outcome: ExportOutcome
    message: str = ""


@dataclass
class ExportSummary:
    """Tally of the per-record outcomes of one export run."""

    results: List[ExportResult] = field(default_factory=list)

    def _count(self, outcome: ExportOutcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    @property
    def created(self) -> int:
        return self._count(ExportOutcome.CREATED)

    @property
    def skipped(self) -> int:
        return self._count(ExportOutcome.SKIPPED)

    @property
    def errors(self) -> int:
        return self._count(ExportOutcome.ERROR)

    @property
    def total(self) -> int:
        return len(self.results)


class DirectoryProvisioner:
    """Create missing directory accounts for every roster record.

    Records already present in the directory are skipped, so repeated runs
    are idempotent. Failures are recorded per record and never stop the run.
    """

    def __init__(self, client: DirectoryClient, mapping: DirectoryMapping, *, domain_suffix: str) -> None:
        self._client = client
        self._mapping = mapping
        self._domain_suffix = domain_suffix

    def export_all(self, roster: Iterable[UserRecord]) -> ExportSummary:
        summary = ExportSummary()
        for record in roster:
            result = self._export_record(record)
            summary.results.append(result)

        logger.info(
            "Directory export finished: %d created, %d skipped, %d error(s) out of %d",
            summary.created,
            summary.skipped,
            summary.errors,
            summary.total,
        )
        return summary

    def _export_record(self, record: UserRecord) -> ExportResult:
        handle = record.handle
        try:
            existing = self._client.find_by_handle(handle)
        except Exception as exc:
            logger.error("Directory lookup failed for %s: %s", handle, exc)
            return ExportResult(handle, ExportOutcome.ERROR, f"Lookup failed: {exc}")

        if existing is not None:
            logger.info("Account %s already exists in the directory; skipping", handle)
            return ExportResult(handle, ExportOutcome.SKIPPED, "Already present in directory")

        placement = self._mapping.get(record.position)
        if placement is None:
            logger.error("No directory placement configured for position %s (%s)", record.position.value, handle)
            return ExportResult(
                handle, ExportOutcome.ERROR, f"No directory mapping for position {record.position.value}"
            )

        account = DirectoryAccount(
            ou=placement.ou,
            full_name=record.full_name,
            given_name=record.given_name,
            surname=record.surname,
            login_name=handle,
            principal_name=f"{handle}{self._domain_suffix}",
            enabled=record.is_active,
            must_change_password=True,
        )
        try:
            self._client.create_account(account)
        except Exception as exc:
            logger.error("Failed to create directory account %s: %s", handle, exc)
            return ExportResult(handle, ExportOutcome.ERROR, f"Creation failed: {exc}")

        if placement.group:
            try:
                self._client.add_to_group(placement.group, handle)
            except Exception as exc:
                logger.error("Created %s but could not add it to %s: %s", handle, placement.group, exc)
                return ExportResult(
                    handle, ExportOutcome.ERROR, f"Group membership for {placement.group} failed: {exc}"
                )

        return ExportResult(handle, ExportOutcome.CREATED, "Created")


__all__ = ["DirectoryProvisioner", "ExportOutcome", "ExportResult", "ExportSummary"]
