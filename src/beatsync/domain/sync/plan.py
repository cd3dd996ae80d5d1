"""Plan types produced by reconciliation and consumed by the batch writer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from beatsync.domain.model import Beatdown


class WriteAction(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    MIGRATE = "migrate"


@dataclass(frozen=True, slots=True, kw_only=True)
class PlannedUpsert:
    """A record to write under ``doc_id``.

    ``migrated_from`` names the legacy document the record was matched
    against when the write moves it to its current-scheme id.
    """

    doc_id: str
    record: Beatdown
    action: WriteAction
    changed_fields: frozenset[str] = frozenset()
    migrated_from: str | None = None

    @property
    def migrated(self) -> bool:
        return self.migrated_from is not None


@dataclass(slots=True)
class SyncDiagnostics:
    """Counters and per-record change report for one reconciliation pass."""

    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    migrated: int = 0
    soft_deleted: int = 0
    missing_locations: int = 0
    inactive: int = 0
    duplicates: int = 0
    invalid: int = 0
    changes: dict[str, frozenset[str]] = field(default_factory=dict[str, frozenset[str]])

    def summary(self) -> str:
        return (
            f"inserted={self.inserted}, updated={self.updated}, unchanged={self.unchanged}, "
            f"migrated={self.migrated}, soft_deleted={self.soft_deleted}, "
            f"missing_locations={self.missing_locations}, inactive={self.inactive}, "
            f"duplicates={self.duplicates}, invalid={self.invalid}"
        )


@dataclass(slots=True)
class ReconciliationPlan:
    """Aggregate decision set for one reconciliation pass."""

    to_upsert: list[PlannedUpsert] = field(default_factory=list["PlannedUpsert"])
    to_soft_delete: list[str] = field(default_factory=list[str])
    processed_ids: set[str] = field(default_factory=set[str])
    diagnostics: SyncDiagnostics = field(default_factory=SyncDiagnostics)

    @property
    def migrated_count(self) -> int:
        return self.diagnostics.migrated

    @property
    def is_empty(self) -> bool:
        return not self.to_upsert and not self.to_soft_delete

    def add_upsert(self, upsert: PlannedUpsert) -> None:
        self.to_upsert.append(upsert)
        diagnostics = self.diagnostics
        match upsert.action:
            case WriteAction.INSERT:
                diagnostics.inserted += 1
            case WriteAction.UPDATE:
                diagnostics.updated += 1
            case WriteAction.MIGRATE:
                diagnostics.migrated += 1
        if upsert.changed_fields:
            diagnostics.changes[upsert.doc_id] = upsert.changed_fields

    def add_soft_delete(self, doc_id: str) -> None:
        self.to_soft_delete.append(doc_id)
        self.diagnostics.soft_deleted += 1


@dataclass(frozen=True, slots=True)
class LocationAnalysis:
    """Upstream location ids gained and lost relative to storage."""

    added: tuple[int, ...]
    deleted: tuple[int, ...]
