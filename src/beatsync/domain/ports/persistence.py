"""Ports for persisting beatdown records and webhook deliveries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from beatsync.domain.model import StoredBeatdown
    from beatsync.domain.webhooks import WebhookLogEntry, WebhookOutcome


@dataclass(frozen=True, slots=True)
class UpsertWrite:
    """Write every sync-owned field of the document stored under ``doc_id``.

    Fields the sync does not own are left in place.
    """

    doc_id: str
    document: Mapping[str, object]


@dataclass(frozen=True, slots=True)
class SoftDeleteWrite:
    """Merge the soft-delete markers into an existing document."""

    doc_id: str
    markers: Mapping[str, object]


type BeatdownWrite = UpsertWrite | SoftDeleteWrite


@dataclass(frozen=True, slots=True)
class CityWrite:
    """Replace the city document stored under ``doc_id``."""

    doc_id: str
    document: Mapping[str, object]


@runtime_checkable
class BeatdownStore(Protocol):
    """Persistence contract for the beatdown collection."""

    def load_all(self) -> dict[str, StoredBeatdown]: ...

    def find(
        self, *, event_id: int | None = None, location_id: int | None = None
    ) -> dict[str, StoredBeatdown]: ...

    def get_many(self, doc_ids: Iterable[str]) -> dict[str, StoredBeatdown]: ...

    def write_batch(self, writes: Sequence[BeatdownWrite]) -> None:
        """Apply ``writes`` atomically; callers keep groups within the store limit."""
        ...


@runtime_checkable
class CityStore(Protocol):
    """Persistence contract for the aggregated cities collection."""

    def write_batch(self, writes: Sequence[CityWrite]) -> None: ...


@runtime_checkable
class WebhookLog(Protocol):
    """Durable record of every webhook delivery and its outcome."""

    def record(self, entry: WebhookLogEntry) -> str:
        """Persist ``entry`` and return its log id."""
        ...

    def failed(self) -> list[WebhookLogEntry]: ...

    def resolve(self, entry_id: str, outcome: WebhookOutcome, detail: str | None = None) -> None:
        """Overwrite the outcome of an earlier entry after it was replayed."""
        ...


__all__ = [
    "BeatdownStore",
    "BeatdownWrite",
    "CityStore",
    "CityWrite",
    "SoftDeleteWrite",
    "UpsertWrite",
    "WebhookLog",
]
