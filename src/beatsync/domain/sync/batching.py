"""Apply reconciliation plans to a store in size-bounded write groups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from itertools import batched
from typing import TYPE_CHECKING

from beatsync.domain.model import DELETED, DELETED_AT, LAST_UPDATED
from beatsync.domain.ports.persistence import SoftDeleteWrite, UpsertWrite

from .geohash import geohash_fields

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from beatsync.domain.ports.persistence import BeatdownStore, BeatdownWrite

    from .plan import PlannedUpsert, ReconciliationPlan

log = logging.getLogger(__name__)

# Firestore rejects write batches above 500 operations.
MAX_WRITE_BATCH_SIZE = 500


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class CommitResult:
    groups: int = 0
    written: int = 0
    soft_deleted: int = 0


@dataclass(slots=True)
class BatchWriter:
    """Commit upserts and soft-deletes group by group.

    Each group is atomic on its own; nothing spans groups, so a failure leaves
    earlier groups committed and the pass can simply be rerun.
    """

    store: BeatdownStore
    batch_size: int = MAX_WRITE_BATCH_SIZE
    clock: Callable[[], datetime] = field(default=_utcnow)

    def __post_init__(self) -> None:
        if not 0 < self.batch_size <= MAX_WRITE_BATCH_SIZE:
            raise ValueError(
                f"batch_size must be between 1 and {MAX_WRITE_BATCH_SIZE}, got {self.batch_size}"
            )

    def commit(
        self,
        upserts: Iterable[PlannedUpsert],
        soft_deletes: Iterable[str],
        *,
        result: CommitResult | None = None,
    ) -> CommitResult:
        """Write all groups in order.

        Progress accumulates in ``result`` as groups land, so a caller that
        passes its own instance still sees partial counts if a group fails.
        """

        now = self.clock()
        writes: list[BeatdownWrite] = [self._upsert(upsert, now) for upsert in upserts]
        writes.extend(self._soft_delete(doc_id, now) for doc_id in soft_deletes)

        result = result if result is not None else CommitResult()
        groups = list(batched(writes, self.batch_size))
        for index, group in enumerate(groups, start=1):
            log.info("Writing batch %s/%s (%s documents)", index, len(groups), len(group))
            self.store.write_batch(group)
            result.groups += 1
            for write in group:
                if isinstance(write, SoftDeleteWrite):
                    result.soft_deleted += 1
                else:
                    result.written += 1
        return result

    def commit_plan(self, plan: ReconciliationPlan) -> CommitResult:
        return self.commit(plan.to_upsert, plan.to_soft_delete)

    @staticmethod
    def _upsert(upsert: PlannedUpsert, now: datetime) -> UpsertWrite:
        record = upsert.record
        document = record.to_document()
        document.update(geohash_fields(record.lat, record.long))
        document[LAST_UPDATED] = now
        document[DELETED] = False
        document[DELETED_AT] = None
        return UpsertWrite(doc_id=upsert.doc_id, document=document)

    @staticmethod
    def _soft_delete(doc_id: str, now: datetime) -> SoftDeleteWrite:
        return SoftDeleteWrite(
            doc_id=doc_id,
            markers={DELETED: True, DELETED_AT: now, LAST_UPDATED: now},
        )
