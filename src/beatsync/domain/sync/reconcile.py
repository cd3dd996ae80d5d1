"""Three-way reconciliation between upstream events and stored records.

Given full snapshots of both sides, decide which records to insert, update,
or soft-delete. The pass is pure: it reads nothing and writes nothing, so it
can run in dry-run mode and be replayed safely.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from beatsync.domain.model import DELETED, GEOHASH, LAST_UPDATED

from .changes import diff
from .identity import IdScheme, derive_id
from .normalize import NormalizationError, normalize
from .plan import LocationAnalysis, PlannedUpsert, ReconciliationPlan, WriteAction

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from beatsync.domain.model import Beatdown, StoredBeatdown, UpstreamEvent, UpstreamLocation

type CleanupScope = Callable[[StoredBeatdown], bool]

log = logging.getLogger(__name__)


def _match(
    doc_id: str, record: Beatdown, stored: Mapping[str, StoredBeatdown]
) -> tuple[StoredBeatdown | None, str | None]:
    existing = stored.get(doc_id)
    if existing is not None:
        return existing, None

    legacy = derive_id(record, IdScheme.LEGACY)
    candidate = stored.get(legacy)
    if candidate is None:
        return None, None
    if candidate.event_id == record.event_id:
        return candidate, legacy
    # The legacy scheme maps several events onto one id. A different event
    # under the legacy id is a collision, not a predecessor of this record.
    log.debug(
        "Legacy id %s belongs to event %s, not %s; creating %s",
        legacy,
        candidate.event_id,
        record.event_id,
        doc_id,
    )
    return None, None


def _plan_upsert(
    doc_id: str, record: Beatdown, stored: Mapping[str, StoredBeatdown]
) -> PlannedUpsert | None:
    existing, migrated_from = _match(doc_id, record, stored)
    if existing is None:
        return PlannedUpsert(doc_id=doc_id, record=record, action=WriteAction.INSERT)

    changed = set(diff(existing, record))
    if existing.deleted:
        changed.add(DELETED)
    if existing.last_updated is None:
        changed.add(LAST_UPDATED)
    if not isinstance(existing.get(GEOHASH), str):
        changed.add(GEOHASH)

    if migrated_from is not None:
        return PlannedUpsert(
            doc_id=doc_id,
            record=record,
            action=WriteAction.MIGRATE,
            changed_fields=frozenset(changed),
            migrated_from=migrated_from,
        )
    if not changed:
        return None
    return PlannedUpsert(
        doc_id=doc_id,
        record=record,
        action=WriteAction.UPDATE,
        changed_fields=frozenset(changed),
    )


def reconcile(
    stored: Mapping[str, StoredBeatdown],
    events: Iterable[UpstreamEvent],
    locations: Iterable[UpstreamLocation],
    *,
    scope: CleanupScope | None = None,
) -> ReconciliationPlan:
    """Compute the mutation set that brings ``stored`` in line with upstream.

    ``scope`` limits which stored records are cleanup candidates; narrow passes
    (a single event or location) use it so they never soft-delete documents
    outside what they were asked to look at.
    """

    locations_by_id = {location.id: location for location in locations}
    plan = ReconciliationPlan()
    diagnostics = plan.diagnostics

    for event in events:
        if not event.is_active:
            diagnostics.inactive += 1
            continue
        location = locations_by_id.get(event.location_id)
        if location is None:
            log.warning("Location %s not found for event %s", event.location_id, event.id)
            diagnostics.missing_locations += 1
            continue
        if not location.is_active:
            diagnostics.inactive += 1
            continue

        try:
            record = normalize(location, event)
        except NormalizationError as exc:
            log.warning("Skipping event %s: %s", event.id, exc)
            diagnostics.invalid += 1
            continue

        doc_id = derive_id(record, IdScheme.CURRENT)
        if doc_id in plan.processed_ids:
            log.warning("Duplicate beatdown id %s from event %s", doc_id, event.id)
            diagnostics.duplicates += 1
            continue
        plan.processed_ids.add(doc_id)

        upsert = _plan_upsert(doc_id, record, stored)
        if upsert is None:
            diagnostics.unchanged += 1
            continue
        plan.add_upsert(upsert)

    for doc_id in sorted(stored):
        if doc_id in plan.processed_ids:
            continue
        existing = stored[doc_id]
        if existing.deleted:
            continue
        if scope is not None and not scope(existing):
            continue
        plan.add_soft_delete(doc_id)

    return plan


def analyze_locations(
    stored: Mapping[str, StoredBeatdown], events: Iterable[UpstreamEvent]
) -> LocationAnalysis:
    """Compare the location ids referenced upstream with those in storage."""

    existing = {
        location_id
        for record in stored.values()
        if not record.deleted and (location_id := record.location_id) is not None
    }
    upstream = {event.location_id for event in events}
    return LocationAnalysis(
        added=tuple(sorted(upstream - existing)),
        deleted=tuple(sorted(existing - upstream)),
    )
