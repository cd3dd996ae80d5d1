"""Application services for synchronising the beatdown collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from beatsync.domain.ports.fetching import UpstreamNotFoundError
from beatsync.domain.sync import BatchWriter, CommitResult, analyze_locations, reconcile
from beatsync.domain.sync.batching import MAX_WRITE_BATCH_SIZE

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from beatsync.domain.model import UpstreamLocation
    from beatsync.domain.ports.fetching import UpstreamFeed, UpstreamFetcher
    from beatsync.domain.ports.persistence import BeatdownStore
    from beatsync.domain.sync import (
        LocationAnalysis,
        PlannedUpsert,
        ReconciliationPlan,
        SyncDiagnostics,
    )

DEFAULT_MISSING_LOCATION_FETCH_LIMIT = 10

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncOptions:
    """Switches for one bulk sync pass.

    ``cleanup`` controls soft-deleting records that vanished upstream;
    ``only_cleanup`` skips inserts and updates and forces cleanup on.
    """

    dry_run: bool = False
    cleanup: bool = True
    only_cleanup: bool = False
    batch_size: int = MAX_WRITE_BATCH_SIZE
    missing_location_fetch_limit: int = DEFAULT_MISSING_LOCATION_FETCH_LIMIT

    @property
    def writes_upserts(self) -> bool:
        return not self.only_cleanup

    @property
    def writes_soft_deletes(self) -> bool:
        return self.cleanup or self.only_cleanup


@dataclass(slots=True)
class SyncBeatdownsResult:
    """Outcome of a bulk beatdown sync."""

    plan: ReconciliationPlan
    options: SyncOptions
    upserts: list[PlannedUpsert] = field(default_factory=list)
    soft_deletes: list[str] = field(default_factory=list)
    commit: CommitResult = field(default_factory=CommitResult)

    @property
    def diagnostics(self) -> SyncDiagnostics:
        return self.plan.diagnostics

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run


def backfill_missing_locations(
    fetcher: UpstreamFetcher,
    feed: UpstreamFeed,
    *,
    limit: int = DEFAULT_MISSING_LOCATION_FETCH_LIMIT,
) -> list[UpstreamLocation]:
    """Fetch locations that events reference but the bulk listing left out.

    Only the first ``limit`` are requested to stay clear of the upstream rate
    limit; anything still missing is skipped by reconciliation.
    """

    locations = list(feed.locations)
    known = {location.id for location in locations}
    missing = sorted({event.location_id for event in feed.events} - known)
    if not missing:
        return locations

    log.warning(
        "%s locations referenced by events are missing from the bulk fetch; "
        "fetching up to %s individually",
        len(missing),
        limit,
    )
    for location_id in missing[:limit]:
        try:
            locations.append(fetcher.fetch_location(location_id))
        except UpstreamNotFoundError:
            log.warning("Failed to fetch missing location %s", location_id)
    return locations


def select_writes(
    plan: ReconciliationPlan, options: SyncOptions
) -> tuple[list[PlannedUpsert], list[str]]:
    """Pick the planned writes the options allow.

    A legacy document is only soft-deleted together with the write that
    migrates it, so suppressing upserts also keeps those legacy documents.
    """

    if not options.writes_soft_deletes:
        return list(plan.to_upsert), []
    if options.writes_upserts:
        return list(plan.to_upsert), list(plan.to_soft_delete)

    pending = {upsert.migrated_from for upsert in plan.to_upsert if upsert.migrated_from}
    if pending:
        log.info("Keeping %s legacy beatdowns until their migration is written", len(pending))
    return [], [doc_id for doc_id in plan.to_soft_delete if doc_id not in pending]


def sync_beatdowns(
    *,
    fetcher: UpstreamFetcher,
    store: BeatdownStore,
    options: SyncOptions | None = None,
    clock: Callable[[], datetime] | None = None,
) -> SyncBeatdownsResult:
    """Run one full reconciliation pass and apply (or simulate) its writes."""

    effective = options or SyncOptions()

    stored = store.load_all()
    log.info("Found %s existing beatdowns in storage", len(stored))

    feed = fetcher.fetch_feed()
    log.info("Fetched %s events and %s locations", len(feed.events), len(feed.locations))
    if feed.rejected_events or feed.rejected_locations:
        log.warning(
            "Skipped %s malformed events and %s malformed locations from the upstream feed",
            feed.rejected_events,
            feed.rejected_locations,
        )
    locations = backfill_missing_locations(
        fetcher, feed, limit=effective.missing_location_fetch_limit
    )

    plan = reconcile(stored, feed.events, locations)
    plan.diagnostics.invalid += feed.rejected_events
    upserts, soft_deletes = select_writes(plan, effective)
    result = SyncBeatdownsResult(
        plan=plan, options=effective, upserts=upserts, soft_deletes=soft_deletes
    )

    if effective.dry_run:
        log.info(
            "[DRY RUN] Would write %s beatdowns and soft-delete %s",
            len(upserts),
            len(soft_deletes),
        )
        _log_summary(result)
        return result

    writer = (
        BatchWriter(store, batch_size=effective.batch_size, clock=clock)
        if clock is not None
        else BatchWriter(store, batch_size=effective.batch_size)
    )
    try:
        writer.commit(upserts, soft_deletes, result=result.commit)
    finally:
        _log_summary(result)
    return result


def analyze_beatdown_locations(
    *, fetcher: UpstreamFetcher, store: BeatdownStore
) -> LocationAnalysis:
    """Report upstream location ids added or removed relative to storage."""

    stored = store.load_all()
    events = fetcher.fetch_events()
    analysis = analyze_locations(stored, events)
    log.info(
        "Location analysis: added=%s, deleted=%s", len(analysis.added), len(analysis.deleted)
    )
    return analysis


def _log_summary(result: SyncBeatdownsResult) -> None:
    prefix = "[DRY RUN] " if result.dry_run else ""
    options = result.options
    if not options.writes_soft_deletes:
        log.info("%sCleanup disabled; %s stale beatdowns left in place", prefix, len(
            result.plan.to_soft_delete
        ))
    if options.only_cleanup:
        log.info("%sCleanup only; inserts and updates skipped", prefix)
    log.info("%sPlanned changes: %s", prefix, result.diagnostics.summary())
    log.info(
        "%sSelected writes: upserts=%s, soft_deletes=%s",
        prefix,
        len(result.upserts),
        len(result.soft_deletes),
    )
    if not result.dry_run:
        log.info(
            "Committed %s groups: written=%s, soft_deleted=%s",
            result.commit.groups,
            result.commit.written,
            result.commit.soft_deleted,
        )
