"""Scoped reconciliation passes triggered by upstream change notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from beatsync.domain.ports.fetching import UpstreamNotFoundError
from beatsync.domain.sync import BatchWriter, IdScheme, NormalizationError, derive_id, normalize
from beatsync.domain.sync import reconcile as reconcile_records

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from beatsync.domain.model import StoredBeatdown, UpstreamEvent, UpstreamLocation
    from beatsync.domain.ports.fetching import UpstreamFetcher
    from beatsync.domain.ports.persistence import BeatdownStore, WebhookLog
    from beatsync.domain.sync import CleanupScope, CommitResult, ReconciliationPlan

PROD_CHANNEL = "prod"

log = logging.getLogger(__name__)


class WebhookAction(StrEnum):
    MAP_UPDATED = "map.updated"
    MAP_DELETED = "map.deleted"


class WebhookOutcome(StrEnum):
    PROCESSED = "processed"
    IGNORED = "ignored"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"


@dataclass(frozen=True, slots=True, kw_only=True)
class WebhookNotification:
    """A parsed change notification plus the raw payload it came from."""

    action: str
    channel: str
    event_id: int | None = None
    location_id: int | None = None
    org_id: int | None = None
    timestamp: datetime | None = None
    payload: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class WebhookLogEntry:
    received_at: datetime
    payload: Mapping[str, object]
    outcome: WebhookOutcome
    action: str | None = None
    channel: str | None = None
    detail: str | None = None
    entry_id: str | None = None


@dataclass(slots=True)
class WebhookResult:
    outcome: WebhookOutcome
    detail: str | None = None
    plan: ReconciliationPlan | None = None
    commit: CommitResult | None = None


type PayloadParser = Callable[[Mapping[str, object]], WebhookNotification]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _upstream_for_event(
    fetcher: UpstreamFetcher, event_id: int
) -> tuple[list[UpstreamEvent], list[UpstreamLocation]]:
    try:
        event = fetcher.fetch_event(event_id)
    except UpstreamNotFoundError:
        log.info("Event %s no longer exists upstream", event_id)
        return [], []
    try:
        location = fetcher.fetch_location(event.location_id)
    except UpstreamNotFoundError:
        return [event], []
    return [event], [location]


def _upstream_for_location(
    fetcher: UpstreamFetcher, location_id: int
) -> tuple[list[UpstreamEvent], list[UpstreamLocation]]:
    try:
        location = fetcher.fetch_location(location_id)
    except UpstreamNotFoundError:
        log.info("Location %s no longer exists upstream", location_id)
        return [], []
    events = [event for event in fetcher.fetch_events() if event.location_id == location_id]
    return events, [location]


def _candidate_ids(
    events: list[UpstreamEvent], locations: list[UpstreamLocation]
) -> set[str]:
    locations_by_id = {location.id: location for location in locations}
    candidates: set[str] = set()
    for event in events:
        location = locations_by_id.get(event.location_id)
        if location is None:
            continue
        try:
            record = normalize(location, event)
        except NormalizationError:
            continue
        candidates.add(derive_id(record, IdScheme.CURRENT))
        candidates.add(derive_id(record, IdScheme.LEGACY))
    return candidates


def _scope_for(notification: WebhookNotification) -> CleanupScope:
    if notification.event_id is not None:
        event_id = notification.event_id
        return lambda record: record.event_id == event_id
    location_id = notification.location_id
    return lambda record: record.location_id == location_id


def _load_scoped(
    store: BeatdownStore,
    notification: WebhookNotification,
    candidates: set[str],
) -> dict[str, StoredBeatdown]:
    if notification.event_id is not None:
        stored = store.find(event_id=notification.event_id)
    else:
        stored = store.find(location_id=notification.location_id)
    missing = candidates - stored.keys()
    if missing:
        stored.update(store.get_many(sorted(missing)))
    return stored


def process_notification(
    notification: WebhookNotification,
    *,
    fetcher: UpstreamFetcher,
    store: BeatdownStore,
    writer: BatchWriter,
) -> WebhookResult:
    """Run the reconciliation pass a notification asks for.

    The pass is limited to the documents of the notified event or location;
    nothing outside that scope is read for cleanup or soft-deleted.
    """

    if notification.channel != PROD_CHANNEL:
        return WebhookResult(
            WebhookOutcome.IGNORED, detail=f"channel {notification.channel!r} is not acted on"
        )
    if notification.event_id is None and notification.location_id is None:
        return WebhookResult(WebhookOutcome.UNSUPPORTED, detail="no eventId or locationId")

    event_id, location_id = notification.event_id, notification.location_id
    match notification.action:
        case WebhookAction.MAP_UPDATED if event_id is not None:
            events, locations = _upstream_for_event(fetcher, event_id)
        case WebhookAction.MAP_UPDATED if location_id is not None:
            events, locations = _upstream_for_location(fetcher, location_id)
        case WebhookAction.MAP_DELETED:
            events, locations = [], []
        case _:
            return WebhookResult(
                WebhookOutcome.UNSUPPORTED, detail=f"unknown action {notification.action!r}"
            )

    stored = _load_scoped(store, notification, _candidate_ids(events, locations))
    plan = reconcile_records(stored, events, locations, scope=_scope_for(notification))
    commit = writer.commit_plan(plan)
    log.info(
        "Webhook %s (event=%s, location=%s): %s",
        notification.action,
        notification.event_id,
        notification.location_id,
        plan.diagnostics.summary(),
    )
    return WebhookResult(
        WebhookOutcome.PROCESSED, detail=plan.diagnostics.summary(), plan=plan, commit=commit
    )


def _entry_for(
    payload: Mapping[str, object],
    received_at: datetime,
    result: WebhookResult,
    notification: WebhookNotification | None = None,
) -> WebhookLogEntry:
    return WebhookLogEntry(
        received_at=received_at,
        payload=payload,
        outcome=result.outcome,
        action=notification.action if notification else None,
        channel=notification.channel if notification else None,
        detail=result.detail,
    )


def handle_webhook(
    payload: Mapping[str, object],
    *,
    parse: PayloadParser,
    fetcher: UpstreamFetcher,
    store: BeatdownStore,
    webhook_log: WebhookLog,
    writer: BatchWriter | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> WebhookResult:
    """Parse, process and log one delivery.

    Every payload ends up in ``webhook_log``. Processing errors are logged with
    outcome ``failed`` and then re-raised.
    """

    received_at = clock()
    try:
        notification = parse(payload)
    except ValueError as exc:
        result = WebhookResult(WebhookOutcome.UNSUPPORTED, detail=f"invalid payload: {exc}")
        webhook_log.record(_entry_for(payload, received_at, result))
        log.warning("Ignoring malformed webhook payload: %s", exc)
        return result

    effective_writer = writer or BatchWriter(store)
    try:
        result = process_notification(
            notification, fetcher=fetcher, store=store, writer=effective_writer
        )
    except Exception as exc:
        failed = WebhookResult(WebhookOutcome.FAILED, detail=repr(exc))
        webhook_log.record(_entry_for(payload, received_at, failed, notification))
        raise

    webhook_log.record(_entry_for(payload, received_at, result, notification))
    log.info("Webhook %s on %s: %s", notification.action, notification.channel, result.outcome)
    return result


@dataclass(slots=True)
class ReplaySummary:
    replayed: int = 0
    recovered: int = 0
    still_failing: int = 0
    outcomes: dict[str, WebhookOutcome] = field(default_factory=dict[str, WebhookOutcome])


def replay_failed_webhooks(
    *,
    parse: PayloadParser,
    fetcher: UpstreamFetcher,
    store: BeatdownStore,
    webhook_log: WebhookLog,
    writer: BatchWriter | None = None,
) -> ReplaySummary:
    """Re-process every logged ``failed`` delivery and update its outcome.

    A delivery that fails again keeps its ``failed`` marker with the new error
    as detail; the remaining entries are still replayed.
    """

    effective_writer = writer or BatchWriter(store)
    summary = ReplaySummary()
    for entry in webhook_log.failed():
        if entry.entry_id is None:
            continue
        summary.replayed += 1
        try:
            notification = parse(entry.payload)
        except ValueError as exc:
            webhook_log.resolve(
                entry.entry_id, WebhookOutcome.UNSUPPORTED, f"invalid payload: {exc}"
            )
            summary.outcomes[entry.entry_id] = WebhookOutcome.UNSUPPORTED
            summary.recovered += 1
            continue
        try:
            result = process_notification(
                notification, fetcher=fetcher, store=store, writer=effective_writer
            )
        except Exception as exc:
            log.exception("Replay of webhook %s failed again", entry.entry_id)
            webhook_log.resolve(entry.entry_id, WebhookOutcome.FAILED, repr(exc))
            summary.outcomes[entry.entry_id] = WebhookOutcome.FAILED
            summary.still_failing += 1
            continue
        webhook_log.resolve(entry.entry_id, result.outcome, result.detail)
        summary.outcomes[entry.entry_id] = result.outcome
        summary.recovered += 1

    log.info(
        "Replayed %s failed webhooks: recovered=%s, still_failing=%s",
        summary.replayed,
        summary.recovered,
        summary.still_failing,
    )
    return summary

