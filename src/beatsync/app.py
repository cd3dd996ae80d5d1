"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from beatsync.adapters.f3nation import F3NationFetcher, parse_webhook_notification
from beatsync.adapters.firestore import (
    FirestoreBeatdownStore,
    FirestoreCityStore,
    FirestoreWebhookLog,
    build_firestore_client,
)
from beatsync.adapters.sqlalchemy import (
    SqlAlchemyBeatdownStore,
    SqlAlchemyCityStore,
    SqlAlchemyWebhookLog,
    is_started,
    startup,
)
from beatsync.config import (
    get_f3nation_config,
    get_firestore_config,
    get_storage_config,
    get_sync_config,
)
from beatsync.domain.cities import rebuild_cities
from beatsync.domain.data_integration import (
    SyncOptions,
    analyze_beatdown_locations,
    sync_beatdowns,
)
from beatsync.domain.sync import BatchWriter
from beatsync.domain.webhooks import handle_webhook, replay_failed_webhooks

if TYPE_CHECKING:
    from collections.abc import Mapping

    from beatsync.config import FirestoreConfig, StorageConfig, SyncConfig
    from beatsync.domain.cities import RebuildCitiesResult
    from beatsync.domain.data_integration import SyncBeatdownsResult
    from beatsync.domain.ports.fetching import UpstreamFetcher
    from beatsync.domain.ports.persistence import BeatdownStore, CityStore, WebhookLog
    from beatsync.domain.sync import LocationAnalysis
    from beatsync.domain.webhooks import ReplaySummary, WebhookResult

log = getLogger(__name__)


@dataclass(slots=True)
class Backends:
    store: BeatdownStore
    webhook_log: WebhookLog
    cities: CityStore


def build_backends(
    *,
    storage: StorageConfig | None = None,
    firestore_config: FirestoreConfig | None = None,
) -> Backends:
    """Open the configured storage backend (Firestore or the SQLite mirror)."""

    effective_storage = storage or get_storage_config()
    if effective_storage.backend == "sqlite":
        if not is_started():
            startup(database_uri=effective_storage.database_uri())
        log.info("Using SQLAlchemy store at %s", effective_storage.database_uri())
        return Backends(
            store=SqlAlchemyBeatdownStore(),
            webhook_log=SqlAlchemyWebhookLog(),
            cities=SqlAlchemyCityStore(),
        )

    config = firestore_config or get_firestore_config()
    client = build_firestore_client(config)
    log.info("Using Firestore collection %s", config.beatdowns_collection)
    return Backends(
        store=FirestoreBeatdownStore(client, config.beatdowns_collection),
        webhook_log=FirestoreWebhookLog(client, config.webhook_log_collection),
        cities=FirestoreCityStore(client, config.cities_collection),
    )


def run_beatdown_sync(
    *,
    fetcher: UpstreamFetcher | None = None,
    store: BeatdownStore | None = None,
    dry_run: bool = False,
    cleanup: bool = True,
    only_cleanup: bool = False,
    sync_config: SyncConfig | None = None,
) -> SyncBeatdownsResult:
    """Synchronise the beatdown collection using the configured adapters."""

    config = sync_config or get_sync_config()
    effective_fetcher = fetcher or F3NationFetcher(config=get_f3nation_config())
    effective_store = store or build_backends().store
    options = SyncOptions(
        dry_run=dry_run,
        cleanup=cleanup,
        only_cleanup=only_cleanup,
        batch_size=config.write_batch_size,
        missing_location_fetch_limit=config.missing_location_fetch_limit,
    )
    log.info(
        "Starting beatdown sync: dry_run=%s, cleanup=%s, only_cleanup=%s",
        dry_run,
        cleanup,
        only_cleanup,
    )
    return sync_beatdowns(fetcher=effective_fetcher, store=effective_store, options=options)


def run_location_analysis(
    *,
    fetcher: UpstreamFetcher | None = None,
    store: BeatdownStore | None = None,
) -> LocationAnalysis:
    effective_fetcher = fetcher or F3NationFetcher(config=get_f3nation_config())
    return analyze_beatdown_locations(
        fetcher=effective_fetcher,
        store=store or build_backends().store,
    )


def process_webhook(
    payload: Mapping[str, object],
    *,
    fetcher: UpstreamFetcher | None = None,
    backends: Backends | None = None,
    sync_config: SyncConfig | None = None,
) -> WebhookResult:
    """Handle one webhook delivery end to end, logging it with its outcome.

    The default fetcher reads its API configuration on first use, so a missing
    credential fails the delivery and leaves it in the log for replay.
    """

    config = sync_config or get_sync_config()
    effective = backends or build_backends()
    return handle_webhook(
        payload,
        parse=parse_webhook_notification,
        fetcher=fetcher or F3NationFetcher(),
        store=effective.store,
        webhook_log=effective.webhook_log,
        writer=BatchWriter(effective.store, batch_size=config.write_batch_size),
    )


def replay_webhooks(
    *,
    fetcher: UpstreamFetcher | None = None,
    backends: Backends | None = None,
) -> ReplaySummary:
    effective_fetcher = fetcher or F3NationFetcher(config=get_f3nation_config())
    effective = backends or build_backends()
    return replay_failed_webhooks(
        parse=parse_webhook_notification,
        fetcher=effective_fetcher,
        store=effective.store,
        webhook_log=effective.webhook_log,
    )


def run_city_rebuild(
    *,
    backends: Backends | None = None,
    dry_run: bool = False,
    sync_config: SyncConfig | None = None,
) -> RebuildCitiesResult:
    """Rebuild the cities collection from the stored beatdowns."""

    config = sync_config or get_sync_config()
    effective = backends or build_backends()
    return rebuild_cities(
        store=effective.store,
        city_store=effective.cities,
        dry_run=dry_run,
        batch_size=config.write_batch_size,
    )
