"""Firestore-backed persistence for beatdowns and webhook deliveries."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, cast

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from beatsync.domain.model import EVENT_ID, LOCATION_ID, StoredBeatdown
from beatsync.domain.ports.persistence import (
    BeatdownStore,
    CityStore,
    SoftDeleteWrite,
    UpsertWrite,
    WebhookLog,
)
from beatsync.domain.webhooks import WebhookLogEntry, WebhookOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from google.cloud.firestore_v1.base_document import DocumentSnapshot

    from beatsync.config.firestore import FirestoreConfig
    from beatsync.domain.ports.persistence import BeatdownWrite, CityWrite

log = getLogger(__name__)

# Document keys of the webhook log collection.
RECEIVED_AT = "receivedAt"
ACTION = "action"
CHANNEL = "channel"
OUTCOME = "outcome"
DETAIL = "detail"
PAYLOAD = "payload"
RESOLVED_AT = "resolvedAt"


def build_firestore_client(config: FirestoreConfig) -> firestore.Client:
    """Create a client from explicit service-account credentials or the ambient ones."""

    if config.credentials_path:
        credentials = service_account.Credentials.from_service_account_file(
            config.credentials_path
        )
        project = config.project_id or credentials.project_id
        return firestore.Client(project=project, credentials=credentials)
    return firestore.Client(project=config.project_id)


def _to_stored(snapshot: DocumentSnapshot) -> StoredBeatdown:
    return StoredBeatdown(doc_id=snapshot.id, fields=snapshot.to_dict() or {})


class FirestoreBeatdownStore:
    """Beatdown collection stored in Cloud Firestore."""

    def __init__(self, client: firestore.Client, collection: str = "beatdowns") -> None:
        self._client = client
        self._collection = client.collection(collection)

    def load_all(self) -> dict[str, StoredBeatdown]:
        return {snapshot.id: _to_stored(snapshot) for snapshot in self._collection.stream()}

    def find(
        self, *, event_id: int | None = None, location_id: int | None = None
    ) -> dict[str, StoredBeatdown]:
        if event_id is None and location_id is None:
            raise ValueError("find() needs an event_id or a location_id")
        query = self._collection
        if event_id is not None:
            query = query.where(filter=FieldFilter(EVENT_ID, "==", event_id))
        if location_id is not None:
            query = query.where(filter=FieldFilter(LOCATION_ID, "==", location_id))
        return {snapshot.id: _to_stored(snapshot) for snapshot in query.stream()}

    def get_many(self, doc_ids: Iterable[str]) -> dict[str, StoredBeatdown]:
        references = [self._collection.document(doc_id) for doc_id in doc_ids]
        if not references:
            return {}
        return {
            snapshot.id: _to_stored(snapshot)
            for snapshot in self._client.get_all(references)
            if snapshot.exists
        }

    def write_batch(self, writes: Sequence[BeatdownWrite]) -> None:
        batch = self._client.batch()
        for write in writes:
            reference = self._collection.document(write.doc_id)
            match write:
                case UpsertWrite(document=document):
                    batch.set(reference, dict(document), merge=True)
                case SoftDeleteWrite(markers=markers):
                    batch.set(reference, dict(markers), merge=True)
        batch.commit()
        log.debug(f"Committed {len(writes)} writes to {self._collection.id}")


class FirestoreCityStore:
    """Aggregated city documents stored in Cloud Firestore."""

    def __init__(self, client: firestore.Client, collection: str = "cities") -> None:
        self._client = client
        self._collection = client.collection(collection)

    def write_batch(self, writes: Sequence[CityWrite]) -> None:
        batch = self._client.batch()
        for write in writes:
            batch.set(self._collection.document(write.doc_id), dict(write.document))
        batch.commit()


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_entry(snapshot: DocumentSnapshot) -> WebhookLogEntry:
    data = snapshot.to_dict() or {}
    payload = data.get(PAYLOAD)
    return WebhookLogEntry(
        entry_id=snapshot.id,
        received_at=cast("datetime", data.get(RECEIVED_AT)),
        payload=cast("Mapping[str, object]", payload) if isinstance(payload, dict) else {},
        outcome=WebhookOutcome(str(data.get(OUTCOME, WebhookOutcome.FAILED))),
        action=cast("str | None", data.get(ACTION)),
        channel=cast("str | None", data.get(CHANNEL)),
        detail=cast("str | None", data.get(DETAIL)),
    )


class FirestoreWebhookLog:
    """Webhook deliveries stored in Cloud Firestore, one document each."""

    def __init__(
        self,
        client: firestore.Client,
        collection: str = "webhookLogs",
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._collection = client.collection(collection)
        self._clock = clock

    def record(self, entry: WebhookLogEntry) -> str:
        reference = self._collection.document()
        reference.set(
            {
                RECEIVED_AT: entry.received_at,
                ACTION: entry.action,
                CHANNEL: entry.channel,
                OUTCOME: str(entry.outcome),
                DETAIL: entry.detail,
                PAYLOAD: dict(entry.payload),
            }
        )
        return reference.id

    def failed(self) -> list[WebhookLogEntry]:
        query = self._collection.where(
            filter=FieldFilter(OUTCOME, "==", str(WebhookOutcome.FAILED))
        )
        entries = [_to_entry(snapshot) for snapshot in query.stream()]
        return sorted(entries, key=lambda entry: entry.received_at)

    def resolve(self, entry_id: str, outcome: WebhookOutcome, detail: str | None = None) -> None:
        self._collection.document(entry_id).update(
            {OUTCOME: str(outcome), DETAIL: detail, RESOLVED_AT: self._clock()}
        )


if TYPE_CHECKING:
    _store_check: BeatdownStore = FirestoreBeatdownStore(cast("firestore.Client", None))
    _log_check: WebhookLog = FirestoreWebhookLog(cast("firestore.Client", None))
    _city_check: CityStore = FirestoreCityStore(cast("firestore.Client", None))
