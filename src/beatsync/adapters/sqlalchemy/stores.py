"""Beatdown, city and webhook log stores backed by SQLAlchemy sessions."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, cast

from sqlalchemy import delete, insert, select, update

from beatsync.domain.cities import BEATDOWN_COUNT, CITY, NORMALIZED_KEY, REGIONS, UPDATED_AT
from beatsync.domain.model import LAT, LONG, StoredBeatdown
from beatsync.domain.ports.persistence import SoftDeleteWrite, UpsertWrite
from beatsync.domain.webhooks import WebhookLogEntry, WebhookOutcome

from . import engine as adapter_engine
from .tables import (
    COLUMN_BY_KEY,
    KEY_BY_COLUMN,
    beatdown_table,
    city_table,
    webhook_log_table,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from sqlalchemy import RowMapping, Select
    from sqlalchemy.orm import Session, sessionmaker

    from beatsync.domain.ports.persistence import (
        BeatdownStore,
        BeatdownWrite,
        CityStore,
        CityWrite,
        WebhookLog,
    )


def _to_stored(row: RowMapping) -> StoredBeatdown:
    fields = {KEY_BY_COLUMN[column]: value for column, value in row.items() if column != "doc_id"}
    return StoredBeatdown(doc_id=cast("str", row["doc_id"]), fields=fields)


def _column_values(document: Mapping[str, object], *, complete: bool) -> dict[str, object]:
    values = {
        column: document[key] for key, column in COLUMN_BY_KEY.items() if key in document
    }
    if complete:
        for column in COLUMN_BY_KEY.values():
            values.setdefault(column, None)
    return values


class SqlAlchemyBeatdownStore:
    """Local mirror of the beatdown collection; one transaction per write group."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory = session_factory or adapter_engine.session_factory()

    def load_all(self) -> dict[str, StoredBeatdown]:
        return self._select(select(beatdown_table))

    def find(
        self, *, event_id: int | None = None, location_id: int | None = None
    ) -> dict[str, StoredBeatdown]:
        if event_id is None and location_id is None:
            raise ValueError("find() needs an event_id or a location_id")
        stmt = select(beatdown_table)
        if event_id is not None:
            stmt = stmt.where(beatdown_table.c.event_id == event_id)
        if location_id is not None:
            stmt = stmt.where(beatdown_table.c.location_id == location_id)
        return self._select(stmt)

    def get_many(self, doc_ids: Iterable[str]) -> dict[str, StoredBeatdown]:
        ids = list(doc_ids)
        if not ids:
            return {}
        return self._select(select(beatdown_table).where(beatdown_table.c.doc_id.in_(ids)))

    def write_batch(self, writes: Sequence[BeatdownWrite]) -> None:
        with self.session_factory.begin() as session:
            for write in writes:
                match write:
                    case UpsertWrite(doc_id=doc_id, document=document):
                        self._save(session, doc_id, _column_values(document, complete=True))
                    case SoftDeleteWrite(doc_id=doc_id, markers=markers):
                        self._save(session, doc_id, _column_values(markers, complete=False))

    def _select(self, stmt: Select[tuple[object, ...]]) -> dict[str, StoredBeatdown]:
        with self.session_factory() as session:
            rows = session.execute(stmt).mappings().all()
        return {cast("str", row["doc_id"]): _to_stored(row) for row in rows}

    @staticmethod
    def _save(session: Session, doc_id: str, values: dict[str, object]) -> None:
        exists = session.execute(
            select(beatdown_table.c.doc_id).where(beatdown_table.c.doc_id == doc_id)
        ).first()
        if exists is None:
            session.execute(insert(beatdown_table).values(doc_id=doc_id, **values))
        else:
            session.execute(
                update(beatdown_table).where(beatdown_table.c.doc_id == doc_id).values(**values)
            )


class SqlAlchemyCityStore:
    """Aggregated cities stored in the ``city`` table."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory = session_factory or adapter_engine.session_factory()

    def write_batch(self, writes: Sequence[CityWrite]) -> None:
        with self.session_factory.begin() as session:
            for write in writes:
                document = write.document
                values = {
                    "city": document[CITY],
                    "normalized_key": document[NORMALIZED_KEY],
                    "lat": document.get(LAT),
                    "long": document.get(LONG),
                    "regions": list(cast("list[str]", document.get(REGIONS, []))),
                    "beatdown_count": document[BEATDOWN_COUNT],
                    "updated_at": document.get(UPDATED_AT),
                }
                session.execute(delete(city_table).where(city_table.c.doc_id == write.doc_id))
                session.execute(insert(city_table).values(doc_id=write.doc_id, **values))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyWebhookLog:
    """Webhook deliveries stored in the ``webhook_log`` table."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session_factory = session_factory or adapter_engine.session_factory()
        self._clock = clock

    def record(self, entry: WebhookLogEntry) -> str:
        entry_id = str(uuid.uuid4())
        with self.session_factory.begin() as session:
            session.execute(
                insert(webhook_log_table).values(
                    id=entry_id,
                    received_at=entry.received_at,
                    action=entry.action,
                    channel=entry.channel,
                    outcome=str(entry.outcome),
                    detail=entry.detail,
                    payload=dict(entry.payload),
                )
            )
        return entry_id

    def failed(self) -> list[WebhookLogEntry]:
        stmt = (
            select(webhook_log_table)
            .where(webhook_log_table.c.outcome == str(WebhookOutcome.FAILED))
            .order_by(webhook_log_table.c.received_at)
        )
        with self.session_factory() as session:
            rows = session.execute(stmt).mappings().all()
        return [
            WebhookLogEntry(
                entry_id=row["id"],
                received_at=row["received_at"],
                payload=row["payload"],
                outcome=WebhookOutcome(row["outcome"]),
                action=row["action"],
                channel=row["channel"],
                detail=row["detail"],
            )
            for row in rows
        ]

    def resolve(self, entry_id: str, outcome: WebhookOutcome, detail: str | None = None) -> None:
        with self.session_factory.begin() as session:
            session.execute(
                update(webhook_log_table)
                .where(webhook_log_table.c.id == entry_id)
                .values(outcome=str(outcome), detail=detail, resolved_at=self._clock())
            )


if TYPE_CHECKING:
    _store_check: BeatdownStore = SqlAlchemyBeatdownStore()
    _log_check: WebhookLog = SqlAlchemyWebhookLog()
    _city_check: CityStore = SqlAlchemyCityStore()
