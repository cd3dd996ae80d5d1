from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy import select
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.exc import StatementError

from beatsync.adapters.sqlalchemy import (
    SqlAlchemyBeatdownStore,
    SqlAlchemyCityStore,
    SqlAlchemyWebhookLog,
    StartupError,
    city_table,
    startup,
)
from beatsync.domain.data_integration import sync_beatdowns
from beatsync.domain.ports.persistence import CityWrite, SoftDeleteWrite, UpsertWrite
from beatsync.domain.sync import normalize
from beatsync.domain.webhooks import WebhookLogEntry, WebhookOutcome
from tests.helpers.beatdowns import (
    FIXED_NOW,
    FakeUpstreamFetcher,
    fixed_clock,
    make_event,
    make_location,
    stored_document,
)

NOW = datetime(2025, 3, 2, 8, 0, tzinfo=UTC)


def test_upsert_round_trips_document(sqlalchemy_adapter: Engine) -> None:
    _ = sqlalchemy_adapter
    store = SqlAlchemyBeatdownStore()
    record = normalize(make_location(), make_event())

    store.write_batch([UpsertWrite("doc", stored_document(record))])
    (stored,) = store.load_all().values()

    assert stored.doc_id == "doc"
    assert stored.event_id == 9
    assert stored.last_updated == FIXED_NOW
    assert stored.deleted is False
    assert stored.get("timeString") == "5:30 am - 6:15 am"


def test_soft_delete_keeps_content(sqlalchemy_adapter: Engine) -> None:
    _ = sqlalchemy_adapter
    store = SqlAlchemyBeatdownStore()
    record = normalize(make_location(), make_event())
    store.write_batch([UpsertWrite("doc", stored_document(record))])

    store.write_batch(
        [SoftDeleteWrite("doc", {"deleted": True, "deletedAt": NOW, "lastUpdated": NOW})]
    )

    stored = store.get_many(["doc"])["doc"]
    assert stored.deleted is True
    assert stored.deleted_at == NOW
    assert stored.get("name") == "Gauntlet"


def test_find_filters_by_event_and_location(sqlalchemy_adapter: Engine) -> None:
    _ = sqlalchemy_adapter
    store = SqlAlchemyBeatdownStore()
    location = make_location()
    store.write_batch(
        [
            UpsertWrite("a", stored_document(normalize(location, make_event(9)))),
            UpsertWrite("b", stored_document(normalize(location, make_event(10)))),
        ]
    )

    assert set(store.find(event_id=10)) == {"b"}
    assert set(store.find(location_id=5)) == {"a", "b"}
    assert store.get_many([]) == {}
    with pytest.raises(ValueError, match="event_id or a location_id"):
        store.find()


def test_failed_group_rolls_back(sqlalchemy_adapter: Engine) -> None:
    _ = sqlalchemy_adapter
    store = SqlAlchemyBeatdownStore()

    with pytest.raises(StatementError):
        store.write_batch(
            [
                UpsertWrite("ok", {"name": "fine"}),
                UpsertWrite("bad", {"lat": object()}),
            ]
        )

    assert store.load_all() == {}


def test_full_sync_against_sqlite_is_idempotent(sqlalchemy_adapter: Engine) -> None:
    _ = sqlalchemy_adapter
    store = SqlAlchemyBeatdownStore()
    fetcher = FakeUpstreamFetcher(
        [make_event(), make_event(10, name="Sandbag")], [make_location()]
    )

    first = sync_beatdowns(fetcher=fetcher, store=store, clock=fixed_clock)
    second = sync_beatdowns(fetcher=fetcher, store=store, clock=fixed_clock)

    assert first.commit.written == 2
    assert second.plan.is_empty


def test_webhook_log_round_trip(sqlalchemy_adapter: Engine) -> None:
    _ = sqlalchemy_adapter
    log = SqlAlchemyWebhookLog(clock=lambda: NOW)
    entry = WebhookLogEntry(
        received_at=FIXED_NOW,
        payload={"action": "map.updated", "channel": "prod", "data": {"locationId": 5}},
        outcome=WebhookOutcome.FAILED,
        action="map.updated",
        channel="prod",
        detail="boom",
    )

    entry_id = log.record(entry)
    log.record(
        WebhookLogEntry(received_at=FIXED_NOW, payload={}, outcome=WebhookOutcome.IGNORED)
    )
    (failed,) = log.failed()
    log.resolve(entry_id, WebhookOutcome.PROCESSED, "ok")

    assert failed.entry_id == entry_id
    assert failed.received_at == FIXED_NOW
    assert failed.payload == entry.payload
    assert log.failed() == []


def test_startup_twice_requires_force(sqlalchemy_adapter: Engine) -> None:
    with pytest.raises(StartupError):
        startup(engine=sqlalchemy_adapter)


def test_city_store_replaces_documents(sqlalchemy_adapter: Engine) -> None:
    store = SqlAlchemyCityStore()
    document: dict[str, object] = {
        "city": "Jacksonville, FL",
        "normalizedKey": "jacksonville, fl",
        "lat": 30.1,
        "long": -81.6,
        "regions": ["River City"],
        "beatdownCount": 1,
        "updatedAt": NOW,
    }

    store.write_batch([CityWrite("jacksonville, fl", document)])
    store.write_batch(
        [
            CityWrite(
                "jacksonville, fl",
                {**document, "regions": ["Beaches", "River City"], "beatdownCount": 3},
            )
        ]
    )

    with sqlalchemy_adapter.connect() as connection:
        rows = connection.execute(select(city_table)).mappings().all()
    assert len(rows) == 1
    assert rows[0]["regions"] == ["Beaches", "River City"]
    assert rows[0]["beatdown_count"] == 3
