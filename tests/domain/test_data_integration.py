from __future__ import annotations

import logging

import pytest

from beatsync.domain.data_integration import (
    SyncOptions,
    analyze_beatdown_locations,
    sync_beatdowns,
)
from beatsync.domain.ports.fetching import UpstreamError
from beatsync.domain.sync import IdScheme, derive_id, normalize
from tests.helpers.beatdowns import (
    FIXED_NOW,
    FakeBeatdownStore,
    FakeUpstreamFetcher,
    fixed_clock,
    make_event,
    make_location,
    stored_document,
)

CURRENT_ID = "river-city_gauntlet_monday_9"


def test_sync_inserts_new_beatdowns() -> None:
    store = FakeBeatdownStore()
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()])

    result = sync_beatdowns(fetcher=fetcher, store=store, clock=fixed_clock)

    assert result.diagnostics.inserted == 1
    assert result.commit.written == 1
    assert store.documents[CURRENT_ID]["timeString"] == "5:30 am - 6:15 am"
    assert store.documents[CURRENT_ID]["lastUpdated"] == FIXED_NOW


def test_sync_is_idempotent() -> None:
    store = FakeBeatdownStore()
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()])

    sync_beatdowns(fetcher=fetcher, store=store, clock=fixed_clock)
    second = sync_beatdowns(fetcher=fetcher, store=store, clock=fixed_clock)

    assert second.plan.is_empty
    assert second.commit.groups == 0
    assert len(store.groups) == 1


def test_dry_run_writes_nothing() -> None:
    store = FakeBeatdownStore({"stale": {"name": "Stale"}})
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()])

    result = sync_beatdowns(
        fetcher=fetcher, store=store, options=SyncOptions(dry_run=True)
    )

    assert result.dry_run
    assert result.diagnostics.inserted == 1
    assert result.plan.to_soft_delete == ["stale"]
    assert store.groups == []


def test_no_cleanup_skips_soft_deletes() -> None:
    store = FakeBeatdownStore({"stale": {"name": "Stale"}})
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()])

    result = sync_beatdowns(
        fetcher=fetcher, store=store, options=SyncOptions(cleanup=False), clock=fixed_clock
    )

    assert result.commit.soft_deleted == 0
    assert "deleted" not in store.documents["stale"]
    assert CURRENT_ID in store.documents


def test_only_cleanup_skips_upserts() -> None:
    store = FakeBeatdownStore({"stale": {"name": "Stale"}})
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()])

    result = sync_beatdowns(
        fetcher=fetcher,
        store=store,
        options=SyncOptions(cleanup=False, only_cleanup=True),
        clock=fixed_clock,
    )

    assert result.commit.written == 0
    assert result.commit.soft_deleted == 1
    assert CURRENT_ID not in store.documents
    assert store.documents["stale"]["deleted"] is True


def test_migration_moves_legacy_document() -> None:
    record = normalize(make_location(), make_event())
    legacy = derive_id(record, IdScheme.LEGACY)
    store = FakeBeatdownStore({legacy: stored_document(record)})
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()])

    result = sync_beatdowns(fetcher=fetcher, store=store, clock=fixed_clock)

    assert result.plan.migrated_count == 1
    assert store.documents[CURRENT_ID]["deleted"] is False
    assert store.documents[legacy]["deleted"] is True


def test_missing_locations_are_backfilled_individually() -> None:
    fetcher = FakeUpstreamFetcher(
        [make_event(location_id=5), make_event(10, location_id=6)],
        [make_location(5)],
        unlisted_locations=[make_location(6)],
    )
    store = FakeBeatdownStore()

    result = sync_beatdowns(fetcher=fetcher, store=store, clock=fixed_clock)

    assert ("location", 6) in fetcher.calls
    assert result.diagnostics.inserted == 2
    assert result.diagnostics.missing_locations == 0


def test_backfill_is_limited_and_tolerates_not_found() -> None:
    events = [make_event(index, location_id=100 + index) for index in range(4)]
    fetcher = FakeUpstreamFetcher(events, [])

    result = sync_beatdowns(
        fetcher=fetcher,
        store=FakeBeatdownStore(),
        options=SyncOptions(missing_location_fetch_limit=2),
    )

    assert [call for call in fetcher.calls if call[0] == "location"] == [
        ("location", 100),
        ("location", 101),
    ]
    assert result.diagnostics.missing_locations == 4


def test_upstream_failure_aborts_before_any_write() -> None:
    store = FakeBeatdownStore({"kept": {"name": "Kept"}})
    fetcher = FakeUpstreamFetcher(error=UpstreamError("boom"))

    with pytest.raises(UpstreamError):
        sync_beatdowns(fetcher=fetcher, store=store)

    assert store.groups == []
    assert "deleted" not in store.documents["kept"]


def test_summary_is_logged_when_a_group_fails(caplog: pytest.LogCaptureFixture) -> None:
    store = FakeBeatdownStore(fail_on_group=2)
    events = [make_event(index) for index in range(3)]
    fetcher = FakeUpstreamFetcher(events, [make_location()])

    with caplog.at_level(logging.INFO), pytest.raises(RuntimeError):
        sync_beatdowns(
            fetcher=fetcher, store=store, options=SyncOptions(batch_size=2), clock=fixed_clock
        )

    assert "Planned changes: inserted=3" in caplog.text
    assert "Committed 1 groups: written=2" in caplog.text


def test_analyze_reports_location_changes() -> None:
    record = normalize(make_location(), make_event())
    store = FakeBeatdownStore(
        {derive_id(record): stored_document(record), "old": {"locationId": 2}}
    )
    fetcher = FakeUpstreamFetcher([make_event(), make_event(11, location_id=8)], [])

    analysis = analyze_beatdown_locations(fetcher=fetcher, store=store)

    assert analysis.added == (8,)
    assert analysis.deleted == (2,)


def test_only_cleanup_keeps_legacy_document_whose_migration_is_skipped() -> None:
    record = normalize(make_location(), make_event())
    legacy = derive_id(record, IdScheme.LEGACY)
    store = FakeBeatdownStore({legacy: stored_document(record), "stale": {"name": "Stale"}})
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()])

    result = sync_beatdowns(
        fetcher=fetcher,
        store=store,
        options=SyncOptions(only_cleanup=True),
        clock=fixed_clock,
    )

    assert result.plan.to_soft_delete == [legacy, "stale"]
    assert result.soft_deletes == ["stale"]
    assert result.commit.written == 0
    assert result.commit.soft_deleted == 1
    assert CURRENT_ID not in store.documents
    assert store.documents[legacy]["deleted"] is False
    assert store.documents["stale"]["deleted"] is True


def test_rejected_upstream_events_count_as_invalid() -> None:
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()], rejected_events=2)

    result = sync_beatdowns(fetcher=fetcher, store=FakeBeatdownStore(), clock=fixed_clock)

    assert result.diagnostics.invalid == 2
    assert result.diagnostics.inserted == 1


def test_summary_separates_planned_and_selected_writes(
    caplog: pytest.LogCaptureFixture,
) -> None:
    store = FakeBeatdownStore({"stale": {"name": "Stale"}})
    fetcher = FakeUpstreamFetcher([make_event()], [make_location()])

    with caplog.at_level(logging.INFO):
        result = sync_beatdowns(
            fetcher=fetcher, store=store, options=SyncOptions(cleanup=False), clock=fixed_clock
        )

    assert result.plan.to_soft_delete == ["stale"]
    assert result.soft_deletes == []
    assert "Planned changes: inserted=1" in caplog.text
    assert "Selected writes: upserts=1, soft_deletes=0" in caplog.text
    assert "Committed 1 groups: written=1, soft_deleted=0" in caplog.text
