from __future__ import annotations

import pytest

from beatsync.domain.ports.persistence import SoftDeleteWrite, UpsertWrite
from beatsync.domain.sync import BatchWriter, CommitResult, PlannedUpsert, WriteAction, normalize
from beatsync.domain.sync.batching import MAX_WRITE_BATCH_SIZE
from tests.helpers.beatdowns import (
    FIXED_NOW,
    FakeBeatdownStore,
    fixed_clock,
    make_event,
    make_location,
)


def _upserts(count: int) -> list[PlannedUpsert]:
    location = make_location()
    return [
        PlannedUpsert(
            doc_id=f"doc-{index}",
            record=normalize(location, make_event(index)),
            action=WriteAction.INSERT,
        )
        for index in range(count)
    ]


def test_writes_are_grouped_by_batch_size() -> None:
    store = FakeBeatdownStore()
    writer = BatchWriter(store, batch_size=500, clock=fixed_clock)

    result = writer.commit(_upserts(1200), [])

    assert [len(group) for group in store.groups] == [500, 500, 200]
    assert result == CommitResult(groups=3, written=1200, soft_deleted=0)


def test_upserts_carry_bookkeeping_fields() -> None:
    store = FakeBeatdownStore()

    BatchWriter(store, clock=fixed_clock).commit(_upserts(1), [])

    (write,) = store.writes
    assert isinstance(write, UpsertWrite)
    assert write.document["lastUpdated"] == FIXED_NOW
    assert write.document["deleted"] is False
    assert write.document["deletedAt"] is None
    assert write.document["eventId"] == 0
    geohash = write.document["geohash"]
    assert isinstance(geohash, str)
    assert len(geohash) == 12
    assert write.document["geohash_4"] == geohash[:4]
    assert write.document["geohash_6"] == geohash[:6]


def test_soft_deletes_only_merge_markers() -> None:
    store = FakeBeatdownStore({"old": {"name": "Old AO", "eventId": 3}})

    result = BatchWriter(store, clock=fixed_clock).commit([], ["old"])

    (write,) = store.writes
    assert isinstance(write, SoftDeleteWrite)
    assert write.markers == {"deleted": True, "deletedAt": FIXED_NOW, "lastUpdated": FIXED_NOW}
    assert store.documents["old"]["name"] == "Old AO"
    assert store.documents["old"]["deleted"] is True
    assert result.soft_deleted == 1


def test_failed_group_keeps_earlier_groups_and_partial_counts() -> None:
    store = FakeBeatdownStore(fail_on_group=2)
    progress = CommitResult()

    with pytest.raises(RuntimeError):
        BatchWriter(store, batch_size=2, clock=fixed_clock).commit(
            _upserts(5), [], result=progress
        )

    assert len(store.groups) == 1
    assert progress == CommitResult(groups=1, written=2, soft_deleted=0)


def test_nothing_to_write_commits_no_groups() -> None:
    store = FakeBeatdownStore()

    result = BatchWriter(store).commit([], [])

    assert store.groups == []
    assert result.groups == 0


@pytest.mark.parametrize("size", [0, MAX_WRITE_BATCH_SIZE + 1])
def test_batch_size_is_bounded(size: int) -> None:
    with pytest.raises(ValueError, match="batch_size"):
        BatchWriter(FakeBeatdownStore(), batch_size=size)
