"""Aggregate the beatdown collection into one document per city.

The companion app lists cities with their regions and workout counts. The
city of a beatdown is taken from its address, so beatdowns whose address has
no recognisable city are left out.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from itertools import batched
from typing import TYPE_CHECKING, Final

from beatsync.domain.model import ADDRESS, LAT, LONG, REGION
from beatsync.domain.ports.persistence import CityWrite
from beatsync.domain.sync.batching import MAX_WRITE_BATCH_SIZE
from beatsync.domain.sync.changes import parse_coordinate

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from beatsync.domain.model import StoredBeatdown
    from beatsync.domain.ports.persistence import BeatdownStore, CityStore

log = logging.getLogger(__name__)

UNKNOWN_CITY: Final = "Unknown Location"
MAX_DOCUMENT_ID_LENGTH: Final = 1500

# City document keys.
CITY: Final = "city"
NORMALIZED_KEY: Final = "normalizedKey"
REGIONS: Final = "regions"
BEATDOWN_COUNT: Final = "beatdownCount"
UPDATED_AT: Final = "updatedAt"

_INVALID_ID_CHARS = re.compile(r"[/\\?#\[\]]")


def extract_city(address: str | None) -> str:
    """Return ``"City, ST"`` from the last two comma-separated address parts."""

    if not address:
        return UNKNOWN_CITY
    parts = [part.strip() for part in address.split(",") if part.strip()]
    if len(parts) >= 2:
        return f"{parts[-2]}, {parts[-1]}"
    if parts:
        return parts[0]
    return address


def normalize_city_key(value: str | None) -> str:
    return " ".join((value or "").lower().split())


def city_document_id(key: str) -> str:
    return _INVALID_ID_CHARS.sub("_", key)[:MAX_DOCUMENT_ID_LENGTH] or "unknown"


@dataclass(slots=True)
class City:
    doc_id: str
    city: str
    normalized_key: str
    lat: float | None = None
    long: float | None = None
    regions: set[str] = field(default_factory=set[str])
    beatdown_count: int = 0

    def to_document(self, updated_at: datetime) -> dict[str, object]:
        return {
            CITY: self.city,
            NORMALIZED_KEY: self.normalized_key,
            LAT: self.lat,
            LONG: self.long,
            REGIONS: sorted(self.regions),
            BEATDOWN_COUNT: self.beatdown_count,
            UPDATED_AT: updated_at,
        }


@dataclass(slots=True)
class CityAggregation:
    cities: list[City] = field(default_factory=list[City])
    skipped: int = 0


def aggregate_cities(stored: Mapping[str, StoredBeatdown]) -> CityAggregation:
    """Group live beatdowns by city.

    Soft-deleted beatdowns are not counted. A city takes its coordinates from
    the first beatdown (by document id) that has usable ones.
    """

    by_key: dict[str, City] = {}
    skipped = 0
    for doc_id in sorted(stored):
        record = stored[doc_id]
        if record.deleted:
            continue
        address = record.get(ADDRESS)
        city_name = extract_city(address if isinstance(address, str) else None)
        key = normalize_city_key(city_name)
        if not key or key == normalize_city_key(UNKNOWN_CITY):
            skipped += 1
            continue

        city = by_key.get(key)
        if city is None:
            city = by_key[key] = City(
                doc_id=city_document_id(key), city=city_name, normalized_key=key
            )
        city.beatdown_count += 1
        region = record.get(REGION)
        if isinstance(region, str) and region.strip():
            city.regions.add(region)
        if city.lat is None or city.long is None:
            lat, long = parse_coordinate(record.get(LAT)), parse_coordinate(record.get(LONG))
            if lat is not None and long is not None:
                city.lat, city.long = lat, long

    return CityAggregation(cities=list(by_key.values()), skipped=skipped)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class RebuildCitiesResult:
    aggregation: CityAggregation
    dry_run: bool = False
    groups: int = 0
    written: int = 0


def rebuild_cities(
    *,
    store: BeatdownStore,
    city_store: CityStore,
    dry_run: bool = False,
    batch_size: int = MAX_WRITE_BATCH_SIZE,
    clock: Callable[[], datetime] = _utcnow,
) -> RebuildCitiesResult:
    """Recompute every city document from the stored beatdowns and write them."""

    if not 0 < batch_size <= MAX_WRITE_BATCH_SIZE:
        raise ValueError(
            f"batch_size must be between 1 and {MAX_WRITE_BATCH_SIZE}, got {batch_size}"
        )

    stored = store.load_all()
    aggregation = aggregate_cities(stored)
    result = RebuildCitiesResult(aggregation=aggregation, dry_run=dry_run)
    log.info(
        "Aggregated %s beatdowns into %s cities (%s without a city)",
        len(stored),
        len(aggregation.cities),
        aggregation.skipped,
    )
    if dry_run:
        log.info("[DRY RUN] Would write %s cities", len(aggregation.cities))
        return result

    now = clock()
    writes = [CityWrite(city.doc_id, city.to_document(now)) for city in aggregation.cities]
    groups = list(batched(writes, batch_size))
    for index, group in enumerate(groups, start=1):
        log.info("Writing city batch %s/%s (%s cities)", index, len(groups), len(group))
        city_store.write_batch(group)
        result.groups += 1
        result.written += len(group)
    return result
