"""Domain entities for synchronised beatdown records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

# Storage document keys. The collection predates this package, so the camelCase
# names are part of the contract with the companion app.
DAY_OF_WEEK: Final = "dayOfWeek"
TIME_STRING: Final = "timeString"
TYPE: Final = "type"
REGION: Final = "region"
WEBSITE: Final = "website"
NOTES: Final = "notes"
NAME: Final = "name"
ADDRESS: Final = "address"
LAT: Final = "lat"
LONG: Final = "long"
LOCATION_ID: Final = "locationId"
EVENT_ID: Final = "eventId"
LAST_UPDATED: Final = "lastUpdated"
DELETED: Final = "deleted"
DELETED_AT: Final = "deletedAt"
GEOHASH: Final = "geohash"
GEOHASH_4: Final = "geohash_4"
GEOHASH_5: Final = "geohash_5"
GEOHASH_6: Final = "geohash_6"

TEXT_FIELDS: Final[tuple[str, ...]] = (
    DAY_OF_WEEK,
    TIME_STRING,
    TYPE,
    REGION,
    WEBSITE,
    NOTES,
    NAME,
    ADDRESS,
)
COORDINATE_FIELDS: Final[tuple[str, str]] = (LAT, LONG)
IDENTITY_FIELDS: Final[tuple[str, str]] = (LOCATION_ID, EVENT_ID)
# Derived from the coordinates; the companion app queries nearby workouts by prefix.
GEOHASH_FIELDS: Final[tuple[str, ...]] = (GEOHASH, GEOHASH_4, GEOHASH_5, GEOHASH_6)


@dataclass(frozen=True, slots=True, kw_only=True)
class Beatdown:
    """One scheduled workout, flattened from an upstream (location, event) pair."""

    day_of_week: str
    time_string: str
    type: str
    region: str
    website: str
    notes: str
    name: str
    address: str
    lat: float
    long: float
    location_id: int
    event_id: int

    def to_document(self) -> dict[str, object]:
        return {
            DAY_OF_WEEK: self.day_of_week,
            TIME_STRING: self.time_string,
            TYPE: self.type,
            REGION: self.region,
            WEBSITE: self.website,
            NOTES: self.notes,
            NAME: self.name,
            ADDRESS: self.address,
            LAT: self.lat,
            LONG: self.long,
            LOCATION_ID: self.location_id,
            EVENT_ID: self.event_id,
        }


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    return None


@dataclass(frozen=True, slots=True)
class StoredBeatdown:
    """A document as read back from storage.

    ``fields`` keeps the raw document: older documents may lack keys, carry
    nulls, or hold values of an unexpected type.
    """

    doc_id: str
    fields: Mapping[str, object] = field(default_factory=dict)

    def get(self, key: str) -> object:
        return self.fields.get(key)

    @property
    def event_id(self) -> int | None:
        return _as_int(self.fields.get(EVENT_ID))

    @property
    def location_id(self) -> int | None:
        return _as_int(self.fields.get(LOCATION_ID))

    @property
    def last_updated(self) -> datetime | None:
        return _as_datetime(self.fields.get(LAST_UPDATED))

    @property
    def deleted(self) -> bool:
        return self.fields.get(DELETED) is True

    @property
    def deleted_at(self) -> datetime | None:
        return _as_datetime(self.fields.get(DELETED_AT))


@dataclass(frozen=True, slots=True, kw_only=True)
class UpstreamLocation:
    """Location entity as published by the upstream API."""

    id: int
    location_name: str | None = None
    region_name: str | None = None
    is_active: bool = True
    latitude: float | None = None
    longitude: float | None = None
    address_street: str | None = None
    address_street2: str | None = None
    address_city: str | None = None
    address_state: str | None = None
    address_zip: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class UpstreamEvent:
    """Event entity as published by the upstream API.

    ``regions`` and ``event_types`` hold display names in upstream order;
    ``location`` is the composed address string the API sometimes provides.
    """

    id: int
    location_id: int
    name: str | None = None
    description: str | None = None
    is_active: bool = True
    day_of_week: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    regions: tuple[str, ...] = ()
    event_types: tuple[str, ...] = ()
    location: str | None = None
    location_name: str | None = None
    location_address: str | None = None
    location_address2: str | None = None
    location_city: str | None = None
    location_state: str | None = None
    location_zip: str | None = None
