"""SQLAlchemy table metadata for the local beatdown mirror."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

from beatsync.domain.model import (
    ADDRESS,
    DAY_OF_WEEK,
    DELETED,
    DELETED_AT,
    EVENT_ID,
    GEOHASH,
    GEOHASH_4,
    GEOHASH_5,
    GEOHASH_6,
    LAST_UPDATED,
    LAT,
    LOCATION_ID,
    LONG,
    NAME,
    NOTES,
    REGION,
    TIME_STRING,
    TYPE,
    WEBSITE,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

metadata = MetaData()


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


beatdown_table = Table(
    "beatdown",
    metadata,
    Column("doc_id", String(255), primary_key=True),
    Column("day_of_week", String(32)),
    Column("time_string", String(64)),
    Column("type", String(255)),
    Column("region", String(255)),
    Column("website", Text),
    Column("notes", Text),
    Column("name", String(255)),
    Column("address", Text),
    Column("lat", Float),
    Column("long", Float),
    Column("location_id", Integer, index=True),
    Column("event_id", Integer, index=True),
    Column("geohash", String(12)),
    Column("geohash_4", String(4), index=True),
    Column("geohash_5", String(5)),
    Column("geohash_6", String(6)),
    Column("last_updated", UTCDateTime),
    Column("deleted", Boolean),
    Column("deleted_at", UTCDateTime),
)

city_table = Table(
    "city",
    metadata,
    Column("doc_id", String(255), primary_key=True),
    Column("city", String(255), nullable=False),
    Column("normalized_key", String(255), nullable=False, unique=True),
    Column("lat", Float),
    Column("long", Float),
    Column("regions", JSON, nullable=False),
    Column("beatdown_count", Integer, nullable=False),
    Column("updated_at", UTCDateTime),
)

webhook_log_table = Table(
    "webhook_log",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("received_at", UTCDateTime, nullable=False, index=True),
    Column("action", String(64)),
    Column("channel", String(64)),
    Column("outcome", String(16), nullable=False, index=True),
    Column("detail", Text),
    Column("payload", JSON, nullable=False),
    Column("resolved_at", UTCDateTime),
)

# Document key -> beatdown column.
COLUMN_BY_KEY: Final[dict[str, str]] = {
    DAY_OF_WEEK: "day_of_week",
    TIME_STRING: "time_string",
    TYPE: "type",
    REGION: "region",
    WEBSITE: "website",
    NOTES: "notes",
    NAME: "name",
    ADDRESS: "address",
    LAT: "lat",
    LONG: "long",
    LOCATION_ID: "location_id",
    EVENT_ID: "event_id",
    GEOHASH: "geohash",
    GEOHASH_4: "geohash_4",
    GEOHASH_5: "geohash_5",
    GEOHASH_6: "geohash_6",
    LAST_UPDATED: "last_updated",
    DELETED: "deleted",
    DELETED_AT: "deleted_at",
}
KEY_BY_COLUMN: Final[dict[str, str]] = {column: key for key, column in COLUMN_BY_KEY.items()}


def create_all_tables(engine: Engine) -> None:
    metadata.create_all(engine)
    log.debug("Ensured tables: %s", ", ".join(sorted(metadata.tables)))
