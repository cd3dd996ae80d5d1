"""Pydantic models describing the F3 Nation API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class F3NationBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RegionPayload(F3NationBaseModel):
    region_id: int | None = Field(default=None, alias="regionId")
    region_name: str | None = Field(default=None, alias="regionName")


class EventTypePayload(F3NationBaseModel):
    event_type_id: int | None = Field(default=None, alias="eventTypeId")
    event_type_name: str | None = Field(default=None, alias="eventTypeName")


class EventPayload(F3NationBaseModel):
    id: int
    location_id: int = Field(alias="locationId")
    name: str | None = None
    description: str | None = None
    is_active: bool = Field(default=True, alias="isActive")
    day_of_week: str | None = Field(default=None, alias="dayOfWeek")
    start_time: str | None = Field(default=None, alias="startTime")
    end_time: str | None = Field(default=None, alias="endTime")
    regions: list[RegionPayload] = Field(default_factory=list)
    # Only populated when an event is fetched on its own.
    event_types: list[EventTypePayload] = Field(
        default_factory=list, alias="eventTypes"
    )
    location: str | None = None
    location_name: str | None = Field(default=None, alias="locationName")
    location_address: str | None = Field(default=None, alias="locationAddress")
    location_address2: str | None = Field(default=None, alias="locationAddress2")
    location_city: str | None = Field(default=None, alias="locationCity")
    location_state: str | None = Field(default=None, alias="locationState")
    location_zip: str | None = Field(default=None, alias="locationZip")

    _normalize_text = field_validator(
        "name",
        "description",
        "location",
        "location_name",
        "location_address",
        "location_address2",
        "location_city",
        "location_state",
        "location_zip",
        mode="before",
    )(_blank_to_none)

    @field_validator("regions", "event_types", mode="before")
    @classmethod
    def _null_to_empty(cls, value: object) -> object:
        return [] if value is None else value


class LocationPayload(F3NationBaseModel):
    id: int
    location_name: str | None = Field(default=None, alias="locationName")
    region_name: str | None = Field(default=None, alias="regionName")
    is_active: bool = Field(default=True, alias="isActive")
    latitude: float | None = None
    longitude: float | None = None
    address_street: str | None = Field(default=None, alias="addressStreet")
    address_street2: str | None = Field(default=None, alias="addressStreet2")
    address_city: str | None = Field(default=None, alias="addressCity")
    address_state: str | None = Field(default=None, alias="addressState")
    address_zip: str | None = Field(default=None, alias="addressZip")

    _normalize_text = field_validator(
        "location_name",
        "region_name",
        "address_street",
        "address_street2",
        "address_city",
        "address_state",
        "address_zip",
        mode="before",
    )(_blank_to_none)


class EventsResponse(F3NationBaseModel):
    # Items are validated one by one so a single bad record is skipped.
    events: list[Any]


class EventResponse(F3NationBaseModel):
    event: EventPayload


class LocationsResponse(F3NationBaseModel):
    locations: list[Any]
    total_count: int | None = Field(default=None, alias="totalCount")


class LocationResponse(F3NationBaseModel):
    location: LocationPayload


class ErrorResponse(F3NationBaseModel):
    message: str = ""


class WebhookData(F3NationBaseModel):
    event_id: int | None = Field(default=None, alias="eventId")
    location_id: int | None = Field(default=None, alias="locationId")
    org_id: int | None = Field(default=None, alias="orgId")


class WebhookPayload(F3NationBaseModel):
    action: str
    channel: str
    data: WebhookData = Field(default_factory=WebhookData)
    timestamp: datetime | None = None
