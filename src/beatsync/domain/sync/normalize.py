"""Flatten upstream (location, event) pairs into beatdown records.

The fallback rules below mirror quirks of the upstream feed: region and
address live on either the event or its location, event types are only
populated when events are fetched one by one, and the feed has no website.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from beatsync.domain.model import Beatdown

if TYPE_CHECKING:
    from collections.abc import Iterable

    from beatsync.domain.model import UpstreamEvent, UpstreamLocation

UNKNOWN_REGION = "Unknown Region"
UNKNOWN_TYPE = "Unknown"


class NormalizationError(ValueError):
    """Raised when an upstream pair cannot be turned into a record."""


def _text(value: str | None) -> str:
    return value.strip() if value else ""


def _first_text(*values: str | None) -> str:
    for value in values:
        text = _text(value)
        if text:
            return text
    return ""


def _join_address(parts: Iterable[str | None]) -> str:
    return ", ".join(text for text in (_text(part) for part in parts) if text)


def format_time(value: str | None) -> str:
    """Render a 24-hour ``HHMM`` string as ``h:mm am|pm``.

    Missing or unparseable values render as an empty string.
    """

    text = _text(value)
    if not text or not text.isdigit():
        return ""
    padded = text.zfill(4)
    hours = int(padded[:2])
    minutes = padded[2:]
    period = "pm" if hours >= 12 else "am"
    display_hours = hours % 12 or 12
    return f"{display_hours}:{minutes} {period}"


def format_time_range(start: str | None, end: str | None) -> str:
    return f"{format_time(start)} - {format_time(end)}"


def _region(event: UpstreamEvent, location: UpstreamLocation) -> str:
    event_region = event.regions[0] if event.regions else None
    return _first_text(event_region, location.region_name) or UNKNOWN_REGION


def _address(event: UpstreamEvent, location: UpstreamLocation) -> str:
    return (
        _text(event.location)
        or _join_address(
            (
                event.location_address,
                event.location_address2,
                event.location_city,
                event.location_state,
                event.location_zip,
            )
        )
        or _join_address(
            (
                location.address_street,
                location.address_street2,
                location.address_city,
                location.address_state,
                location.address_zip,
            )
        )
    )


def _event_type(event: UpstreamEvent) -> str:
    first = event.event_types[0] if event.event_types else None
    return _text(first) or UNKNOWN_TYPE


def normalize(location: UpstreamLocation, event: UpstreamEvent) -> Beatdown:
    """Build the canonical record for ``event`` held at ``location``."""

    if location.latitude is None or location.longitude is None:
        raise NormalizationError(f"Location {location.id} has no coordinates")

    return Beatdown(
        day_of_week=_text(event.day_of_week).lower(),
        time_string=format_time_range(event.start_time, event.end_time),
        type=_event_type(event),
        region=_region(event, location),
        # The upstream feed does not publish a website for events.
        website="",
        notes=_text(event.description),
        name=_first_text(event.name, event.location_name, location.location_name),
        address=_address(event, location),
        lat=float(location.latitude),
        long=float(location.longitude),
        location_id=event.location_id,
        event_id=event.id,
    )
