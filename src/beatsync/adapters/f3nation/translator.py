"""Translate F3 Nation payloads into domain entities."""

from __future__ import annotations

from typing import TYPE_CHECKING

from beatsync.domain.model import UpstreamEvent, UpstreamLocation
from beatsync.domain.webhooks import WebhookNotification

from .schema import EventPayload, LocationPayload, WebhookPayload

if TYPE_CHECKING:
    from collections.abc import Mapping


def parse_event(payload: EventPayload) -> UpstreamEvent:
    return UpstreamEvent(
        id=payload.id,
        location_id=payload.location_id,
        name=payload.name,
        description=payload.description,
        is_active=payload.is_active,
        day_of_week=payload.day_of_week,
        start_time=payload.start_time,
        end_time=payload.end_time,
        regions=tuple(region.region_name for region in payload.regions if region.region_name),
        event_types=tuple(
            event_type.event_type_name
            for event_type in payload.event_types
            if event_type.event_type_name
        ),
        location=payload.location,
        location_name=payload.location_name,
        location_address=payload.location_address,
        location_address2=payload.location_address2,
        location_city=payload.location_city,
        location_state=payload.location_state,
        location_zip=payload.location_zip,
    )


def parse_location(payload: LocationPayload) -> UpstreamLocation:
    return UpstreamLocation(
        id=payload.id,
        location_name=payload.location_name,
        region_name=payload.region_name,
        is_active=payload.is_active,
        latitude=payload.latitude,
        longitude=payload.longitude,
        address_street=payload.address_street,
        address_street2=payload.address_street2,
        address_city=payload.address_city,
        address_state=payload.address_state,
        address_zip=payload.address_zip,
    )


def parse_webhook_notification(payload: Mapping[str, object]) -> WebhookNotification:
    """Validate a raw webhook body.

    Raises ``pydantic.ValidationError`` (a ``ValueError``) for malformed bodies.
    """

    parsed = WebhookPayload.model_validate(payload)
    return WebhookNotification(
        action=parsed.action,
        channel=parsed.channel,
        event_id=parsed.data.event_id,
        location_id=parsed.data.location_id,
        org_id=parsed.data.org_id,
        timestamp=parsed.timestamp,
        payload=dict(payload),
    )
