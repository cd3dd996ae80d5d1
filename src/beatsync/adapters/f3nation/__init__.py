"""Public interface for the F3 Nation adapter."""

from __future__ import annotations

from .client import F3NationAPIError, F3NationFetcher, parse_wait_hint
from .schema import EventPayload, LocationPayload, WebhookPayload
from .translator import parse_event, parse_location, parse_webhook_notification

__all__ = [
    "EventPayload",
    "F3NationAPIError",
    "F3NationFetcher",
    "LocationPayload",
    "WebhookPayload",
    "parse_event",
    "parse_location",
    "parse_wait_hint",
    "parse_webhook_notification",
]
