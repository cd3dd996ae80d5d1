"""Ports for fetching upstream workout data."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from beatsync.domain.model import UpstreamEvent, UpstreamLocation


class UpstreamError(RuntimeError):
    """Raised when the upstream API cannot deliver a usable response."""


class UpstreamNotFoundError(UpstreamError):
    """Raised when a single upstream entity does not exist (any more)."""


class UpstreamRateLimitError(UpstreamError):
    """Raised when the upstream keeps rate limiting after all retries."""


@dataclass(slots=True)
class UpstreamFeed:
    """Bulk snapshot of upstream events and locations.

    ``rejected_events`` and ``rejected_locations`` count listing items that
    were skipped because they did not validate.
    """

    events: list[UpstreamEvent]
    locations: list[UpstreamLocation]
    rejected_events: int = 0
    rejected_locations: int = 0


@runtime_checkable
class UpstreamFetcher(Protocol):
    """Port for retrieving events and locations from the upstream API."""

    def fetch_feed(self) -> UpstreamFeed: ...

    def fetch_events(self) -> list[UpstreamEvent]: ...

    def fetch_locations(self) -> list[UpstreamLocation]: ...

    def fetch_event(self, event_id: int) -> UpstreamEvent: ...

    def fetch_location(self, location_id: int) -> UpstreamLocation: ...


__all__ = [
    "UpstreamError",
    "UpstreamFeed",
    "UpstreamFetcher",
    "UpstreamNotFoundError",
    "UpstreamRateLimitError",
]
