"""Domain ports (interfaces) for external collaborators."""

from __future__ import annotations

from .fetching import (
    UpstreamError,
    UpstreamFeed,
    UpstreamFetcher,
    UpstreamNotFoundError,
    UpstreamRateLimitError,
)
from .persistence import BeatdownStore, BeatdownWrite, SoftDeleteWrite, UpsertWrite, WebhookLog

__all__ = [
    "BeatdownStore",
    "BeatdownWrite",
    "SoftDeleteWrite",
    "UpsertWrite",
    "UpstreamError",
    "UpstreamFeed",
    "UpstreamFetcher",
    "UpstreamNotFoundError",
    "UpstreamRateLimitError",
    "WebhookLog",
]
