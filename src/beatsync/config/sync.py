"""Synchronization defaults for the beatdown sync."""

from __future__ import annotations

from dataclasses import dataclass

from beatsync.domain.data_integration import DEFAULT_MISSING_LOCATION_FETCH_LIMIT
from beatsync.domain.sync.batching import MAX_WRITE_BATCH_SIZE

from .env import optional_env_var
from .errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class SyncConfig:
    write_batch_size: int = MAX_WRITE_BATCH_SIZE
    missing_location_fetch_limit: int = DEFAULT_MISSING_LOCATION_FETCH_LIMIT


def _int_env(name: str, default: int) -> int:
    raw = optional_env_var(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def get_sync_config() -> SyncConfig:
    batch_size = _int_env("BEATSYNC_WRITE_BATCH_SIZE", MAX_WRITE_BATCH_SIZE)
    if not 0 < batch_size <= MAX_WRITE_BATCH_SIZE:
        raise ConfigurationError(
            f"BEATSYNC_WRITE_BATCH_SIZE must be between 1 and {MAX_WRITE_BATCH_SIZE}"
        )
    return SyncConfig(
        write_batch_size=batch_size,
        missing_location_fetch_limit=_int_env(
            "BEATSYNC_MISSING_LOCATION_LIMIT", DEFAULT_MISSING_LOCATION_FETCH_LIMIT
        ),
    )
