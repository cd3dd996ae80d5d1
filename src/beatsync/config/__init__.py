"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .f3nation import F3NationConfig, get_f3nation_config
from .firestore import FirestoreConfig, get_firestore_config
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import StorageConfig, get_storage_config
from .sync import MAX_WRITE_BATCH_SIZE, SyncConfig, get_sync_config

__all__ = [
    "MAX_WRITE_BATCH_SIZE",
    "ConfigurationError",
    "F3NationConfig",
    "FirestoreConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "get_f3nation_config",
    "get_firestore_config",
    "get_storage_config",
    "get_sync_config",
    "optional_env_var",
    "require_env_var",
    "require_env_vars",
]
