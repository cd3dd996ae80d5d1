"""Firestore configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var

DEFAULT_BEATDOWNS_COLLECTION = "beatdowns"
DEFAULT_WEBHOOK_LOG_COLLECTION = "webhookLogs"
DEFAULT_CITIES_COLLECTION = "cities"


@dataclass(frozen=True, slots=True)
class FirestoreConfig:
    project_id: str | None = None
    credentials_path: str | None = None
    beatdowns_collection: str = DEFAULT_BEATDOWNS_COLLECTION
    webhook_log_collection: str = DEFAULT_WEBHOOK_LOG_COLLECTION
    cities_collection: str = DEFAULT_CITIES_COLLECTION


def get_firestore_config() -> FirestoreConfig:
    return FirestoreConfig(
        project_id=optional_env_var("FIRESTORE_PROJECT"),
        credentials_path=optional_env_var("GOOGLE_APPLICATION_CREDENTIALS"),
        beatdowns_collection=optional_env_var("BEATDOWNS_COLLECTION")
        or DEFAULT_BEATDOWNS_COLLECTION,
        webhook_log_collection=optional_env_var("WEBHOOK_LOG_COLLECTION")
        or DEFAULT_WEBHOOK_LOG_COLLECTION,
        cities_collection=optional_env_var("CITIES_COLLECTION") or DEFAULT_CITIES_COLLECTION,
    )
