"""SQLAlchemy adapter package for beatsync."""

from __future__ import annotations

from .engine import StartupError, configured_engine, is_started, shutdown, startup
from .stores import SqlAlchemyBeatdownStore, SqlAlchemyCityStore, SqlAlchemyWebhookLog
from .tables import (
    beatdown_table,
    city_table,
    create_all_tables,
    metadata,
    webhook_log_table,
)

__all__ = [
    "SqlAlchemyBeatdownStore",
    "SqlAlchemyCityStore",
    "SqlAlchemyWebhookLog",
    "StartupError",
    "beatdown_table",
    "city_table",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
    "webhook_log_table",
]
