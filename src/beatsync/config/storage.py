"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal, cast

from .errors import ConfigurationError

APP_DIR_NAME: Final[str] = "beatsync"
DEFAULT_DB_FILENAME: Final[str] = "beatsync.db"

StoreBackend = Literal["firestore", "sqlite"]
_BACKENDS: Final[frozenset[str]] = frozenset({"firestore", "sqlite"})


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    backend: StoreBackend = "firestore"
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def database_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.database_filename

    def database_uri(self) -> str:
        env_uri = os.getenv("DATABASE_URI")
        if env_uri:
            return env_uri
        return f"sqlite+pysqlite:///{self.database_path()}"


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("BEATSYNC_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    backend = (os.getenv("BEATSYNC_STORE") or "firestore").strip().lower()
    if backend not in _BACKENDS:
        raise ConfigurationError(f"Unsupported BEATSYNC_STORE backend: {backend}")
    return StorageConfig(data_dir=data_dir, backend=cast(StoreBackend, backend))
