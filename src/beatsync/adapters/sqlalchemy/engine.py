"""Engine lifecycle for the SQLAlchemy adapter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .tables import create_all_tables

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """Raised when the SQLAlchemy adapter is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call beatsync.adapters.sqlalchemy."
                "startup() before opening a store."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the engine, create missing tables, and prepare sessions."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )
    if engine is not None:
        resolved_engine = engine
    elif database_uri is not None:
        resolved_engine = create_engine(database_uri, future=True)
    else:
        raise StartupError("startup() needs an engine or a database_uri")

    create_all_tables(resolved_engine)
    if _STATE.engine is not None and _STATE.engine is not resolved_engine:
        _STATE.engine.dispose()
    _STATE.engine = resolved_engine


def session_factory() -> sessionmaker[Session]:
    return _STATE.session_factory


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None
