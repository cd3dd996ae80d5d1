"""Document identifiers for beatdown records.

Two schemes coexist in the collection. Documents written before events had a
stable upstream id are keyed by region, name and day only (``LEGACY``), which
collides when one AO runs several events with the same name on the same day.
``CURRENT`` folds the upstream event id in.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from beatsync.domain.model import Beatdown

_LEGACY_INVALID_CHAR = re.compile(r"[^a-z0-9-]")
_CURRENT_INVALID_RUN = re.compile(r"[^a-z0-9_-]+")
_HYPHEN_RUN = re.compile(r"-{2,}")


class IdScheme(StrEnum):
    LEGACY = "legacy"
    CURRENT = "current"


def clean_identifier(value: str) -> str:
    """Collapse repeated hyphens and strip them from both ends."""

    return _HYPHEN_RUN.sub("-", value).strip("-")


def legacy_id(region: str, name: str, day_of_week: str) -> str:
    base = f"{region}_{name}_{day_of_week}".lower()
    return _LEGACY_INVALID_CHAR.sub("-", base)


def current_id(region: str, name: str, day_of_week: str, event_id: int) -> str:
    base = f"{region}_{name}_{day_of_week}_{event_id}".lower()
    return clean_identifier(_CURRENT_INVALID_RUN.sub("-", base))


def derive_id(record: Beatdown, scheme: IdScheme = IdScheme.CURRENT) -> str:
    """Return the document id of ``record`` under ``scheme``.

    Legacy ids are reproduced exactly as historical documents carry them; the
    extra cleanup pass only applies to the current scheme. Callers wanting a
    comparably clean legacy id can pass the result through ``clean_identifier``.
    """

    if scheme is IdScheme.LEGACY:
        return legacy_id(record.region, record.name, record.day_of_week)
    return current_id(record.region, record.name, record.day_of_week, record.event_id)
