"""Decide whether a stored document needs rewriting.

Upstream coordinates jitter between fetches, so coordinates are compared with
a tolerance instead of exact equality. Identity fields are not part of the
comparison: they are written through on every update but never force one.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Final

from beatsync.domain.model import LAT, LONG, TEXT_FIELDS

if TYPE_CHECKING:
    from beatsync.domain.model import Beatdown, StoredBeatdown

COORDINATE_DECIMALS: Final = 5
METERS_PER_DEGREE: Final = 111_000.0
COORDINATE_TOLERANCE_METERS: Final = 10.0


def normalize_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_coordinate(value: object) -> float | None:
    """Read a stored coordinate; anything that is not a finite number gives None."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int | float):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def approximate_distance_meters(
    lat_a: float, long_a: float, lat_b: float, long_b: float
) -> float:
    """Planar distance approximation, good enough at the scale of a few meters."""

    mean_lat = math.radians((lat_a + lat_b) / 2)
    d_north = (lat_a - lat_b) * METERS_PER_DEGREE
    d_east = (long_a - long_b) * METERS_PER_DEGREE * math.cos(mean_lat)
    return math.hypot(d_north, d_east)


def coordinates_equal(lat_a: float, long_a: float, lat_b: float, long_b: float) -> bool:
    if round(lat_a, COORDINATE_DECIMALS) == round(lat_b, COORDINATE_DECIMALS) and round(
        long_a, COORDINATE_DECIMALS
    ) == round(long_b, COORDINATE_DECIMALS):
        return True
    distance = approximate_distance_meters(lat_a, long_a, lat_b, long_b)
    return distance < COORDINATE_TOLERANCE_METERS


def _coordinate_diff(stored: StoredBeatdown, fresh: Beatdown) -> set[str]:
    stored_lat = parse_coordinate(stored.get(LAT))
    stored_long = parse_coordinate(stored.get(LONG))
    if stored_lat is None or stored_long is None:
        return {name for name, value in ((LAT, stored_lat), (LONG, stored_long)) if value is None}
    if coordinates_equal(stored_lat, stored_long, fresh.lat, fresh.long):
        return set()

    changed: set[str] = set()
    if round(stored_lat, COORDINATE_DECIMALS) != round(fresh.lat, COORDINATE_DECIMALS):
        changed.add(LAT)
    if round(stored_long, COORDINATE_DECIMALS) != round(fresh.long, COORDINATE_DECIMALS):
        changed.add(LONG)
    return changed


def diff(stored: StoredBeatdown, fresh: Beatdown) -> frozenset[str]:
    """Return the document field names whose content differs."""

    document = fresh.to_document()
    changed = {
        name
        for name in TEXT_FIELDS
        if normalize_text(stored.get(name)) != normalize_text(document[name])
    }
    changed |= _coordinate_diff(stored, fresh)
    return frozenset(changed)


def equivalent(stored: StoredBeatdown, fresh: Beatdown) -> bool:
    return not diff(stored, fresh)
