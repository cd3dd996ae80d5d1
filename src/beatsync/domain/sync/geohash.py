"""Geohash cells stored alongside each beatdown's coordinates."""

from __future__ import annotations

from typing import Final

import pygeohash

from beatsync.domain.model import GEOHASH, GEOHASH_4, GEOHASH_5, GEOHASH_6

GEOHASH_PRECISION: Final = 12

# Document key -> prefix length of the full-precision hash.
_PREFIXES: Final[dict[str, int]] = {GEOHASH_4: 4, GEOHASH_5: 5, GEOHASH_6: 6}


def geohash_fields(lat: float, long: float) -> dict[str, str]:
    """Return the full geohash plus the 4, 5 and 6 character cells."""

    full = pygeohash.encode(lat, long, precision=GEOHASH_PRECISION)
    fields = {GEOHASH: full}
    fields.update({key: full[:length] for key, length in _PREFIXES.items()})
    return fields
