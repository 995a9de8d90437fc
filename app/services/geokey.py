from __future__ import annotations

import math

from app.errors import InvalidCoordinate
from app.models import Coordinate

# 4 decimals is ~11 m; points closer than that share one cache entry.
KEY_PRECISION = 4


def validate_coordinate(c: Coordinate) -> Coordinate:
    lat, lon = c.latitude, c.longitude
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinate(lat, lon)
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise InvalidCoordinate(lat, lon)
    return c


def key_for(c: Coordinate) -> str:
    """Cache key for a coordinate, e.g. ``-26.2041,28.0473``."""
    # + 0.0 folds -0.0 into 0.0 so both sides of the equator/meridian agree
    lat = round(c.latitude, KEY_PRECISION) + 0.0
    lon = round(c.longitude, KEY_PRECISION) + 0.0
    return f"{lat:.{KEY_PRECISION}f},{lon:.{KEY_PRECISION}f}"


def fallback_label(c: Coordinate) -> str:
    """Human-friendly coordinate string shown until a real address is known."""
    lat_dir = "N" if c.latitude >= 0 else "S"
    lon_dir = "E" if c.longitude >= 0 else "W"
    return f"{abs(c.latitude):.2f}°{lat_dir}, {abs(c.longitude):.2f}°{lon_dir}"
