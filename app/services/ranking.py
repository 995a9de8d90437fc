from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from app.models import Coordinate, SearchCandidate, SortSpec
from app.services.geocoding import GeocodingService

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in kilometres between two WGS84 coords."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dphi = math.radians(b.latitude - a.latitude)
    dlambda = math.radians(b.longitude - a.longitude)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


_SORT_KEYS: Dict[str, Callable[[SearchCandidate], float]] = {
    "price": lambda c: c.price_per_day,
    "rating": lambda c: c.average_rating or 0.0,
    "created": lambda c: _timestamp(c.created_at),
}


def sort_candidates(candidates: Iterable[SearchCandidate], sort: SortSpec) -> List[SearchCandidate]:
    """Stable sort by ``sort``.

    For distance, unset and unknown (inf) distances always come last, in
    their original order, whichever way the finite ones are sorted.
    """
    items = list(candidates)
    reverse = sort.order == "desc"

    if sort.field == "distance":
        known = [c for c in items if c.distance is not None and math.isfinite(c.distance)]
        unknown = [c for c in items if c.distance is None or not math.isfinite(c.distance)]
        return sorted(known, key=lambda c: c.distance, reverse=reverse) + unknown

    # sorted() keeps ties in input order in both directions
    return sorted(items, key=_SORT_KEYS[sort.field], reverse=reverse)


class DistanceRanker:
    def __init__(self, geocoder: Optional[GeocodingService] = None) -> None:
        self.geocoder = geocoder

    async def _distance(self, candidate: SearchCandidate, origin: Coordinate) -> float:
        target = candidate.coordinate
        if target is None and self.geocoder is not None:
            target = await self.geocoder.locate(candidate.location)
        if target is None:
            return math.inf
        return haversine_km(origin, target)

    async def with_distances(
        self, candidates: List[SearchCandidate], origin: Optional[Coordinate]
    ) -> List[SearchCandidate]:
        """Copies of ``candidates`` with ``distance`` filled in for ``origin``."""
        if origin is None:
            return [c.model_copy(update={"distance": None}) for c in candidates]

        distances = await asyncio.gather(*(self._distance(c, origin) for c in candidates))
        return [c.model_copy(update={"distance": d}) for c, d in zip(candidates, distances)]

    async def rank(
        self, candidates: List[SearchCandidate], origin: Optional[Coordinate], sort: SortSpec
    ) -> List[SearchCandidate]:
        return sort_candidates(await self.with_distances(candidates, origin), sort)
