from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Union

from app.models import Coordinate


@dataclass(frozen=True)
class LocationUnavailable:
    reason: str


LocationResult = Union[Coordinate, LocationUnavailable]


class LocationProvider(Protocol):
    """Where the requester is, if they shared it."""

    async def current(self) -> LocationResult: ...


class FixedLocationProvider:
    def __init__(self, coordinate: Coordinate) -> None:
        self.coordinate = coordinate

    async def current(self) -> LocationResult:
        return self.coordinate


class NoLocationProvider:
    def __init__(self, reason: str = "location not shared") -> None:
        self.reason = reason

    async def current(self) -> LocationResult:
        return LocationUnavailable(self.reason)


async def origin_of(provider: Optional[LocationProvider]) -> Optional[Coordinate]:
    if provider is None:
        return None
    result = await provider.current()
    return result if isinstance(result, Coordinate) else None
