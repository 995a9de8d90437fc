from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Protocol, Set

from app.config import Settings, get_settings
from app.errors import GeocodingError, InvalidCoordinate
from app.models import Coordinate
from app.services.address import format_address
from app.services.cache import GeocodeCache
from app.services.geokey import fallback_label, key_for, validate_coordinate
from app.services.queue import RateLimitedQueue

logger = logging.getLogger(__name__)

# what the item catalog shows when an item has no address
LOCATION_PLACEHOLDER = "Location not available"


class GeocodingProvider(Protocol):
    async def reverse(self, c: Coordinate) -> dict: ...

    async def search(self, q: str) -> Optional[Coordinate]: ...

    async def close(self) -> None: ...


def _address_key(address: str) -> str:
    return " ".join(address.lower().split())


class GeocodingService:
    """Owns the geocode caches and the provider's rate-limited queue.

    Create one per process (the FastAPI lifespan does) and ``close()`` it on
    shutdown. Every provider call goes through the same queue, so reverse and
    forward lookups together stay under the provider's rate limit.
    """

    def __init__(
        self,
        provider: GeocodingProvider,
        settings: Optional[Settings] = None,
        queue: Optional[RateLimitedQueue] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider
        self.queue = queue or RateLimitedQueue(interval=self.settings.geocode_interval_s)
        self.labels: GeocodeCache[str] = GeocodeCache()
        self.locations: GeocodeCache[Optional[Coordinate]] = GeocodeCache()
        self._queued: Set[str] = set()
        self._inflight: Dict[str, asyncio.Future] = {}

    def resolve(self, c: Coordinate) -> str:
        """Best label known right now for ``c``; never waits on the network.

        On a cache miss the coordinate fallback is returned and one lookup is
        queued for the key. Later calls see the refined label once it lands.
        """
        try:
            validate_coordinate(c)
        except InvalidCoordinate as e:
            logger.debug("Not geocoding: %s", e)
            return fallback_label(c)

        key = key_for(c)
        cached = self.labels.get(key)
        if cached is not None:
            return cached

        if key not in self._queued:
            try:
                self.queue.enqueue(lambda: self._reverse(c, key))
            except RuntimeError as e:
                logger.warning("Could not queue reverse geocoding for %s: %s", key, e)
                return fallback_label(c)
            self._queued.add(key)
        return fallback_label(c)

    def cached_label(self, c: Coordinate) -> Optional[str]:
        return self.labels.get(key_for(c))

    async def _reverse(self, c: Coordinate, key: str) -> None:
        try:
            body = await self.provider.reverse(c)
            label = format_address(body) or fallback_label(c)
            logger.info("Geocoded (%s, %s) -> %s", c.latitude, c.longitude, label)
        except Exception as e:
            # cached for good: no retry for this key in this process
            logger.warning("Reverse geocoding failed for (%s, %s), using coordinates: %s", c.latitude, c.longitude, e)
            label = fallback_label(c)
        self.labels.set(key, label)

    async def locate(self, address: str) -> Optional[Coordinate]:
        """Forward-geocode an address string, cached by the normalized text.

        Misses and provider failures are cached as ``None`` too.
        """
        if not address or not address.strip() or address.strip() == LOCATION_PLACEHOLDER:
            return None

        key = _address_key(address)
        if self.locations.has(key):
            return self.locations.get(key)

        future = self._inflight.get(key)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            try:
                self.queue.enqueue(lambda: self._search(address, key, future))
            except RuntimeError as e:
                logger.warning("Could not queue forward geocoding for %r: %s", address, e)
                return None
            self._inflight[key] = future
        return await asyncio.shield(future)

    async def _search(self, address: str, key: str, future: asyncio.Future) -> None:
        found: Optional[Coordinate] = None
        try:
            found = await self.provider.search(address)
            if found is not None:
                validate_coordinate(found)
            self.locations.set(key, found)
        except (GeocodingError, InvalidCoordinate) as e:
            logger.warning("Forward geocoding failed for %r: %s", address, e)
            found = None
            self.locations.set(key, None)
        finally:
            self._inflight.pop(key, None)
            if not future.done():
                future.set_result(found)

    def clear_cache(self) -> None:
        """Forget every resolved label and location.

        Lookups still waiting in the queue stay registered so they are not
        queued a second time.
        """
        self._queued = {key for key in self._queued if not self.labels.has(key)}
        self.labels.clear()
        self.locations.clear()

    async def close(self) -> None:
        await self.queue.close()
        for future in self._inflight.values():
            if not future.done():
                future.set_result(None)
        self._inflight.clear()
        await self.provider.close()
