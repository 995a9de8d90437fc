from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

import aiohttp

from app.config import Settings, get_settings
from app.errors import CatalogUnavailable
from app.models import Coordinate, RawItem, SearchCandidate
from app.services.geocoding import LOCATION_PLACEHOLDER

logger = logging.getLogger(__name__)

# Keyword -> category, checked in order, for items the backend left uncategorised.
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Tools & Equipment": ["drill", "tool", "mower", "clipper"],
    "Electronics": ["camera", "projector", "electronic"],
    "Sports & Recreation": ["bike", "bicycle", "sport"],
    "Automotive": ["car", "vehicle", "automotive"],
}
DEFAULT_CATEGORY = "Other"


class ItemCatalog(Protocol):
    async def list_all(self, params: Optional[Dict[str, Any]] = None) -> List[RawItem]: ...

    async def get_by_id(self, item_id: Union[int, str]) -> RawItem: ...


def infer_category(name: str, description: str) -> str:
    text = f"{name} {description}".lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(word in text for word in keywords):
            return category
    return DEFAULT_CATEGORY


def list_categories() -> List[str]:
    return [*CATEGORY_KEYWORDS, DEFAULT_CATEGORY]


def _coordinate(item: RawItem) -> Optional[Coordinate]:
    lat, lon = item.location_lat, item.location_lon
    if item.location:
        lat = _as_float(item.location.get("lat"), lat)
        lon = _as_float(item.location.get("lon"), lon)
    # the backend stores 0/0 for "no location"
    if not lat or not lon:
        return None
    return Coordinate(latitude=lat, longitude=lon)


def _as_float(value: Any, default: Optional[float]) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_candidate(item: RawItem) -> SearchCandidate:
    """Read view of a catalog record; missing numbers become absent, not errors."""
    category = item.category
    if not category or category == DEFAULT_CATEGORY:
        category = infer_category(item.name, item.description)

    location = (item.address or {}).get("formatted_address") or item.formatted_address or LOCATION_PLACEHOLDER
    owner_name = (item.owner or {}).get("name") or item.owner_name or "Unknown"

    return SearchCandidate(
        id=item.id,
        title=item.name,
        description=item.description,
        category=category,
        price_per_day=item.price_per_day or 0.0,
        coordinate=_coordinate(item),
        location=str(location),
        created_at=item.created_at,
        average_rating=item.average_rating,
        total_reviews=item.total_reviews,
        images=item.image_urls,
        is_available=item.is_available is not False,
        owner_name=str(owner_name),
    )


class StaticItemCatalog:
    """Fixed in-memory catalog, for local runs and tests."""

    def __init__(self, items: Iterable[Union[RawItem, Dict[str, Any]]] = ()) -> None:
        self.items = [i if isinstance(i, RawItem) else RawItem.model_validate(i) for i in items]

    async def list_all(self, params: Optional[Dict[str, Any]] = None) -> List[RawItem]:
        return list(self.items)

    async def get_by_id(self, item_id: Union[int, str]) -> RawItem:
        for item in self.items:
            if str(item.id) == str(item_id):
                return item
        raise KeyError(item_id)


class HttpItemCatalog:
    """Item catalog served by the marketplace backend over HTTP."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.settings = settings or get_settings()
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{str(self.settings.catalog_base_url).rstrip('/')}{path}"
        timeout = aiohttp.ClientTimeout(total=self.settings.http_timeout_s)
        try:
            async with self._get_session().get(url, params=params, timeout=timeout) as resp:
                resp.raise_for_status()
                return await resp.json()
        except aiohttp.ClientResponseError as e:
            raise CatalogUnavailable(f"Catalog error: {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CatalogUnavailable(f"Catalog unreachable: {e!r}") from e

    async def list_all(self, params: Optional[Dict[str, Any]] = None) -> List[RawItem]:
        clean = {k: str(v) for k, v in (params or {}).items() if v not in (None, "")}
        data = await self._get("/items", clean)
        if not isinstance(data, list):
            raise CatalogUnavailable("Catalog returned an unexpected payload")
        items = []
        for raw in data:
            try:
                items.append(RawItem.model_validate(raw))
            except ValueError as e:
                logger.warning("Skipping malformed catalog item: %s", e)
        return items

    async def get_by_id(self, item_id: Union[int, str]) -> RawItem:
        data = await self._get(f"/items/{item_id}")
        return RawItem.model_validate(data)
