from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from app.config import Settings, get_settings
from app.errors import MalformedProviderResponse, ProviderUnavailable
from app.models import Coordinate

logger = logging.getLogger(__name__)


class NominatimClient:
    """Thin aiohttp wrapper around the Nominatim reverse and search endpoints.

    Raises ``ProviderUnavailable`` / ``MalformedProviderResponse``; callers
    decide how to degrade. Rate limiting is the caller's job.
    """

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

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        if self.settings.nominatim_email:
            params["email"] = self.settings.nominatim_email
        headers = {"User-Agent": self.settings.user_agent}
        timeout = aiohttp.ClientTimeout(total=self.settings.http_timeout_s)

        try:
            async with self._get_session().get(url, params=params, headers=headers, timeout=timeout) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)
        except aiohttp.ClientResponseError as e:
            raise ProviderUnavailable(f"Nominatim error: {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderUnavailable(f"Nominatim unreachable: {e!r}") from e
        except ValueError as e:
            raise MalformedProviderResponse("Nominatim returned invalid JSON") from e

    async def reverse(self, c: Coordinate) -> Dict[str, Any]:
        """Reverse-geocode a point. Returns the raw JSON object."""
        params = {
            "format": "json",
            "lat": c.latitude,
            "lon": c.longitude,
            "zoom": 18,
            "addressdetails": 1,
        }
        data = await self._get_json(str(self.settings.nominatim_reverse_url), params)
        if not isinstance(data, dict) or "error" in data:
            raise MalformedProviderResponse(f"Unexpected reverse response for {c.latitude}, {c.longitude}")
        if not isinstance(data.get("display_name", ""), str) or not isinstance(data.get("address", {}), dict):
            raise MalformedProviderResponse(f"Unexpected reverse response for {c.latitude}, {c.longitude}")
        return data

    async def search(self, q: str) -> Optional[Coordinate]:
        """Forward-geocode free text. ``None`` when nothing matched."""
        params = {"format": "json", "q": q}
        data = await self._get_json(str(self.settings.nominatim_search_url), params)
        if not isinstance(data, list):
            raise MalformedProviderResponse(f"Unexpected search response for {q!r}")
        if not data:
            return None

        item = data[0]
        try:
            return Coordinate(latitude=float(item["lat"]), longitude=float(item["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedProviderResponse(f"Unexpected search response for {q!r}") from e
