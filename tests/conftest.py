from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from app.config import Settings
from app.errors import ProviderUnavailable
from app.models import Coordinate


class FakeProvider:
    """Stands in for NominatimClient; records every call."""

    def __init__(self) -> None:
        self.reverse_body: Dict[str, Any] = {
            "display_name": "Sandton, Johannesburg, Gauteng, South Africa",
            "address": {"suburb": "Sandton", "city": "Johannesburg"},
        }
        self.places: Dict[str, Coordinate] = {}
        self.fail = False
        self.reverse_calls: List[Coordinate] = []
        self.search_calls: List[str] = []
        self.closed = False

    async def reverse(self, c: Coordinate) -> Dict[str, Any]:
        self.reverse_calls.append(c)
        if self.fail:
            raise ProviderUnavailable("Nominatim error: 503")
        return self.reverse_body

    async def search(self, q: str) -> Optional[Coordinate]:
        self.search_calls.append(q)
        if self.fail:
            raise ProviderUnavailable("Nominatim error: 503")
        return self.places.get(q)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        geocode_interval_s=0.01,
        search_debounce_s=0.3,
        page_size=2,
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def raw_items() -> List[Dict[str, Any]]:
    return [
        {
            "id": 1,
            "name": "Cordless drill",
            "description": "18V, two batteries",
            "price_per_day": "120.00",
            "location": {"lat": -26.1076, "lon": 28.0567},
            "address": {"formatted_address": "Sandton, Johannesburg"},
            "created_at": "2024-03-01T10:00:00Z",
            "average_rating": 4.5,
        },
        {
            "id": 2,
            "name": "Mountain bike",
            "description": "Full suspension",
            "price_per_day": 250,
            "location": {"lat": -25.7461, "lon": 28.1881},
            "address": {"formatted_address": "Hatfield, Pretoria"},
            "created_at": "2024-05-01T10:00:00Z",
        },
        {
            "id": 3,
            "name": "Projector",
            "description": "Full HD projector for movie nights",
            "price_per_day": 300,
            "address": {"formatted_address": "Rosebank, Johannesburg"},
            "created_at": "2024-01-15T10:00:00Z",
            "average_rating": 3.0,
        },
        {
            "id": 4,
            "name": "Lawn mower",
            "description": "Petrol mower",
            "price_per_day": 180,
            "created_at": "2024-04-01T10:00:00Z",
            "is_available": False,
        },
    ]
