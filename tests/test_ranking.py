from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone

import pytest

from app.models import Coordinate, SearchCandidate, SortSpec
from app.services.geocoding import GeocodingService
from app.services.ranking import DistanceRanker, haversine_km, sort_candidates

JOHANNESBURG = Coordinate(latitude=-26.2041, longitude=28.0473)
PRETORIA = Coordinate(latitude=-25.7461, longitude=28.1881)


def _candidate(id, distance=None, **kwargs):
    return SearchCandidate(id=id, title=f"item {id}", distance=distance, **kwargs)


def test_haversine_johannesburg_pretoria():
    assert haversine_km(JOHANNESBURG, PRETORIA) == pytest.approx(53.0, abs=1.0)


def test_haversine_same_point_is_zero():
    assert haversine_km(PRETORIA, PRETORIA) == 0.0


def test_distance_sort_puts_missing_last_in_both_directions():
    items = [
        _candidate("a", 3.0),
        _candidate("unset", None),
        _candidate("b", 1.0),
        _candidate("inf", math.inf),
        _candidate("c", 2.0),
    ]

    asc = sort_candidates(items, SortSpec(field="distance", order="asc"))
    desc = sort_candidates(items, SortSpec(field="distance", order="desc"))

    assert [c.id for c in asc] == ["b", "c", "a", "unset", "inf"]
    assert [c.id for c in desc] == ["a", "c", "b", "unset", "inf"]


def test_price_sort():
    items = [_candidate(1, price_per_day=200), _candidate(2, price_per_day=50), _candidate(3, price_per_day=120)]

    assert [c.id for c in sort_candidates(items, SortSpec.parse("price_asc"))] == [2, 3, 1]
    assert [c.id for c in sort_candidates(items, SortSpec.parse("price_desc"))] == [1, 3, 2]


def test_rating_sort_treats_missing_as_zero():
    items = [_candidate(1, average_rating=None), _candidate(2, average_rating=4.0), _candidate(3, average_rating=0.0)]

    assert [c.id for c in sort_candidates(items, SortSpec.parse("rating_desc"))] == [2, 1, 3]


def test_created_sort_mixes_naive_and_aware_datetimes():
    items = [
        _candidate(1, created_at=datetime(2024, 1, 1)),
        _candidate(2, created_at=datetime(2024, 6, 1, tzinfo=timezone.utc)),
        _candidate(3, created_at=None),
    ]

    assert [c.id for c in sort_candidates(items, SortSpec.parse("created_desc"))] == [2, 1, 3]
    assert [c.id for c in sort_candidates(items, SortSpec.parse("created_asc"))] == [3, 1, 2]


def test_rank_without_origin_leaves_distance_unset(settings, provider):
    items = [_candidate(1, distance=5.0, coordinate=PRETORIA), _candidate(2, location="Rosebank, Johannesburg")]

    async def scenario():
        service = GeocodingService(provider, settings)
        ranked = await DistanceRanker(service).rank(items, None, SortSpec.parse("created_desc"))
        await service.close()
        return ranked

    ranked = asyncio.run(scenario())

    assert [c.distance for c in ranked] == [None, None]
    assert provider.search_calls == []
    # originals untouched
    assert items[0].distance == 5.0


def test_rank_geocodes_missing_coordinates(settings, provider):
    provider.places["Hatfield, Pretoria"] = PRETORIA
    items = [
        _candidate("stored", coordinate=Coordinate(latitude=-26.1076, longitude=28.0567)),
        _candidate("geocoded", location="Hatfield, Pretoria"),
        _candidate("unknown", location="Nowhere"),
        _candidate("placeholder", location="Location not available"),
    ]

    async def scenario():
        service = GeocodingService(provider, settings)
        ranked = await DistanceRanker(service).rank(items, JOHANNESBURG, SortSpec.parse("distance_asc"))
        await service.close()
        return ranked

    ranked = asyncio.run(scenario())

    assert [c.id for c in ranked] == ["stored", "geocoded", "unknown", "placeholder"]
    assert ranked[0].distance < 15
    assert ranked[1].distance == pytest.approx(53.0, abs=1.0)
    assert ranked[2].distance == math.inf
    assert ranked[3].distance == math.inf
    assert sorted(provider.search_calls) == ["Hatfield, Pretoria", "Nowhere"]


def test_rank_with_provider_down_marks_unknown(settings, provider):
    provider.fail = True
    items = [_candidate(1, location="Hatfield, Pretoria"), _candidate(2, coordinate=PRETORIA)]

    async def scenario():
        service = GeocodingService(provider, settings)
        ranked = await DistanceRanker(service).rank(items, JOHANNESBURG, SortSpec.parse("distance_asc"))
        await service.close()
        return ranked

    ranked = asyncio.run(scenario())

    assert [c.id for c in ranked] == [2, 1]
    assert ranked[1].distance == math.inf
