from __future__ import annotations

from app.services.cache import GeocodeCache


def test_geocode_cache_set_get():
    cache = GeocodeCache[str]()
    assert cache.get("key") is None
    assert not cache.has("key")

    cache.set("key", "value")
    assert cache.get("key") == "value"
    assert cache.has("key")


def test_geocode_cache_overwrites_in_place():
    cache = GeocodeCache[str]()
    cache.set("-26.2041,28.0473", "26.20°S, 28.05°E")
    cache.set("-26.2041,28.0473", "Marshalltown, Johannesburg")

    assert cache.get("-26.2041,28.0473") == "Marshalltown, Johannesburg"
    assert len(cache) == 1


def test_geocode_cache_never_evicts():
    cache = GeocodeCache[int]()
    for i in range(5000):
        cache.set(str(i), i)

    assert len(cache) == 5000
    assert cache.get("0") == 0


def test_geocode_cache_keeps_negative_results():
    cache = GeocodeCache[object]()
    cache.set("nowhere", None)

    assert cache.has("nowhere")
    assert cache.get("nowhere") is None

    cache.clear()
    assert not cache.has("nowhere")
