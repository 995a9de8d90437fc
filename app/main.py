from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Literal, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request

from app.config import get_settings
from app.errors import CatalogUnavailable
from app.logging_config import configure_logging
from app.models import Coordinate, SearchFilters, SearchResponse, SortSpec
from app.services.catalog import HttpItemCatalog, list_categories
from app.services.geocoding import GeocodingService
from app.services.nominatim import NominatimClient
from app.services.ranking import DistanceRanker
from app.services.search import SearchPipeline

settings = get_settings()
configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # settings, provider or catalog already on app.state (tests) take precedence
    cfg = getattr(app.state, "settings", None) or settings
    provider = getattr(app.state, "provider", None) or NominatimClient(cfg)
    catalog = getattr(app.state, "catalog", None) or HttpItemCatalog(cfg)

    geocoder = GeocodingService(provider, cfg)
    app.state.config = cfg
    app.state.geocoder = geocoder
    app.state.pipeline = SearchPipeline(catalog, DistanceRanker(geocoder), cfg)

    yield

    await geocoder.close()
    if isinstance(catalog, HttpItemCatalog):
        await catalog.close()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Finds rental items near a requester and turns coordinates into place names.",
    lifespan=lifespan,
)


@app.get("/", tags=["Root"])
async def root():
    return {"ok": True, "service": settings.app_name, "version": settings.version}


@app.get("/health", tags=["Healthcheck"])
async def health():
    return {"ok": True}


@app.get("/api/categories", tags=["Api Categories"])
async def api_categories():
    return {"categories": list_categories()}


@app.get("/api/reverse-geocode", tags=["Api Geocode"])
async def api_reverse_geocode(
    request: Request,
    lat: float = Query(..., description="Latitude in WGS84"),
    lon: float = Query(..., description="Longitude in WGS84"),
):
    """Best label known now; a refined one shows up on later calls."""
    geocoder: GeocodingService = request.app.state.geocoder
    c = Coordinate(latitude=lat, longitude=lon)
    cached = geocoder.cached_label(c) is not None
    return {"lat": lat, "lon": lon, "label": geocoder.resolve(c), "cached": cached}


@app.get("/api/geocode", tags=["Api Geocode"])
async def api_geocode(
    request: Request,
    q: str = Query(..., min_length=2, description="Free-text location query"),
):
    geocoder: GeocodingService = request.app.state.geocoder
    found = await geocoder.locate(q)
    if found is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return {"query": q, "lat": found.latitude, "lon": found.longitude}


@app.get("/api/search", response_model=SearchResponse, tags=["Api Search"])
async def api_search(
    request: Request,
    text: str = Query(""),
    category: str = Query(""),
    price_min: float = Query(0.0, ge=0.0),
    price_max: float = Query(0.0, ge=0.0),
    location: str = Query(""),
    availability: Literal["available", "all", ""] = Query(""),
    latitude: Optional[float] = Query(None, ge=-90.0, le=90.0),
    longitude: Optional[float] = Query(None, ge=-180.0, le=180.0),
    radius_km: Optional[float] = Query(None, gt=0.0),
    sort_by: Optional[Literal["distance", "price", "created", "rating"]] = Query(None),
    sort_order: Optional[Literal["asc", "desc"]] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=100),
):
    cfg = request.app.state.config
    pipeline: SearchPipeline = request.app.state.pipeline

    origin = None
    if latitude is not None and longitude is not None:
        origin = Coordinate(latitude=latitude, longitude=longitude)
    elif cfg.use_default_center:
        origin = Coordinate(latitude=cfg.default_latitude, longitude=cfg.default_longitude)

    field = sort_by or ("distance" if origin is not None else "created")
    order = sort_order or ("asc" if field == "distance" else "desc")

    filters = SearchFilters(
        text=text,
        category=category,
        price_min=price_min,
        price_max=price_max,
        location=location,
        availability=availability,
    )
    try:
        return await pipeline.search(
            filters,
            SortSpec(field=field, order=order),
            page,
            origin=origin,
            page_size=page_size,
            radius_km=radius_km or cfg.default_radius_km,
        )
    except CatalogUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e))


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
