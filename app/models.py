from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_serializer, field_validator

SortField = Literal["distance", "price", "created", "rating"]
SortOrder = Literal["asc", "desc"]


class Coordinate(BaseModel):
    """WGS84 point. Range is checked by the geokey codec, not here."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class SearchCandidate(BaseModel):
    id: Union[int, str]
    title: str
    description: str = ""
    category: str = "Other"
    price_per_day: float = 0.0
    coordinate: Optional[Coordinate] = None
    location: str = ""
    created_at: Optional[datetime] = None
    average_rating: Optional[float] = None
    total_reviews: Optional[int] = None
    images: List[str] = Field(default_factory=list)
    is_available: bool = True
    owner_name: str = "Unknown"
    # request-scoped: None = unset, inf = unknown
    distance: Optional[float] = None

    @field_serializer("distance", when_used="json")
    def serialize_distance(self, value: Optional[float]) -> Optional[float]:
        # JSON has no infinity
        if value is None or not math.isfinite(value):
            return None
        return value


class SearchFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    category: str = ""
    price_min: float = 0.0
    price_max: float = 0.0
    location: str = ""
    availability: Literal["available", "all", ""] = ""


class SortSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: SortField = "created"
    order: SortOrder = "desc"

    @classmethod
    def parse(cls, value: str) -> "SortSpec":
        """Parse compound values such as ``distance_asc`` or ``created_desc``."""
        value = value.strip().lower()
        for field in ("distance", "price", "rating", "created"):
            if field in value:
                break
        else:
            field = "created"
        order = "asc" if value.endswith("asc") else "desc"
        return cls(field=field, order=order)

    def __str__(self) -> str:
        return f"{self.field}_{self.order}"


class SearchResponse(BaseModel):
    items: List[SearchCandidate]
    total: int
    page: int = 1
    page_size: int = 12
    total_pages: int = 0
    has_more: bool = False


class RawItem(BaseModel):
    """Catalog record as the item backend returns it."""

    model_config = ConfigDict(extra="allow")

    id: Union[int, str]
    name: str = ""
    description: str = ""
    category: Optional[str] = None
    price_per_day: Optional[float] = None
    location: Optional[Dict[str, Any]] = None
    location_lat: Optional[float] = None
    location_lon: Optional[float] = None
    address: Optional[Dict[str, Any]] = None
    formatted_address: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    average_rating: Optional[float] = None
    total_reviews: Optional[int] = None
    is_available: Optional[bool] = None
    owner: Optional[Dict[str, Any]] = None
    owner_name: Optional[str] = None

    @field_validator(
        "price_per_day", "location_lat", "location_lon", "average_rating", "total_reviews", mode="before"
    )
    @classmethod
    def absent_if_not_numeric(cls, value: Any, info: ValidationInfo) -> Any:
        # the backend sends numbers as strings, sometimes as garbage
        if value is None or value == "":
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number):
            return None
        return int(number) if info.field_name == "total_reviews" else number

    @field_validator("created_at", mode="before")
    @classmethod
    def absent_if_not_a_date(cls, value: Any) -> Any:
        if value in (None, ""):
            return None
        if isinstance(value, (datetime, int, float)):
            return value
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None

    @field_validator("image_urls", mode="before")
    @classmethod
    def empty_images(cls, value: Any) -> Any:
        return value or []
