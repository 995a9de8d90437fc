from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App configuration (env-friendly).

    Tip: create a .env file and override settings there.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "Rental Finder Location API"
    version: str = "0.1.0"
    log_level: str = "INFO"

    nominatim_reverse_url: AnyHttpUrl = "https://nominatim.openstreetmap.org/reverse"
    nominatim_search_url: AnyHttpUrl = "https://nominatim.openstreetmap.org/search"
    catalog_base_url: AnyHttpUrl = "http://localhost:8081/api"

    # Nominatim's usage policy expects a proper User-Agent and (optionally) contact info.
    user_agent: str = "RentalMarketplace/1.0"
    nominatim_email: Optional[str] = None

    http_timeout_s: float = 20.0

    # Nominatim allows one request per second.
    geocode_interval_s: float = 1.0

    page_size: int = 12
    search_debounce_s: float = 0.3

    default_radius_km: float = 50.0
    # Johannesburg
    default_latitude: float = -26.2041
    default_longitude: float = 28.0473
    use_default_center: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
