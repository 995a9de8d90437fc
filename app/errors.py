from __future__ import annotations


class GeocodingError(Exception):
    """Base class for failures talking to a geocoding provider."""


class ProviderUnavailable(GeocodingError):
    """Network error, timeout or non-2xx status from the provider."""


class MalformedProviderResponse(GeocodingError):
    """Provider answered, but not with the JSON shape we expect."""


class InvalidCoordinate(ValueError):
    def __init__(self, latitude: float, longitude: float) -> None:
        super().__init__(f"Coordinate out of range: ({latitude}, {longitude})")
        self.latitude = latitude
        self.longitude = longitude


class CatalogUnavailable(Exception):
    """The item catalog backend could not be reached or returned an error."""
