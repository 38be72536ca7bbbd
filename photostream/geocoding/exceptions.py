"""Custom exceptions for reverse geocoding."""


class GeocodingError(Exception):
    """Base exception for geocoding errors."""
    pass


class GeocodingServiceError(GeocodingError):
    """Raised when the geocoding service fails or returns an invalid response."""
    pass
