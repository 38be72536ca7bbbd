"""Reverse geocoding with privacy-aware place names."""

from photostream.geocoding.exceptions import GeocodingError, GeocodingServiceError
from photostream.geocoding.factory import GeocoderFactory
from photostream.geocoding.nominatim import NominatimBackend
from photostream.geocoding.opencage import OpenCageBackend
from photostream.geocoding.resolver import (
    GeocodeCandidate,
    GeocodingBackend,
    LocationResolver,
    build_location_name,
    english_name,
    select_best,
    specificity_score,
)

__all__ = [
    "GeocodingError",
    "GeocodingServiceError",
    "GeocoderFactory",
    "NominatimBackend",
    "OpenCageBackend",
    "GeocodeCandidate",
    "GeocodingBackend",
    "LocationResolver",
    "build_location_name",
    "english_name",
    "select_best",
    "specificity_score",
]
