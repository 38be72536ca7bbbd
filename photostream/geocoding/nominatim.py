"""OpenStreetMap Nominatim backend via geopy."""

import logging
from typing import List, Optional

from geopy.exc import GeocoderServiceError, GeocoderTimedOut, GeopyError
from geopy.geocoders import Nominatim

from photostream._version import __version__
from photostream.geocoding.exceptions import GeocodingServiceError
from photostream.geocoding.resolver import GeocodeCandidate

logger = logging.getLogger(__name__)


class NominatimBackend:
    """Reverse geocodes with Nominatim.

    Nominatim returns a single result without a confidence value, so the
    candidate list has at most one entry.
    """

    name = "nominatim"
    requires_api_key = False

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: float = 10,
        geolocator: Optional[Nominatim] = None,
    ) -> None:
        self.user_agent = user_agent or f"photostream/{__version__}"
        self.timeout = timeout
        self.geolocator = geolocator or Nominatim(user_agent=self.user_agent)

    def candidates(self, latitude: float, longitude: float, limit: int = 1) -> List[GeocodeCandidate]:
        """Reverse geocode coordinates.

        Raises:
            GeocodingServiceError: If the service times out or errors
        """
        try:
            location = self.geolocator.reverse(
                (latitude, longitude),
                timeout=self.timeout,
                language='en',
                exactly_one=True
            )
        except GeocoderTimedOut as e:
            raise GeocodingServiceError(f"Nominatim timed out: {e}") from e
        except GeocoderServiceError as e:
            raise GeocodingServiceError(f"Nominatim service error: {e}") from e
        except GeopyError as e:
            raise GeocodingServiceError(f"Nominatim lookup failed: {e}") from e

        if not location:
            return []

        address = (location.raw or {}).get('address', {})
        if not isinstance(address, dict) or not address:
            return []

        return [GeocodeCandidate(components=dict(address))]
