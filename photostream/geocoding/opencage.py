"""OpenCage reverse geocoding backend."""

import logging
from typing import List, Optional

import requests

from photostream.geocoding.exceptions import GeocodingError, GeocodingServiceError
from photostream.geocoding.resolver import GeocodeCandidate

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.opencagedata.com/geocode/v1/json"


class OpenCageBackend:
    """Queries the OpenCage Geocoding API for ranked candidates.

    Attributes:
        api_url: Geocoding endpoint
        timeout: Request timeout in seconds
    """

    name = "opencage"
    requires_api_key = True

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise GeocodingError("OpenCage backend requires an API key")

        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def candidates(self, latitude: float, longitude: float, limit: int = 5) -> List[GeocodeCandidate]:
        """Reverse geocode coordinates.

        Args:
            latitude: Latitude in decimal degrees
            longitude: Longitude in decimal degrees
            limit: Maximum number of results

        Returns:
            Candidates in service order (possibly empty)

        Raises:
            GeocodingServiceError: On network, HTTP or payload errors
        """
        params = {
            "q": f"{latitude},{longitude}",
            "key": self.api_key,
            "language": "en",
            "no_annotations": 1,
            "no_dedupe": 1,
            "limit": limit,
        }

        try:
            response = self.session.get(self.api_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            raise GeocodingServiceError(
                f"OpenCage request timed out after {self.timeout}s"
            ) from e
        except requests.RequestException as e:
            raise GeocodingServiceError(f"OpenCage request failed: {e}") from e
        except ValueError as e:
            raise GeocodingServiceError(f"OpenCage returned invalid JSON: {e}") from e

        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            return []

        candidates = []
        for result in results[:limit]:
            if not isinstance(result, dict):
                continue
            components = result.get("components")
            if not isinstance(components, dict):
                continue
            try:
                confidence = float(result.get("confidence") or 0)
            except (TypeError, ValueError):
                confidence = 0.0
            candidates.append(GeocodeCandidate(components=components, confidence=confidence))

        logger.debug(f"OpenCage returned {len(candidates)} candidate(s)")
        return candidates
