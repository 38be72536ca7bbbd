"""Factory for selecting the reverse geocoding backend."""

import logging
from typing import Callable, Dict, List, Optional

from photostream.config import ConfigManager
from photostream.geocoding.exceptions import GeocodingError
from photostream.geocoding.nominatim import NominatimBackend
from photostream.geocoding.opencage import DEFAULT_API_URL, OpenCageBackend
from photostream.geocoding.resolver import GeocodingBackend, LocationResolver

logger = logging.getLogger(__name__)


def _opencage_from_config(config: ConfigManager) -> GeocodingBackend:
    return OpenCageBackend(
        api_key=config.get("geolocation.api_key", ""),
        api_url=config.get("geolocation.api_url", DEFAULT_API_URL),
        timeout=config.get("geolocation.timeout", 10),
    )


def _nominatim_from_config(config: ConfigManager) -> GeocodingBackend:
    return NominatimBackend(
        user_agent=config.get("geolocation.user_agent"),
        timeout=config.get("geolocation.timeout", 10),
    )


class GeocoderFactory:
    """Builds a LocationResolver with the backend named in configuration."""

    _backend_registry: Dict[str, Callable[[ConfigManager], GeocodingBackend]] = {
        "opencage": _opencage_from_config,
        "nominatim": _nominatim_from_config,
        "osm": _nominatim_from_config,  # Alias
    }

    @classmethod
    def create_backend(cls, config: ConfigManager) -> Optional[GeocodingBackend]:
        """Create the configured backend, or None when unavailable."""
        if not config.get("geolocation.enabled", True):
            logger.info("Location lookup disabled in configuration")
            return None

        provider = str(config.get("geolocation.provider", "opencage")).lower().strip()
        builder = cls._backend_registry.get(provider)

        if builder is None:
            available = ", ".join(cls._backend_registry.keys())
            logger.warning(
                f"Unsupported geocoding provider: {provider}. Available providers: {available}"
            )
            return None

        try:
            backend = builder(config)
        except GeocodingError as e:
            logger.warning(f"Geocoding provider '{provider}' not configured: {e}")
            return None

        logger.info(f"Using {provider} for location lookup")
        return backend

    @classmethod
    def create(cls, config: ConfigManager) -> LocationResolver:
        """Create a LocationResolver; lookups are disabled without a backend."""
        return LocationResolver(
            backend=cls.create_backend(config),
            max_candidates=config.get("geolocation.max_candidates", 5),
        )

    @classmethod
    def register_backend(
        cls,
        name: str,
        builder: Callable[[ConfigManager], GeocodingBackend]
    ) -> None:
        cls._backend_registry[name.lower()] = builder
        logger.debug(f"Registered geocoding provider: {name}")

    @classmethod
    def list_providers(cls) -> List[str]:
        return list(cls._backend_registry.keys())
