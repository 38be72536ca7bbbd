"""Privacy-aware reverse geocoding.

Candidates from a geocoding backend are ranked by how locally specific
they are, and the winner is turned into a place name built only from
landmark, settlement and administrative components. Street, road and
house-level components are never read, so they can never leak into a
published record.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from photostream.geocoding.exceptions import GeocodingError

logger = logging.getLogger(__name__)

# (component keys, score); the first rung a candidate has decides its base score
SPECIFICITY_LADDER: Tuple[Tuple[Tuple[str, ...], float], ...] = (
    (("attraction", "mountain", "peak"), 12),
    (("tourism",), 11),
    (("hamlet",), 10),
    (("village",), 9),
    (("suburb",), 8),
    (("town",), 7),
    (("city",), 6),
    (("county",), 4),
    (("state",), 3),
    (("country",), 1),
)
CONFIDENCE_WEIGHT = 0.5

LANDMARK_KEYS = ("attraction", "mountain", "peak")
SETTLEMENT_KEYS = ("hamlet", "village", "suburb", "town", "city")
STATE_OMITTED_COUNTRIES = ("United States",)


@dataclass
class GeocodeCandidate:
    """One reverse geocoding result.

    Attributes:
        components: Address components (e.g. {"city": "Paris", "road": ...})
        confidence: Service confidence on a 0-10 scale (0 when unknown)
    """
    components: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0


class GeocodingBackend(Protocol):
    """A reverse geocoding service returning ranked candidates."""

    name: str

    def candidates(self, latitude: float, longitude: float, limit: int) -> List[GeocodeCandidate]:
        ...


def english_name(component: Any) -> Optional[str]:
    """Return a display string for a component.

    Components are plain strings or language-keyed maps. For maps the
    English value is preferred, then the first value.

    Args:
        component: Component value from the geocoding service

    Returns:
        Display string, or None
    """
    if isinstance(component, str):
        return component.strip() or None

    if isinstance(component, dict) and component:
        for key in ("en", "eng"):
            value = component.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        first = next(iter(component.values()))
        return first.strip() if isinstance(first, str) and first.strip() else None

    return None


def specificity_score(candidate: GeocodeCandidate) -> float:
    """Score a candidate; higher means more locally specific.

    Args:
        candidate: Geocoding candidate

    Returns:
        Ladder score plus the confidence boost
    """
    components = candidate.components
    score = 0.0

    for keys, value in SPECIFICITY_LADDER:
        if any(components.get(key) for key in keys):
            score += value
            break

    if candidate.confidence:
        score += candidate.confidence * CONFIDENCE_WEIGHT

    return score


def select_best(candidates: List[GeocodeCandidate]) -> Optional[GeocodeCandidate]:
    """Return the highest scoring candidate; ties keep the earlier one."""
    best = None
    best_score = None

    for candidate in candidates:
        score = specificity_score(candidate)
        if best_score is None or score > best_score:
            best, best_score = candidate, score

    return best


def _first_present(components: Dict[str, Any], keys: Tuple[str, ...]) -> Optional[str]:
    """Return the display name of the first key present in components."""
    for key in keys:
        if components.get(key):
            return english_name(components[key])
    return None


def build_location_name(components: Dict[str, Any]) -> Optional[str]:
    """Assemble a privacy-aware place name from address components.

    Order: landmark, settlement, county (only with a settlement), state
    (omitted for the United States), country.

    Args:
        components: Address components of the chosen candidate

    Returns:
        Comma-separated place name, or None when there is neither a
        landmark nor a settlement

    Examples:
        >>> build_location_name({"city": "Paris", "state": "Ile-de-France",
        ...                      "country": "France"})
        'Paris, Ile-de-France, France'
    """
    parts: List[str] = []

    landmark = _first_present(components, LANDMARK_KEYS)
    if landmark:
        parts.append(landmark)

    settlement = _first_present(components, SETTLEMENT_KEYS)
    if settlement and settlement not in parts:
        parts.append(settlement)

    if not parts:
        return None

    if settlement:
        county = english_name(components.get("county"))
        if county and county not in parts:
            parts.append(county)

    country = english_name(components.get("country"))
    is_us = (
        country in STATE_OMITTED_COUNTRIES
        or str(components.get("country_code", "")).lower() == "us"
    )

    state = english_name(components.get("state"))
    if state and not is_us and state not in parts:
        parts.append(state)

    if country and country not in parts:
        parts.append(country)

    return ", ".join(parts)


class LocationResolver:
    """Turns coordinates into a place name using a geocoding backend.

    Lookups are memoized per coordinate pair until reset() is called, so
    one batch run queries each location once. Failures degrade to None.

    Attributes:
        backend: Geocoding backend, or None to disable lookups
        max_candidates: Number of candidates requested from the backend
    """

    def __init__(
        self,
        backend: Optional[GeocodingBackend] = None,
        max_candidates: int = 5
    ) -> None:
        self.backend = backend
        self.max_candidates = max_candidates
        self._cache: Dict[Tuple[float, float], Optional[str]] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.backend is not None

    def reset(self) -> None:
        """Forget memoized lookups (called at the start of each run)."""
        with self._lock:
            self._cache.clear()

    def resolve(self, latitude: float, longitude: float) -> Optional[str]:
        """Resolve coordinates to a place name.

        Args:
            latitude: Latitude in decimal degrees
            longitude: Longitude in decimal degrees

        Returns:
            Place name such as "Montmartre, Paris, Ile-de-France, France",
            or None if unavailable
        """
        if not self.backend:
            return None

        key = (latitude, longitude)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        name = self._lookup(latitude, longitude)

        with self._lock:
            self._cache[key] = name
        return name

    def _lookup(self, latitude: float, longitude: float) -> Optional[str]:
        try:
            candidates = self.backend.candidates(latitude, longitude, self.max_candidates)
        except GeocodingError as e:
            logger.warning(f"Geocoding failed for {latitude:.6f}, {longitude:.6f}: {e}")
            return None

        best = select_best(candidates)
        if best is None:
            logger.debug(f"No geocoding results for {latitude:.6f}, {longitude:.6f}")
            return None

        name = build_location_name(best.components)
        if name:
            logger.debug(f"Reverse geocoded {latitude:.6f}, {longitude:.6f} to: {name}")
        else:
            logger.debug(
                f"No landmark or settlement for {latitude:.6f}, {longitude:.6f}"
            )
        return name
