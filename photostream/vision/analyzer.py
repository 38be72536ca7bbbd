"""AI content analysis: prompt building, response parsing and fallbacks."""

import base64
import json
import logging
import re
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from photostream.utils.exif import ExifRecord
from photostream.vision.exceptions import (
    AnalysisError,
    AnalysisInvalidResponseError,
)

logger = logging.getLogger(__name__)

MEMORY_CAPACITY = 5
MEMORY_PROMPT_SIZE = 3
SMARTPHONE_BRANDS = ("iphone", "pixel", "samsung")

JSON_PATTERNS = (
    re.compile(r"```json\s*\n(.*?)\n\s*```", re.DOTALL),
    re.compile(r"```\s*\n(.*?)\n\s*```", re.DOTALL),
    re.compile(r"\{.*\}", re.DOTALL),
)


@dataclass
class AnalysisResult:
    """Generated content for an image.

    Attributes:
        title: Display title
        description: Display description
        alt_text: Accessibility text
        tags: Suggested tags, in model order (may contain duplicates)
        fallback: True when derived from the filename instead of the model
    """
    title: str
    description: str
    alt_text: str
    tags: List[str] = field(default_factory=list)
    fallback: bool = False


@dataclass
class MemoryEntry:
    title: str
    captured: Optional[date] = None


class MemoryWindow:
    """Bounded FIFO of recent titles, used to steer the model away from repeats.

    A window is owned by the caller (one per batch run) and passed into
    each analysis call.
    """

    def __init__(self, capacity: int = MEMORY_CAPACITY) -> None:
        self._entries: Deque[MemoryEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def push(self, title: str, captured: Optional[date] = None) -> None:
        """Record a title, evicting the oldest entry when full."""
        with self._lock:
            self._entries.append(MemoryEntry(title=title, captured=captured))

    def recent_titles(self, count: int = MEMORY_PROMPT_SIZE) -> List[str]:
        """Return up to count titles, oldest first."""
        with self._lock:
            entries = list(self._entries)
        return [entry.title for entry in entries[-count:]] if count > 0 else []

    def entries(self) -> List[MemoryEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class VisionBackend(Protocol):
    """A vision-capable text generation service.

    Implementations send one prompt plus one base64 JPEG and return the raw
    response text, raising AnalysisError subclasses on failure.
    """

    model_name: str

    def describe(self, prompt: str, image_b64: str) -> str:
        ...


def format_display_date(value: date) -> str:
    """Format a date as e.g. 'May 1, 2023'."""
    return f"{value:%B} {value.day}, {value.year}"


def fallback_analysis(filename: str, exif: Optional[ExifRecord] = None) -> AnalysisResult:
    """Build deterministic content from the filename and capture date.

    Args:
        filename: Image filename (a path is accepted; only the name is used)
        exif: Extracted EXIF data (optional)

    Returns:
        AnalysisResult flagged as fallback

    Examples:
        >>> fallback_analysis("sunset_over-lake.jpg").title
        'sunset over lake'
    """
    name = Path(filename).name
    captured = exif.captured_at if exif else None

    title = re.sub(r"[_-]", " ", Path(name).stem)
    description = (
        f"A photograph captured on {format_display_date(captured)}."
        if captured else "A photograph."
    )
    tags = ["photography"]
    if captured:
        tags.append(str(captured.year))

    return AnalysisResult(
        title=title,
        description=description,
        alt_text=f"Photograph: {name}",
        tags=tags,
        fallback=True,
    )


def is_smartphone(camera: Optional[str]) -> bool:
    """Classify a camera string as a smartphone by brand substring."""
    if not camera:
        return False
    lowered = camera.lower()
    return any(brand in lowered for brand in SMARTPHONE_BRANDS)


def build_prompt(
    filename: str,
    exif: Optional[ExifRecord],
    recent_titles: List[str],
) -> str:
    """Build the analysis prompt with memory, camera and exposure context.

    Args:
        filename: Image filename
        exif: Extracted EXIF data (optional)
        recent_titles: Titles from the memory window to avoid repeating

    Returns:
        Prompt text
    """
    exif = exif or ExifRecord()
    lines = ["You are analyzing a photograph for a photography blog.", ""]

    if recent_titles:
        lines.append(
            "CONTEXT: Recent outputs to avoid repetition: "
            + ", ".join(recent_titles)
        )
        lines.append(
            "Do not reuse the wording, structure or opening of these titles."
        )
        lines.append("")

    camera = exif.camera or "Unknown camera"
    camera_kind = "Smartphone camera" if is_smartphone(exif.camera) else "Dedicated camera"
    lines.append(f"Filename: {Path(filename).name}")
    lines.append(f"Camera: {camera} ({camera_kind})")

    if exif.lens:
        lines.append(f"Lens: {exif.lens}")

    if exif.settings:
        settings = exif.settings
        parts = [
            settings.aperture,
            settings.shutter,
            f"ISO {settings.iso}" if settings.iso else None,
            settings.focal_length,
        ]
        technical = ", ".join(part for part in parts if part)
        if technical:
            lines.append(f"Settings: {technical}")

    if exif.gps:
        lines.append(f"Location: {exif.gps.latitude:.4f}, {exif.gps.longitude:.4f}")

    if exif.captured_at:
        lines.append(f"Date: {format_display_date(exif.captured_at)}")

    if exif.caption:
        lines.append(f"Photographer's caption: {exif.caption}")

    lines.extend([
        "",
        "Generate JSON with these fields:",
        "- title: 30-60 chars, engaging and descriptive, SEO-friendly",
        "- description: 200-250 chars, engaging description",
        "- altText: Concise accessibility description",
        "- suggestedTags: Array of relevant tags (include year if determinable)",
        "",
        "Focus on what makes this photo interesting or worth sharing. "
        "Avoid generic descriptions. Respond with the JSON object only.",
    ])

    return "\n".join(lines)


def extract_json(response_text: str) -> Dict[str, Any]:
    """Extract a JSON object from model output.

    Accepts a ```json fenced block, a bare fenced block, or an unfenced
    object embedded in prose.

    Args:
        response_text: Raw model output

    Returns:
        Parsed JSON object

    Raises:
        AnalysisInvalidResponseError: If no JSON object can be parsed
    """
    if not response_text:
        raise AnalysisInvalidResponseError("Empty response from model")

    for pattern in JSON_PATTERNS:
        match = pattern.search(response_text)
        if not match:
            continue
        candidate = match.group(1) if match.groups() else match.group(0)
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.debug(f"Candidate JSON did not parse: {e}")
            continue
        if isinstance(parsed, dict):
            return parsed

    raise AnalysisInvalidResponseError(
        f"No JSON object found in response: {response_text[:200]!r}"
    )


def _clean_tags(value: Any) -> Optional[List[str]]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return None
    tags = [str(tag).strip() for tag in value if str(tag).strip()]
    return tags or None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def result_from_json(data: Dict[str, Any], fallback: AnalysisResult) -> AnalysisResult:
    """Merge parsed model output with the fallback for missing fields."""
    tags = _clean_tags(data.get("suggestedTags", data.get("tags")))
    return AnalysisResult(
        title=_text(data.get("title")) or fallback.title,
        description=_text(data.get("description")) or fallback.description,
        alt_text=_text(data.get("altText", data.get("alt_text"))) or fallback.alt_text,
        tags=tags if tags is not None else list(fallback.tags),
    )


class ContentAnalyzer:
    """Generates title, description, alt text and tags for an image.

    The analyzer is composed with a VisionBackend chosen at construction
    time. Without a backend, or when the backend fails, the filename-based
    fallback is returned. Analysis never raises.

    Attributes:
        backend: Vision backend, or None for fallback-only operation
        max_retries: Attempts per image before falling back
        custom_prompt: Prompt that replaces the built-in one, if set
    """

    def __init__(
        self,
        backend: Optional[VisionBackend] = None,
        max_retries: int = 1,
        custom_prompt: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.backend = backend
        self.max_retries = max(1, max_retries)
        self.custom_prompt = custom_prompt or None
        self._sleep = sleep
        self._sequence = threading.Lock()

        if backend:
            logger.info(f"Content analysis using model: {backend.model_name}")
        else:
            logger.info("Content analysis disabled, using filename-based fallback")

    @property
    def enabled(self) -> bool:
        return self.backend is not None

    def _call_with_retries(self, prompt: str, image_b64: str) -> str:
        """Call the backend, retrying with exponential backoff.

        Raises:
            AnalysisError: The last error once attempts are exhausted
        """
        last_error: Optional[AnalysisError] = None

        for attempt in range(self.max_retries):
            try:
                return self.backend.describe(prompt, image_b64)
            except AnalysisError as e:
                last_error = e
                logger.warning(
                    f"Analysis call failed (attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    delay = 2 ** attempt
                    logger.info(f"Retrying analysis in {delay} seconds")
                    self._sleep(delay)

        raise last_error

    def analyze(
        self,
        image_bytes: Optional[bytes],
        filename: str,
        exif: Optional[ExifRecord],
        memory: MemoryWindow,
    ) -> AnalysisResult:
        """Analyze an image.

        Prompt rendering, the service call and the memory update run under
        one lock, so the prompt for each image reflects every result
        recorded before it.

        Args:
            image_bytes: Compressed JPEG bytes (None forces the fallback)
            filename: Image filename, used in the prompt and the fallback
            exif: Extracted EXIF data (optional)
            memory: Caller-owned window of recent titles

        Returns:
            AnalysisResult from the model, or the fallback
        """
        fallback = fallback_analysis(filename, exif)

        if not self.backend:
            logger.debug(f"No analysis backend configured, using fallback for {filename}")
            return fallback

        if not image_bytes:
            logger.warning(f"No image data for {filename}, using fallback")
            return fallback

        image_b64 = base64.b64encode(image_bytes).decode("ascii")

        with self._sequence:
            prompt = self.custom_prompt or build_prompt(
                filename, exif, memory.recent_titles(MEMORY_PROMPT_SIZE)
            )
            logger.debug(f"Analysis prompt for {filename}:\n{prompt}")

            try:
                response_text = self._call_with_retries(prompt, image_b64)
                result = result_from_json(extract_json(response_text), fallback)
            except AnalysisError as e:
                logger.warning(f"AI analysis failed for {filename}, using fallback: {e}")
                return fallback
            except Exception as e:
                logger.error(
                    f"Unexpected analysis error for {filename}, using fallback: {e}",
                    exc_info=True
                )
                return fallback

            captured = exif.captured_at.date() if exif and exif.captured_at else date.today()
            memory.push(result.title, captured)

        logger.debug(f"Generated title for {filename}: {result.title}")
        return result
