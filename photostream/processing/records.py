"""Metadata records: identity, front matter rendering and atomic persistence."""

import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import yaml

from photostream.processing.exceptions import RecordFormatError

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".md"
STORY_PLACEHOLDER = "<!-- Add additional context or story about this photo here -->"
EMPTY_BODY_PLACEHOLDER = "<!-- Add description or story about this photo here -->"

FRONTMATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$\n?(.*)\Z",
    re.DOTALL | re.MULTILINE
)


@dataclass(frozen=True)
class ImageAsset:
    """A source image on disk.

    Attributes:
        path: Path to the image file
        size: File size in bytes
        modified: Last modification time (None if unavailable)
    """
    path: Path
    size: int = 0
    modified: Optional[datetime] = None

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ImageAsset":
        """Build an asset from a file's stat information.

        Raises:
            OSError: If the file cannot be stat'ed
        """
        path = Path(path)
        stat = path.stat()
        return cls(
            path=path,
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime),
        )

    @property
    def name(self) -> str:
        return self.path.name


def publish_date(
    captured_at: Optional[datetime],
    modified: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> date:
    """Pick the publish date: capture time, else modification time, else now."""
    for candidate in (captured_at, modified):
        if candidate is not None:
            return candidate.date()
    return (now or datetime.now()).date()


def record_id(published: date, image_path: Union[str, Path]) -> str:
    """Return the record id, e.g. '2023-05-01_IMG_0001'."""
    return f"{published.isoformat()}_{Path(image_path).stem}"


def dedupe_tags(tags: Iterable[str]) -> List[str]:
    """Drop case-insensitive duplicates, keeping the first spelling."""
    seen = set()
    unique = []
    for tag in tags:
        tag = str(tag).strip()
        key = tag.lower()
        if tag and key not in seen:
            seen.add(key)
            unique.append(tag)
    return unique


def cover_image_src(image_path: Union[str, Path], content_dir: Union[str, Path]) -> str:
    """Return the image path relative to the record's directory, with '/' separators."""
    relative = os.path.relpath(
        Path(image_path).resolve(),
        Path(content_dir).resolve()
    )
    return Path(relative).as_posix()


@dataclass
class MetadataRecord:
    """Publishable metadata for one image.

    Attributes:
        id: Record id (also the file stem)
        title: Display title
        description: Display description
        alt_text: Cover image alt text
        tags: Deduplicated tags
        published: Publish date
        cover_src: Image path relative to the record
        draft: Draft flag
        camera: Camera make and model
        lens: Lens model
        settings: Exposure settings (aperture, shutter, iso, focalLength)
        location: Location mapping (latitude, longitude, name)
    """
    id: str
    title: str
    description: str
    alt_text: str
    published: date
    cover_src: str
    tags: List[str] = field(default_factory=list)
    draft: bool = False
    camera: Optional[str] = None
    lens: Optional[str] = None
    settings: Optional[Dict[str, str]] = None
    location: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        self.tags = dedupe_tags(self.tags)

    def to_frontmatter(self) -> Dict[str, Any]:
        """Return the front matter mapping in publication key order."""
        data: Dict[str, Any] = {
            "title": self.title,
            "publishDate": self.published,
            "coverImage": {
                "alt": self.alt_text,
                "src": self.cover_src,
            },
            "tags": list(self.tags),
            "draft": self.draft,
        }

        if self.description:
            data["description"] = self.description
        if self.camera:
            data["camera"] = self.camera
        if self.lens:
            data["lens"] = self.lens
        if self.settings:
            data["settings"] = dict(self.settings)
        if self.location:
            data["location"] = dict(self.location)

        return data

    def body(self) -> str:
        if not self.description:
            return EMPTY_BODY_PLACEHOLDER + "\n"
        return f"{self.description}\n\n{STORY_PLACEHOLDER}\n"


def render_markdown(frontmatter: Dict[str, Any], body: str = "") -> str:
    """Render front matter and body as a Markdown document."""
    header = yaml.safe_dump(
        frontmatter,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=1000,
    )
    return f"---\n{header}---\n{body}"


def parse_markdown(text: str) -> Tuple[Dict[str, Any], str]:
    """Split a Markdown document into front matter and body.

    Raises:
        RecordFormatError: If there is no front matter block or it is not
            a YAML mapping
    """
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        raise RecordFormatError("Record has no front matter block")

    try:
        frontmatter = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise RecordFormatError(f"Invalid YAML in front matter: {e}") from e

    if frontmatter is None:
        frontmatter = {}
    if not isinstance(frontmatter, dict):
        raise RecordFormatError("Front matter must be a mapping")

    return frontmatter, match.group(2)


def read_record(path: Union[str, Path]) -> Tuple[Dict[str, Any], str]:
    """Load a persisted record as (front matter, body).

    Raises:
        RecordFormatError: If the record cannot be parsed
        OSError: If the file cannot be read
    """
    path = Path(path)
    try:
        return parse_markdown(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise RecordFormatError(f"{path.name}: not valid UTF-8 ({e.reason})") from e
    except RecordFormatError as e:
        raise RecordFormatError(f"{path.name}: {e}") from e


def write_record(path: Union[str, Path], frontmatter: Dict[str, Any], body: str = "") -> Path:
    """Write a record atomically (temp file in the same directory, then replace).

    Returns:
        Path of the written record
    """
    path = Path(path)
    content = render_markdown(frontmatter, body)

    fd, tmp_name = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.stem}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.debug(f"Wrote record: {path}")
    return path
