"""EXIF data extraction utilities for images."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import GPSTAGS, TAGS

logger = logging.getLogger(__name__)

EXIF_IFD = 0x8769
GPS_IFD = 0x8825

# Caption sources, in order of preference
CAPTION_TAGS = ("ImageDescription", "UserComment", "XPComment", "XPSubject")

# UserComment values start with an 8-byte character code
USER_COMMENT_PREFIXES = {
    b"ASCII\x00\x00\x00": "ascii",
    b"UNICODE\x00": "utf-16",
    b"\x00\x00\x00\x00\x00\x00\x00\x00": "utf-8",
}


@dataclass
class GPSCoordinate:
    """GPS position in decimal degrees."""
    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"{self.latitude:.6f}, {self.longitude:.6f}"


@dataclass
class ExposureSettings:
    """Formatted exposure settings, ready for display.

    Attributes:
        aperture: e.g. "f/2.8"
        shutter: e.g. "1/250s" or "2s"
        iso: e.g. "100"
        focal_length: e.g. "85mm"
    """
    aperture: Optional[str] = None
    shutter: Optional[str] = None
    iso: Optional[str] = None
    focal_length: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.aperture, self.shutter, self.iso, self.focal_length))

    def to_dict(self) -> Dict[str, str]:
        """Return the present settings using the record's key names."""
        values = {
            "aperture": self.aperture,
            "shutter": self.shutter,
            "iso": self.iso,
            "focalLength": self.focal_length,
        }
        return {key: value for key, value in values.items() if value}


@dataclass
class ExifRecord:
    """Technical metadata extracted from an image.

    Every field is optional. Missing metadata is the common case for
    exported, edited or screenshot images and is not an error.

    Attributes:
        camera: Make and model, e.g. "Canon EOS R5"
        lens: Lens model string
        settings: Formatted exposure settings
        gps: GPS coordinate if the image is geotagged
        captured_at: Capture timestamp (DateTimeOriginal, else DateTime)
        caption: Embedded description/comment
    """
    camera: Optional[str] = None
    lens: Optional[str] = None
    settings: Optional[ExposureSettings] = None
    gps: Optional[GPSCoordinate] = None
    captured_at: Optional[datetime] = None
    caption: Optional[str] = None

    @property
    def has_gps(self) -> bool:
        return self.gps is not None


def _format_number(value: float) -> str:
    """Format a number without a trailing '.0' (85.0 -> '85', 2.8 -> '2.8')."""
    return f"{float(value):g}"


def _to_float(value: Any) -> Optional[float]:
    """Convert EXIF numeric values (IFDRational, tuples, ints) to float."""
    if value is None:
        return None
    if isinstance(value, (tuple, list)):
        if not value:
            return None
        value = value[0]
    try:
        result = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    if result != result:  # NaN from 0/0 rationals
        return None
    return result


def format_shutter(exposure: float) -> str:
    """Format an exposure time in seconds as a shutter speed string.

    Args:
        exposure: Exposure time in seconds

    Returns:
        "{n}s" for exposures of one second or longer, else "1/{n}s"
    """
    if exposure >= 1:
        return f"{_format_number(exposure)}s"
    return f"1/{round(1 / exposure)}s"


def _clean_text(value: Any) -> Optional[str]:
    """Decode an EXIF text value and strip padding."""
    if value is None:
        return None

    if isinstance(value, tuple) and value and all(isinstance(v, int) for v in value):
        # XP* tags can come back as a tuple of byte values
        value = bytes(value)

    if isinstance(value, bytes):
        text = None
        for prefix, encoding in USER_COMMENT_PREFIXES.items():
            if value.startswith(prefix):
                text = value[len(prefix):].decode(encoding, errors="ignore")
                break
        if text is None:
            # XPComment / XPSubject are UTF-16LE
            if len(value) > 1 and value[1:2] == b"\x00":
                text = value.decode("utf-16-le", errors="ignore")
            else:
                text = value.decode("utf-8", errors="ignore")
        value = text

    text = str(value).replace("\x00", "").strip()
    return text or None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an EXIF "YYYY:MM:DD HH:MM:SS" timestamp."""
    text = _clean_text(value)
    if not text:
        return None

    for fmt in ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y:%m:%d"):
        try:
            return datetime.strptime(text[:19], fmt)
        except ValueError:
            continue

    logger.debug(f"Unrecognized EXIF timestamp: {text!r}")
    return None


def parse_exif_tags(tags: Dict[str, Any]) -> ExifRecord:
    """Build an ExifRecord from a mapping of EXIF tag names to raw values.

    Args:
        tags: Tag name -> value, e.g. {"Make": "Canon", "FNumber": 2.8}

    Returns:
        ExifRecord with formatted fields
    """
    record = ExifRecord()

    make = _clean_text(tags.get("Make"))
    model = _clean_text(tags.get("Model"))
    if make and model:
        record.camera = f"{make} {model}"

    record.lens = _clean_text(tags.get("LensModel"))

    settings = ExposureSettings()

    f_number = _to_float(tags.get("FNumber"))
    if f_number:
        settings.aperture = f"f/{_format_number(f_number)}"

    exposure = _to_float(tags.get("ExposureTime"))
    if exposure:
        settings.shutter = format_shutter(exposure)

    iso = _to_float(tags.get("ISOSpeedRatings", tags.get("PhotographicSensitivity")))
    if iso:
        settings.iso = _format_number(iso)

    # Prefer the 35mm equivalent so focal lengths compare across sensor sizes
    focal = (
        _to_float(tags.get("FocalLengthIn35mmFilm"))
        or _to_float(tags.get("FocalLength"))
    )
    if focal:
        settings.focal_length = f"{_format_number(focal)}mm"

    if not settings.is_empty():
        record.settings = settings

    record.captured_at = (
        _parse_timestamp(tags.get("DateTimeOriginal"))
        or _parse_timestamp(tags.get("DateTime"))
    )

    for tag in CAPTION_TAGS:
        caption = _clean_text(tags.get(tag))
        if caption:
            record.caption = caption
            break

    return record


def _convert_to_decimal_degrees(
    degrees: Tuple[float, float, float], ref: str
) -> float:
    """Convert GPS coordinates from degrees/minutes/seconds to decimal.

    Args:
        degrees: Tuple of (degrees, minutes, seconds)
        ref: Reference direction ('N', 'S', 'E', 'W')

    Returns:
        Decimal degrees (negative for South/West)
    """
    values = [float(v) for v in degrees]
    while len(values) < 3:
        values.append(0.0)

    decimal = values[0] + values[1] / 60.0 + values[2] / 3600.0

    if ref.strip().upper() in ('S', 'W'):
        decimal = -decimal

    return decimal


def gps_from_ifd(gps_info: Dict[Any, Any]) -> Optional[GPSCoordinate]:
    """Build a GPSCoordinate from a GPS IFD keyed by tag id or name.

    Args:
        gps_info: GPS IFD mapping

    Returns:
        GPSCoordinate, or None when any of the four required tags is missing
    """
    named = {GPSTAGS.get(key, key): value for key, value in gps_info.items()}

    latitude = named.get('GPSLatitude')
    longitude = named.get('GPSLongitude')
    lat_ref = _clean_text(named.get('GPSLatitudeRef'))
    lon_ref = _clean_text(named.get('GPSLongitudeRef'))

    if not (latitude and longitude and lat_ref and lon_ref):
        return None

    try:
        coordinate = GPSCoordinate(
            latitude=_convert_to_decimal_degrees(latitude, lat_ref),
            longitude=_convert_to_decimal_degrees(longitude, lon_ref),
        )
    except (TypeError, ValueError, ZeroDivisionError) as e:
        logger.debug(f"Failed to convert GPS coordinates: {e}")
        return None

    if not (-90 <= coordinate.latitude <= 90 and -180 <= coordinate.longitude <= 180):
        logger.debug(f"GPS coordinates out of range: {coordinate}")
        return None

    return coordinate


def _ratio_to_float(value: Any) -> float:
    """Convert an exifread Ratio (or plain number) to float."""
    if hasattr(value, 'num') and hasattr(value, 'den'):
        return float(value.num) / float(value.den)
    return float(value)


def _extract_gps_with_exifread(image_path: str) -> Optional[GPSCoordinate]:
    """Extract GPS coordinates using the exifread library.

    Some files only expose GPS through structures Pillow does not parse,
    so this is used as a secondary lookup.

    Args:
        image_path: Path to the image file

    Returns:
        GPSCoordinate if available
    """
    import exifread

    with open(image_path, 'rb') as f:
        tags = exifread.process_file(f, details=False)

    lat = tags.get('GPS GPSLatitude')
    lat_ref = tags.get('GPS GPSLatitudeRef')
    lon = tags.get('GPS GPSLongitude')
    lon_ref = tags.get('GPS GPSLongitudeRef')

    if not (lat and lat_ref and lon and lon_ref):
        return None

    return gps_from_ifd({
        'GPSLatitude': tuple(_ratio_to_float(v) for v in lat.values),
        'GPSLatitudeRef': str(lat_ref),
        'GPSLongitude': tuple(_ratio_to_float(v) for v in lon.values),
        'GPSLongitudeRef': str(lon_ref),
    })


def extract_gps_coordinates(image_path: str, exif: Optional[Image.Exif] = None) -> Optional[GPSCoordinate]:
    """Extract GPS coordinates from an image.

    Tries the Pillow GPS IFD first and falls back to exifread. Any failure
    is logged and results in None; it never fails the caller.

    Args:
        image_path: Path to the image file
        exif: Already-loaded Pillow Exif object (optional)

    Returns:
        GPSCoordinate if the image is geotagged, None otherwise
    """
    if exif is not None:
        try:
            gps_info = exif.get_ifd(GPS_IFD)
            if gps_info:
                coordinate = gps_from_ifd(gps_info)
                if coordinate:
                    logger.debug(f"Extracted GPS coordinates from {image_path}: {coordinate}")
                    return coordinate
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.debug(f"Pillow GPS lookup failed for {image_path}: {e}")

    try:
        coordinate = _extract_gps_with_exifread(image_path)
        if coordinate:
            logger.debug(f"Extracted GPS coordinates using exifread: {coordinate}")
        return coordinate
    except Exception as e:
        logger.debug(f"exifread GPS lookup failed for {image_path}: {e}")
        return None


def _read_exif_tags(img: Image.Image) -> Tuple[Dict[str, Any], Image.Exif]:
    """Read base and Exif sub-IFD tags from an open image into a name mapping."""
    exif = img.getexif()
    tags: Dict[str, Any] = {}

    for tag_id, value in exif.items():
        tags[TAGS.get(tag_id, tag_id)] = value

    try:
        for tag_id, value in exif.get_ifd(EXIF_IFD).items():
            tags[TAGS.get(tag_id, tag_id)] = value
    except (KeyError, TypeError, ValueError) as e:
        logger.debug(f"No Exif sub-IFD: {e}")

    return tags, exif


def extract_exif_data(image_path: str) -> ExifRecord:
    """Extract technical metadata from an image file.

    Never raises for missing or corrupt metadata: an empty ExifRecord is
    returned and a warning logged instead.

    Args:
        image_path: Path to the image file

    Returns:
        ExifRecord with whatever metadata could be read

    Examples:
        >>> record = extract_exif_data("photo.jpg")
        >>> record.settings.shutter
        '1/250s'
    """
    path = Path(image_path)
    if not path.exists():
        logger.warning(f"Image file not found: {image_path}")
        return ExifRecord()

    try:
        with Image.open(path) as img:
            tags, exif = _read_exif_tags(img)
            gps = extract_gps_coordinates(str(path), exif)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.warning(f"Failed to extract EXIF from {image_path}: {e}")
        return ExifRecord()

    if not tags:
        logger.debug(f"No EXIF data found in {image_path}")

    record = parse_exif_tags(tags)
    record.gps = gps
    return record
