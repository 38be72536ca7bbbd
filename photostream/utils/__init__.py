"""Utility functions for photostream."""

from photostream.utils.exif import (
    extract_exif_data,
    extract_gps_coordinates,
    ExifRecord,
    ExposureSettings,
    GPSCoordinate,
)
from photostream.utils.compression import (
    ImageCompressor,
    CompressionError,
    CompressionBudgetExceeded,
    upload_budget,
)

__all__ = [
    "extract_exif_data",
    "extract_gps_coordinates",
    "ExifRecord",
    "ExposureSettings",
    "GPSCoordinate",
    "ImageCompressor",
    "CompressionError",
    "CompressionBudgetExceeded",
    "upload_budget",
]
