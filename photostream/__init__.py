"""photostream - metadata generation for a static photo site.

Turns a directory of photos into Markdown records with AI-written titles,
descriptions and tags, EXIF camera details and privacy-aware locations.
"""

from photostream._version import __version__, __version_info__
from photostream.config import ConfigManager
from photostream.processing import MetadataGenerator

__license__ = "MIT"
__all__ = [
    "__version__",
    "__version_info__",
    "ConfigManager",
    "MetadataGenerator",
]
