"""Default configuration values for photostream."""

from pathlib import Path

# Default configuration dictionary
DEFAULT_CONFIG = {
    # Photo locations
    "photos": {
        "assets_directory": "src/assets/photos",
        "content_directory": "src/content/photos",
        "extensions": [".jpg", ".jpeg", ".png", ".tiff", ".tif"],
        "draft": False,
    },

    # AI content analysis
    "ai": {
        "enabled": True,
        "provider": "claude",
        "api_key": "",
        "api_url": "https://api.anthropic.com/v1/messages",
        "model": "",  # Empty: each provider uses its own default model
        "endpoint": "http://localhost:11434",  # Ollama only
        "temperature": 0.9,
        "max_tokens": 400,
        "timeout": 60,
        "max_retries": 2,
        "prompt": "",
    },

    # Reverse geocoding
    "geolocation": {
        "enabled": True,
        "provider": "opencage",
        "api_key": "",
        "api_url": "https://api.opencagedata.com/geocode/v1/json",
        "user_agent": "photostream",
        "timeout": 10,
        "max_candidates": 5,
    },

    # Upload compression
    "compression": {
        "max_upload_bytes": 5 * 1024 * 1024,
        "encoding_overhead": 0.75,  # base64 grows payloads by ~33%
    },

    # Logging Configuration
    "logging": {
        "level": "INFO",
        "file": str(Path.home() / ".photostream" / "photostream.log"),
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    },
}

# Environment variables that override configuration values
ENV_OVERRIDES = {
    "ANTHROPIC_API_KEY": "ai.api_key",
    "OPENCAGE_API_KEY": "geolocation.api_key",
    "PHOTOS_DIRECTORY": "photos.assets_directory",
    "CONTENT_DIRECTORY": "photos.content_directory",
}
