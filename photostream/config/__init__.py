"""Configuration management for photostream."""

from photostream.config.manager import ConfigManager, ConfigError
from photostream.config.defaults import DEFAULT_CONFIG

__all__ = ["ConfigManager", "ConfigError", "DEFAULT_CONFIG"]
