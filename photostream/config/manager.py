"""Configuration manager for photostream."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import yaml

from photostream.config.defaults import DEFAULT_CONFIG, ENV_OVERRIDES

logger = logging.getLogger(__name__)

CONFIG_SEARCH_PATHS = (
    Path("photostream.yaml"),
    Path("~/.photostream/config.yaml"),
)

POSITIVE_KEYS = (
    "ai.timeout",
    "ai.max_tokens",
    "geolocation.timeout",
    "compression.max_upload_bytes",
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when configuration cannot be read, written or validated."""
    pass


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with overrides applied section by section."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _lookup(config: Mapping[str, Any], key: str) -> Any:
    """Walk a dotted key through nested mappings; None when any part is missing."""
    node: Any = config
    for part in key.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _assign(config: Dict[str, Any], key: str, value: Any) -> None:
    """Store value under a dotted key, creating intermediate sections."""
    *sections, leaf = key.split(".")
    node = config
    for section in sections:
        child = node.get(section)
        if not isinstance(child, dict):
            child = node[section] = {}
        node = child
    node[leaf] = value


class ConfigManager:
    """Resolved configuration with dot-notation access.

    Values come from three layers, lowest priority first: built-in
    defaults, a YAML file, and environment variables. Pipeline components
    only ever see the resolved values.

    Attributes:
        config: Resolved configuration mapping
        config_path: File the configuration was read from, if any

    Examples:
        >>> config = ConfigManager.load("photostream.yaml")
        >>> config.get("ai.provider")
        'claude'
        >>> config.get("photos.content_directory")
        'src/content/photos'
    """

    def __init__(self, config: Dict[str, Any], config_path: Optional[Path] = None):
        self.config = config
        self.config_path = config_path

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "ConfigManager":
        """Build the resolved configuration.

        An explicit config_path must exist. Without one, the standard
        locations are searched and the defaults stand alone if none exists.

        Args:
            config_path: YAML file to read (optional)
            environ: Environment used for overrides (defaults to os.environ)

        Returns:
            ConfigManager with defaults, file values and overrides applied

        Raises:
            ConfigError: If the file is missing, unreadable or invalid
        """
        if config_path:
            source = Path(config_path).expanduser()
            if not source.is_file():
                raise ConfigError(f"Configuration file not found: {source}")
        else:
            source = cls._find_config_file()

        file_values: Dict[str, Any] = {}
        if source:
            logger.info(f"Loading configuration from: {source}")
            file_values = cls._load_yaml(source)
        else:
            logger.debug("No configuration file found, using defaults")

        resolved = _deep_merge(DEFAULT_CONFIG, file_values)
        cls._apply_env_overrides(resolved, os.environ if environ is None else environ)
        cls._validate(resolved)

        return cls(resolved, source)

    @staticmethod
    def _find_config_file(
        candidates: Iterable[Path] = CONFIG_SEARCH_PATHS
    ) -> Optional[Path]:
        """Return the first existing file among the search paths.

        The project file (./photostream.yaml) wins over the per-user file
        (~/.photostream/config.yaml).
        """
        for candidate in candidates:
            path = candidate.expanduser()
            if path.is_file():
                logger.debug(f"Found config file: {path}")
                return path.resolve()
        return None

    @staticmethod
    def _load_yaml(path: Path) -> Dict[str, Any]:
        """Read a YAML mapping; an empty file counts as an empty mapping.

        Raises:
            ConfigError: If the file cannot be read, parsed, or is not a mapping
        """
        try:
            text = path.read_text(encoding="utf-8")
            data = yaml.safe_load(text)
        except OSError as e:
            raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration file {path} must contain a mapping, "
                f"not {type(data).__name__}"
            )
        return data

    @staticmethod
    def _apply_env_overrides(config: Dict[str, Any], environ: Mapping[str, str]) -> None:
        """Copy non-empty environment variables over their configuration keys."""
        for env_var, key in ENV_OVERRIDES.items():
            value = environ.get(env_var)
            if value:
                logger.debug(f"Using {env_var} for {key}")
                _assign(config, key, value)

    @staticmethod
    def _validate(config: Dict[str, Any]) -> None:
        """Reject values that would otherwise fail deep inside the pipeline.

        Every problem is collected so one error lists them all.

        Raises:
            ConfigError: If any value is out of range
        """
        problems = []

        def is_number(value: Any) -> bool:
            return isinstance(value, (int, float)) and not isinstance(value, bool)

        temperature = _lookup(config, "ai.temperature")
        if not is_number(temperature) or not 0 <= temperature <= 2:
            problems.append(f"ai.temperature must be between 0 and 2 (got {temperature!r})")

        for key in POSITIVE_KEYS:
            value = _lookup(config, key)
            if not is_number(value) or value <= 0:
                problems.append(f"{key} must be a positive number (got {value!r})")

        retries = _lookup(config, "ai.max_retries")
        if not isinstance(retries, int) or isinstance(retries, bool) or retries < 1:
            problems.append(f"ai.max_retries must be at least 1 (got {retries!r})")

        overhead = _lookup(config, "compression.encoding_overhead")
        if not is_number(overhead) or not 0 < overhead <= 1:
            problems.append(
                f"compression.encoding_overhead must be in (0, 1] (got {overhead!r})"
            )

        level = _lookup(config, "logging.level")
        if str(level).upper() not in LOG_LEVELS:
            problems.append(
                f"logging.level must be one of {', '.join(LOG_LEVELS)} (got {level!r})"
            )

        if problems:
            raise ConfigError(
                "Invalid configuration:\n" + "\n".join(f"  - {p}" for p in problems)
            )

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at a dotted key, or default when unset.

        Examples:
            >>> config.get("ai.temperature")
            0.9
            >>> config.get("nonexistent.key", "fallback")
            'fallback'
        """
        value = _lookup(self.config, key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        """Set the value at a dotted key (e.g. "photos.assets_directory")."""
        _assign(self.config, key, value)

    def save(self, path: Optional[str] = None) -> Path:
        """Write the configuration as YAML.

        Args:
            path: Destination (defaults to the file it was loaded from)

        Returns:
            Path written

        Raises:
            ConfigError: If there is no destination or it cannot be written
        """
        target = Path(path).expanduser() if path else self.config_path
        if target is None:
            raise ConfigError("No path given and configuration was not loaded from a file")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    self.config, f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True
                )
        except OSError as e:
            raise ConfigError(f"Cannot write configuration to {target}: {e}") from e

        logger.info(f"Configuration saved to: {target}")
        return target

    @classmethod
    def write_example(cls, path: str) -> Path:
        """Write the default configuration as a starting point.

        Raises:
            ConfigError: If the file already exists or cannot be written
        """
        target = Path(path).expanduser()
        if target.exists():
            raise ConfigError(f"Refusing to overwrite existing file: {target}")

        return cls(copy.deepcopy(DEFAULT_CONFIG)).save(str(target))

    def to_dict(self) -> Dict[str, Any]:
        """Return a deep copy of the configuration."""
        return copy.deepcopy(self.config)

    def __repr__(self) -> str:
        source = self.config_path or "defaults"
        return f"<ConfigManager from {source}>"
