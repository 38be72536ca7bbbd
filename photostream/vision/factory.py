"""Factory for selecting the content analysis backend."""

import logging
from typing import Any, Callable, Dict, List, Optional

from photostream.config import ConfigManager
from photostream.vision.analyzer import ContentAnalyzer, VisionBackend
from photostream.vision.claude import ClaudeBackend
from photostream.vision.exceptions import AnalysisError
from photostream.vision.ollama_backend import OllamaBackend

logger = logging.getLogger(__name__)

DEFAULT_CLAUDE_MODEL = "claude-3-haiku-20240307"
DEFAULT_OLLAMA_MODEL = "llama3.2-vision"


def _claude_from_config(config: ConfigManager) -> VisionBackend:
    return ClaudeBackend(
        api_key=config.get("ai.api_key", ""),
        model_name=config.get("ai.model") or DEFAULT_CLAUDE_MODEL,
        api_url=config.get("ai.api_url", "https://api.anthropic.com/v1/messages"),
        temperature=config.get("ai.temperature", 0.9),
        max_tokens=config.get("ai.max_tokens", 400),
        timeout=config.get("ai.timeout", 60),
    )


def _ollama_from_config(config: ConfigManager) -> VisionBackend:
    return OllamaBackend(
        model_name=config.get("ai.model") or DEFAULT_OLLAMA_MODEL,
        endpoint=config.get("ai.endpoint"),
        temperature=config.get("ai.temperature", 0.9),
        max_tokens=config.get("ai.max_tokens", 400),
        timeout=config.get("ai.timeout", 120),
    )


class AnalyzerFactory:
    """Builds a ContentAnalyzer with the backend named in configuration.

    Backends are registered by provider name. A provider that cannot be
    built (disabled, unknown, missing credentials) yields a fallback-only
    analyzer rather than an error.
    """

    _backend_registry: Dict[str, Callable[[ConfigManager], VisionBackend]] = {
        "claude": _claude_from_config,
        "anthropic": _claude_from_config,  # Alias
        "ollama": _ollama_from_config,
    }

    @classmethod
    def create_backend(cls, config: ConfigManager) -> Optional[VisionBackend]:
        """Create the configured backend, or None when unavailable.

        Args:
            config: Configuration manager

        Returns:
            VisionBackend instance or None
        """
        if not config.get("ai.enabled", False):
            logger.info("AI analysis disabled in configuration")
            return None

        provider = str(config.get("ai.provider", "claude")).lower().strip()
        builder = cls._backend_registry.get(provider)

        if builder is None:
            available = ", ".join(cls._backend_registry.keys())
            logger.warning(
                f"Unsupported AI provider: {provider}. Available providers: {available}"
            )
            return None

        try:
            backend = builder(config)
        except AnalysisError as e:
            logger.warning(f"AI provider '{provider}' not configured: {e}")
            return None

        logger.info(f"Created {backend.__class__.__name__} for model: {backend.model_name}")
        return backend

    @classmethod
    def create(cls, config: ConfigManager, **kwargs: Any) -> ContentAnalyzer:
        """Create a ContentAnalyzer from configuration.

        Args:
            config: Configuration manager
            **kwargs: Extra ContentAnalyzer arguments (e.g. sleep)

        Returns:
            ContentAnalyzer, fallback-only if no backend is available
        """
        return ContentAnalyzer(
            backend=cls.create_backend(config),
            max_retries=config.get("ai.max_retries", 2),
            custom_prompt=config.get("ai.prompt") or None,
            **kwargs
        )

    @classmethod
    def register_backend(
        cls,
        name: str,
        builder: Callable[[ConfigManager], VisionBackend]
    ) -> None:
        """Register a backend builder under a provider name.

        Args:
            name: Provider name used in configuration
            builder: Callable taking a ConfigManager and returning a backend
        """
        cls._backend_registry[name.lower()] = builder
        logger.debug(f"Registered AI provider: {name}")

    @classmethod
    def list_providers(cls) -> List[str]:
        """List all registered provider names."""
        return list(cls._backend_registry.keys())
