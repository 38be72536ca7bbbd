"""Vision model integration for image content analysis."""

from photostream.vision.analyzer import (
    AnalysisResult,
    ContentAnalyzer,
    MemoryWindow,
    VisionBackend,
    fallback_analysis,
)
from photostream.vision.claude import ClaudeBackend
from photostream.vision.ollama_backend import OllamaBackend
from photostream.vision.factory import AnalyzerFactory
from photostream.vision.exceptions import (
    AnalysisError,
    AnalysisConnectionError,
    AnalysisTimeoutError,
    AnalysisInvalidResponseError,
)

__all__ = [
    "AnalysisResult",
    "ContentAnalyzer",
    "MemoryWindow",
    "VisionBackend",
    "fallback_analysis",
    "ClaudeBackend",
    "OllamaBackend",
    "AnalyzerFactory",
    "AnalysisError",
    "AnalysisConnectionError",
    "AnalysisTimeoutError",
    "AnalysisInvalidResponseError",
]
