"""Custom exceptions for content analysis."""


class AnalysisError(Exception):
    """Base exception for content analysis errors."""
    pass


class AnalysisConnectionError(AnalysisError):
    """Raised when connection to the analysis service fails."""
    pass


class AnalysisTimeoutError(AnalysisError):
    """Raised when an analysis request times out."""
    pass


class AnalysisInvalidResponseError(AnalysisError):
    """Raised when the service returns an invalid or unexpected response."""
    pass
