"""Custom exceptions for the metadata pipeline."""

from pathlib import Path
from typing import Optional, Union


class PipelineError(Exception):
    """Base exception for pipeline errors."""
    pass


class FatalPipelineError(PipelineError):
    """Raised when a run cannot proceed at all.

    Attributes:
        message: Error message
        path: Directory or file that caused the failure (if any)
    """

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        if self.path:
            return f"{self.message}: {self.path}"
        return self.message


class RecordFormatError(PipelineError):
    """Raised when an existing record cannot be parsed."""
    pass
