"""Processing module for orchestrating photo metadata generation."""

from photostream.processing.exceptions import (
    FatalPipelineError,
    PipelineError,
    RecordFormatError,
)
from photostream.processing.processor import (
    BatchStats,
    MetadataGenerator,
    ProcessingResult,
)
from photostream.processing.records import (
    ImageAsset,
    MetadataRecord,
    read_record,
    record_id,
    write_record,
)

__all__ = [
    "FatalPipelineError",
    "PipelineError",
    "RecordFormatError",
    "BatchStats",
    "MetadataGenerator",
    "ProcessingResult",
    "ImageAsset",
    "MetadataRecord",
    "read_record",
    "record_id",
    "write_record",
]
