"""Data models for mediaflow."""

from mediaflow.models.events import AssetEvent, ExtractionRequest
from mediaflow.models.schema import (
    ApiStatus,
    MediaKind,
    MediaRecord,
    OverallStatus,
    ProcessingError,
    SourceInfo,
)

__all__ = [
    "ApiStatus",
    "AssetEvent",
    "ExtractionRequest",
    "MediaKind",
    "MediaRecord",
    "OverallStatus",
    "ProcessingError",
    "SourceInfo",
]
