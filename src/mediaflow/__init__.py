"""mediaflow: label, transcribe and tag uploaded media into one record per asset."""

from mediaflow.config import PipelineConfig
from mediaflow.errors import (
    ExternalServiceError,
    FatalPipelineError,
    MediaflowError,
    MissingIdentifierError,
    TransportParseError,
    UnsupportedCodecError,
)
from mediaflow.extractor import AudioExtractor
from mediaflow.models.events import AssetEvent, ExtractionRequest
from mediaflow.models.schema import ApiStatus, MediaKind, MediaRecord, OverallStatus, SourceInfo
from mediaflow.pipeline import Pipeline
from mediaflow.store.firestore import MetadataStore

__version__ = "0.1.0"

__all__ = [
    "Pipeline",
    "PipelineConfig",
    "AudioExtractor",
    "MetadataStore",
    "AssetEvent",
    "ExtractionRequest",
    "MediaRecord",
    "SourceInfo",
    "ApiStatus",
    "OverallStatus",
    "MediaKind",
    "MediaflowError",
    "MissingIdentifierError",
    "UnsupportedCodecError",
    "ExternalServiceError",
    "FatalPipelineError",
    "TransportParseError",
    "__version__",
]
