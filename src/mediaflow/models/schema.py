"""Pydantic models defining the mediaflow metadata record.

One ``MediaRecord`` exists per asset, stored as a Firestore document whose
ID is the asset ID. The document layout (camelCase keys, source fields
flattened to the top level) is the wire format shared with anything else
reading the collection.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from mediaflow.models.events import AssetEvent


class ApiStatus(str, Enum):
    """Status of one analysis capability for a record."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    NO_RESULTS = "no_results"
    NO_TRANSCRIPTION = "no_transcription"
    SKIPPED_NO_TRANSCRIPT = "skipped_no_transcript"
    ERROR = "error"


class OverallStatus(str, Enum):
    """Status of the whole pipeline step for the last event on a record."""

    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class MediaKind(str, Enum):
    """Processing path selected from the primary content type."""

    AUDIO = "audio"
    VIDEO = "video"
    IMAGE = "image"


class SourceInfo(BaseModel):
    """Where an uploaded asset lives and which upload produced it."""

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(..., alias="fileName", description="Object path within the bucket")
    container_name: str | None = Field(default=None, alias="bucket", description="Bucket name")
    mime_type: str | None = Field(default=None, alias="contentType", description="Declared content type")
    upload_time: str | None = Field(default=None, alias="uploadTime", description="Object creation time")
    media_locator: str | None = Field(default=None, alias="mediaUri", description="gs:// URI of the object")
    version: str | None = Field(default=None, alias="version", description="Object generation")

    @classmethod
    def from_event(cls, event: AssetEvent) -> SourceInfo:
        """Build source info from the event being processed."""
        return cls(
            path=event.path,
            container_name=event.container,
            mime_type=event.content_type,
            upload_time=event.created_time,
            media_locator=event.uri,
            version=event.generation,
        )


# Document keys holding SourceInfo fields
SOURCE_KEYS = tuple(field.alias for field in SourceInfo.model_fields.values())


class ProcessingError(BaseModel):
    """Snapshot of the last fatal error for a record."""

    message: str
    kind: str


class MediaRecord(BaseModel):
    """Merged analysis results for one asset.

    ``asset_id`` is the document ID and ``source`` is flattened into the
    document, so neither appears as a nested key in ``to_document()``.
    """

    model_config = ConfigDict(populate_by_name=True)

    asset_id: str = Field(..., exclude=True, description="Document ID")
    source: SourceInfo | None = Field(default=None, exclude=True, description="Upload source")

    tags: list[str] = Field(default_factory=list, description="Labels for the asset")
    object_tags: list[str] = Field(default_factory=list, description="Detected objects")
    transcription: str = Field(default="", description="Speech transcript")
    topics: list[str] = Field(default_factory=list, description="Topics from the transcript")

    vision_status: ApiStatus = Field(default=ApiStatus.PENDING, alias="visionApiStatus")
    video_status: ApiStatus = Field(default=ApiStatus.PENDING, alias="videoApiStatus")
    speech_status: ApiStatus = Field(default=ApiStatus.PENDING, alias="speechApiStatus")
    topics_status: ApiStatus = Field(default=ApiStatus.PENDING, alias="topicsApiStatus")

    vision_error: str | None = Field(default=None, alias="visionError")
    video_error: str | None = Field(default=None, alias="videoError")
    speech_error: str | None = Field(default=None, alias="speechError")
    topics_error: str | None = Field(default=None, alias="topicsError")

    overall_status: OverallStatus = Field(
        default=OverallStatus.IN_PROGRESS, alias="overallProcessingStatus"
    )
    processing_error: ProcessingError | None = Field(default=None, alias="processingError")
    processed_at: str | None = Field(default=None, alias="processedAt")

    @classmethod
    def document_key(cls, field_name: str) -> str:
        """Map a model field name to its document key."""
        field = cls.model_fields[field_name]
        return field.alias or field_name

    def to_document(self) -> dict[str, Any]:
        """Export to the Firestore document layout."""
        doc = self.model_dump(mode="json", by_alias=True)
        if self.source is not None:
            doc.update(self.source.model_dump(mode="json", by_alias=True))
        return doc

    def document_fields(self, field_names: set[str] | list[str]) -> dict[str, Any]:
        """Export a subset of model fields keyed by document key."""
        return self.model_dump(mode="json", by_alias=True, include=set(field_names))

    @classmethod
    def from_document(cls, asset_id: str, data: dict[str, Any]) -> MediaRecord:
        """Load a record from a Firestore document, normalizing legacy shapes.

        Records written before ``overallProcessingStatus`` existed get one
        derived from their other fields, and a legacy ``processingError.name``
        is read as ``kind``.

        Args:
            asset_id: Document ID.
            data: Document contents.

        Returns:
            MediaRecord for the document.
        """
        doc = dict(data)

        source = None
        if doc.get("fileName"):
            source = SourceInfo.model_validate(
                {key: _as_text(doc[key]) for key in SOURCE_KEYS if doc.get(key) is not None}
            )
        for key in SOURCE_KEYS:
            doc.pop(key, None)

        error = doc.get("processingError")
        if isinstance(error, dict) and "kind" not in error:
            doc["processingError"] = {
                "message": str(error.get("message", "")),
                "kind": str(error.get("name") or "Error"),
            }

        if not doc.get("overallProcessingStatus"):
            doc["overallProcessingStatus"] = _legacy_overall_status(doc).value

        return cls.model_validate({**doc, "asset_id": asset_id, "source": source})


def _as_text(value: Any) -> str:
    """Firestore may hand back generations as ints and times as datetimes."""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _legacy_overall_status(doc: dict[str, Any]) -> OverallStatus:
    if doc.get("processingError"):
        return OverallStatus.FAILED

    status_keys = ("visionApiStatus", "videoApiStatus", "speechApiStatus", "topicsApiStatus")
    if any(doc.get(key) == ApiStatus.PROCESSING.value for key in status_keys):
        return OverallStatus.IN_PROGRESS

    return OverallStatus.COMPLETED
