"""Trigger and queue message models.

Storage notifications arrive either as the raw object resource (background
functions, Pub/Sub notifications) or wrapped in a CloudEvent envelope
(Eventarc). ``normalize_asset_event`` accepts both.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from mediaflow.models.schema import MediaKind

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DELETED_RESOURCE_STATE = "not_exists"
DELETED_EVENT_SUFFIX = ".object.v1.deleted"


class AssetEvent(BaseModel):
    """One storage object notification."""

    path: str = Field(..., description="Object path within the bucket")
    container: str = Field(..., description="Bucket name")
    content_type: str = Field(default=DEFAULT_CONTENT_TYPE, description="Declared content type")
    content_hash: str | None = Field(default=None, description="Base64 MD5 of the object")
    created_time: str | None = Field(default=None, description="Object creation time")
    generation: str | None = Field(default=None, description="Object generation")
    deleted: bool = Field(default=False, description="Notification signals a deletion")

    @property
    def uri(self) -> str:
        """gs:// URI of the object."""
        return f"gs://{self.container}/{self.path}"


class ExtractionRequest(BaseModel):
    """Message asking the extractor to pull the audio track out of a video.

    Legacy publishers used ``sourceBucketName`` and ``firestoreDocId``;
    both spellings are accepted on input, only the current ones are emitted.
    """

    model_config = ConfigDict(populate_by_name=True)

    source_container: str = Field(
        ...,
        min_length=1,
        alias="sourceContainerName",
        validation_alias=AliasChoices("sourceContainerName", "sourceBucketName"),
    )
    source_path: str = Field(..., min_length=1, alias="sourceFilePath")
    asset_id: str = Field(
        ...,
        min_length=1,
        alias="assetId",
        validation_alias=AliasChoices("assetId", "firestoreDocId"),
    )

    def to_message(self) -> dict[str, str]:
        """Export to the wire format."""
        return self.model_dump(by_alias=True)


def classify_media_kind(content_type: str) -> MediaKind | None:
    """Pick the processing path from the primary content type.

    Returns:
        The matching MediaKind, or None when no path handles the type.
    """
    if not content_type:
        return None

    if content_type.startswith("audio/"):
        return MediaKind.AUDIO
    if content_type.startswith("video/"):
        return MediaKind.VIDEO
    if content_type.startswith("image/"):
        return MediaKind.IMAGE

    return None


def normalize_asset_event(raw_event: dict[str, Any]) -> AssetEvent:
    """Normalize an Eventarc CloudEvent or raw object payload into an AssetEvent.

    Args:
        raw_event: Decoded JSON notification.

    Returns:
        AssetEvent for the object.

    Raises:
        KeyError: If the payload has no object name or bucket.
        ValidationError: If the name or bucket is not a string.
    """
    event_type = str(raw_event.get("type") or "")
    if isinstance(raw_event.get("data"), dict):
        data = raw_event["data"]
    else:
        data = raw_event

    generation = data.get("generation")
    deleted = (
        data.get("resourceState") == DELETED_RESOURCE_STATE
        or event_type.endswith(DELETED_EVENT_SUFFIX)
    )

    return AssetEvent(
        path=data["name"],
        container=data["bucket"],
        content_type=data.get("contentType") or DEFAULT_CONTENT_TYPE,
        content_hash=data.get("md5Hash") or None,
        created_time=data.get("timeCreated"),
        generation=str(generation) if generation is not None else None,
        deleted=deleted,
    )
