"""Tests for the reconciliation stage."""

from __future__ import annotations

import re

import pytest

from mediaflow.models.schema import (
    ApiStatus,
    MediaKind,
    MediaRecord,
    OverallStatus,
    SourceInfo,
)
from mediaflow.stages.reconcile import (
    failure_changes,
    in_progress_changes,
    reconcile,
    unique_labels,
    utc_timestamp,
)
from mediaflow.stages.status import OverallTracker

STAMP = "2024-05-01T12:00:00.000Z"


@pytest.fixture
def video_source() -> SourceInfo:
    return SourceInfo(
        path="clip.mp4",
        container_name="uploads",
        mime_type="video/mp4",
        media_locator="gs://uploads/clip.mp4",
        version="1",
    )


@pytest.fixture
def audio_source() -> SourceInfo:
    return SourceInfo(
        path="abc123.flac",
        container_name="extracted-audio",
        mime_type="audio/flac",
        media_locator="gs://extracted-audio/abc123.flac",
    )


@pytest.fixture
def video_record(video_source: SourceInfo) -> MediaRecord:
    return MediaRecord(
        asset_id="abc123",
        source=video_source,
        tags=["Cat"],
        object_tags=["Ball"],
        video_status=ApiStatus.SUCCESS,
        overall_status=OverallStatus.COMPLETED,
    )


class TestUniqueLabels:
    """Tests for unique_labels function."""

    def test_keeps_first_seen_order(self) -> None:
        assert unique_labels(["Cat", "Dog", "Cat", "Bird", "Dog"]) == ["Cat", "Dog", "Bird"]

    def test_drops_empty_values(self) -> None:
        assert unique_labels(["", None, "Cat"]) == ["Cat"]


class TestUtcTimestamp:
    def test_format(self) -> None:
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_timestamp())


class TestReconcile:
    """Tests for reconcile function."""

    def test_new_video_record_gets_full_document(self, video_source: SourceInfo) -> None:
        result = reconcile(
            "abc123",
            None,
            {"tags": ["Cat", "Cat"], "object_tags": ["Ball"], "video_status": ApiStatus.SUCCESS},
            kind=MediaKind.VIDEO,
            source=video_source,
            direct_upload=True,
            overall_status=OverallStatus.COMPLETED,
            processed_at=STAMP,
        )

        assert result.created
        assert result.source_refreshed
        assert result.changes["tags"] == ["Cat"]
        assert result.changes["object_tags"] == ["Ball"]
        assert result.changes["videoApiStatus"] == "success"
        assert result.changes["visionApiStatus"] == "pending"
        assert result.changes["fileName"] == "clip.mp4"
        assert result.changes["overallProcessingStatus"] == "Completed"
        assert result.changes["processedAt"] == STAMP

    def test_existing_record_writes_only_step_fields(
        self, video_record: MediaRecord, video_source: SourceInfo
    ) -> None:
        result = reconcile(
            "abc123",
            video_record,
            {"tags": ["Dog"], "object_tags": [], "video_status": ApiStatus.SUCCESS, "video_error": None},
            kind=MediaKind.VIDEO,
            source=video_source,
            direct_upload=True,
            overall_status=OverallStatus.COMPLETED,
            processed_at=STAMP,
        )

        assert not result.created
        assert "transcription" not in result.changes
        assert "speechApiStatus" not in result.changes
        assert result.changes["tags"] == ["Dog"]
        assert result.changes["fileName"] == "clip.mp4"

    def test_derived_audio_keeps_video_source_and_labels(
        self, video_record: MediaRecord, audio_source: SourceInfo
    ) -> None:
        result = reconcile(
            "abc123",
            video_record,
            {
                "transcription": "hello world",
                "topics": ["Greetings"],
                "speech_status": ApiStatus.SUCCESS,
                "topics_status": ApiStatus.SUCCESS,
            },
            kind=MediaKind.AUDIO,
            source=audio_source,
            direct_upload=False,
            overall_status=OverallStatus.COMPLETED,
            processed_at=STAMP,
        )

        assert not result.source_refreshed
        for key in ("fileName", "bucket", "contentType", "mediaUri", "tags", "object_tags"):
            assert key not in result.changes
        assert result.record.source.path == "clip.mp4"
        assert result.record.tags == ["Cat"]
        assert result.record.object_tags == ["Ball"]
        assert result.record.transcription == "hello world"

    def test_derived_audio_for_missing_record_has_no_source(
        self, audio_source: SourceInfo
    ) -> None:
        """Audio arriving before the video's record still never writes source."""
        result = reconcile(
            "abc123",
            None,
            {"transcription": "", "speech_status": ApiStatus.NO_RESULTS},
            kind=MediaKind.AUDIO,
            source=audio_source,
            direct_upload=False,
            overall_status=OverallStatus.COMPLETED,
            processed_at=STAMP,
        )

        assert result.created
        assert result.record.source is None
        assert "fileName" not in result.changes
        assert "tags" not in result.changes

    def test_direct_audio_upload_sets_source(self) -> None:
        source = SourceInfo(path="note.wav", container_name="uploads", mime_type="audio/wav")

        result = reconcile(
            "ff00",
            None,
            {"speech_status": ApiStatus.NO_TRANSCRIPTION},
            kind=MediaKind.AUDIO,
            source=source,
            direct_upload=True,
            overall_status=OverallStatus.COMPLETED,
            processed_at=STAMP,
        )

        assert result.changes["fileName"] == "note.wav"

    def test_rejects_fields_of_other_capabilities(self, video_source: SourceInfo) -> None:
        with pytest.raises(ValueError, match="cannot write transcription"):
            reconcile(
                "abc123",
                None,
                {"transcription": "oops"},
                kind=MediaKind.VIDEO,
                source=video_source,
                direct_upload=True,
                overall_status=OverallStatus.COMPLETED,
            )

    def test_image_labels_are_deduplicated(self) -> None:
        source = SourceInfo(path="cat.jpg", container_name="uploads", mime_type="image/jpeg")

        result = reconcile(
            "ff00",
            None,
            {"tags": ["Cat", "Cat", "Whiskers"], "vision_status": ApiStatus.SUCCESS},
            kind=MediaKind.IMAGE,
            source=source,
            direct_upload=True,
            overall_status=OverallStatus.COMPLETED,
        )

        assert result.record.tags == ["Cat", "Whiskers"]


class TestMergePayloads:
    """Tests for in_progress_changes and failure_changes."""

    def test_in_progress_marks_primary_capability(self) -> None:
        changes = in_progress_changes(MediaKind.AUDIO, processed_at=STAMP)

        assert changes == {
            "speechApiStatus": "processing",
            "overallProcessingStatus": "In Progress",
            "processedAt": STAMP,
        }

    def test_failure_with_fatal_error(self) -> None:
        overall = OverallTracker()
        overall.fail(RuntimeError("boom"))

        changes = failure_changes(overall, processed_at=STAMP)

        assert changes["overallProcessingStatus"] == "Failed"
        assert changes["processingError"] == {"message": "boom", "kind": "RuntimeError"}

    def test_failure_without_error_omits_processing_error(self) -> None:
        overall = OverallTracker()
        overall.fail()

        assert "processingError" not in failure_changes(overall)

    def test_failure_settles_primary_capability(self) -> None:
        overall = OverallTracker()
        overall.fail(RuntimeError("boom"))

        changes = failure_changes(overall, MediaKind.VIDEO, processed_at=STAMP)

        assert changes["videoApiStatus"] == "error"
        assert changes["videoError"] == "boom"
        assert "visionApiStatus" not in changes
