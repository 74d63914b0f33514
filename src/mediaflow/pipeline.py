"""Main pipeline orchestration for mediaflow."""

from __future__ import annotations

import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Callable

from mediaflow.config import PipelineConfig
from mediaflow.errors import (
    ExternalServiceError,
    FatalPipelineError,
    MissingIdentifierError,
    StageError,
)
from mediaflow.models.events import (
    AssetEvent,
    ExtractionRequest,
    classify_media_kind,
    normalize_asset_event,
)
from mediaflow.models.schema import ApiStatus, MediaKind, MediaRecord, SourceInfo
from mediaflow.stages.identity import derive_asset_id
from mediaflow.stages.ingest import cleanup_temp_files, probe_audio
from mediaflow.stages.reconcile import (
    failure_changes,
    in_progress_changes,
    reconcile,
)
from mediaflow.stages.speech import transcribe_audio
from mediaflow.stages.status import Capability, OverallTracker, StageTracker
from mediaflow.stages.topics import generate_topics
from mediaflow.stages.video import annotate_video
from mediaflow.stages.vision import annotate_image
from mediaflow.store.blobs import download_blob
from mediaflow.store.firestore import MetadataStore
from mediaflow.store.queue import publish_message
from mediaflow.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StageOutcome:
    """Capability fields produced by one path, plus the step's overall status."""

    update: dict[str, Any] = field(default_factory=dict)
    overall: OverallTracker = field(default_factory=OverallTracker)


class Pipeline:
    """mediaflow ingestion pipeline.

    Handles one storage notification per call: derives the asset ID, runs the
    analysis path for the content type, merges the results into the asset's
    record and, for videos, requests audio extraction.

    Example:
        >>> import mediaflow
        >>> pipeline = mediaflow.Pipeline()
        >>> record = pipeline.handle_event({"bucket": "uploads", "name": "clip.mp4", ...})
        >>> record.tags
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        store: MetadataStore | None = None,
    ) -> None:
        """Initialize a mediaflow pipeline.

        Args:
            config: Pipeline configuration. Defaults to one read from the environment.
            store: Metadata store. Defaults to a Firestore store built from the config.
        """
        self.config = config if config is not None else PipelineConfig.from_env()
        self.store = store if store is not None else MetadataStore(
            collection_name=self.config.metadata_collection,
            database_id=self.config.database_id,
            project_id=self.config.project_id,
        )

        self._handlers: dict[MediaKind, Callable[[AssetEvent, str], StageOutcome]] = {
            MediaKind.AUDIO: self._process_audio,
            MediaKind.VIDEO: self._process_video,
            MediaKind.IMAGE: self._process_image,
        }

        logger.info(
            f"mediaflow pipeline initialized (collection={self.config.metadata_collection}, "
            f"derived_audio={self.config.derived_audio_container})"
        )

    def handle_event(self, event: AssetEvent | dict[str, Any]) -> MediaRecord | None:
        """Process one storage notification.

        Args:
            event: AssetEvent or a raw storage/CloudEvent payload.

        Returns:
            The reconciled record, or None if the event was dropped.

        Raises:
            FatalPipelineError: If processing failed unexpectedly. The error is
                recorded on the record first (best-effort) so the caller can
                let the trigger retry.
        """
        if not isinstance(event, AssetEvent):
            event = normalize_asset_event(event)

        if event.deleted:
            logger.info(f"File {event.path} was deleted. Skipping.")
            return None

        logger.info(
            f"Processing file: {event.path} from bucket: {event.container}, "
            f"Content-Type: {event.content_type}"
        )

        try:
            asset_id = derive_asset_id(event, self.config.derived_audio_container)
        except MissingIdentifierError as e:
            logger.error(f"Error: {e}. Aborting.")
            return None

        kind = classify_media_kind(event.content_type)
        if kind is None:
            logger.info(f"Unsupported content type: {event.content_type}. Skipping.")
            return None

        logger.info(f"Using document ID: {asset_id}")

        try:
            return self._dispatch(kind, event, asset_id)
        except FatalPipelineError:
            raise
        except Exception as e:
            raise self._fatal(event, asset_id, e) from e

    def _dispatch(self, kind: MediaKind, event: AssetEvent, asset_id: str) -> MediaRecord:
        start_time = time.perf_counter()
        direct_upload = not self.config.is_derived_audio(event.container)

        if kind is MediaKind.VIDEO:
            self.config.validate_for_fanout()

        existing = self.store.get(asset_id)
        self.store.merge(asset_id, in_progress_changes(kind))

        # Errors past the marker must also settle the capability it left at processing
        try:
            outcome = self._handlers[kind](event, asset_id)

            result = reconcile(
                asset_id,
                existing,
                outcome.update,
                kind=kind,
                source=SourceInfo.from_event(event),
                direct_upload=direct_upload,
                overall_status=outcome.overall.status,
            )
            self.store.merge(asset_id, result.changes)
        except Exception as e:
            raise self._fatal(event, asset_id, e, kind=kind) from e

        label = f"[{kind.value.upper()}_PATH]"
        logger.info(f"{label} Merge complete for ID {asset_id} ({outcome.overall.status.value})")

        if kind is MediaKind.VIDEO and result.record.video_status is not ApiStatus.ERROR:
            self._request_audio_extraction(event, asset_id)

        elapsed = time.perf_counter() - start_time
        logger.info(f"{label} Finished {event.path} in {elapsed:.2f}s")

        return result.record

    def _process_audio(self, event: AssetEvent, asset_id: str) -> StageOutcome:
        logger.info(f"[AUDIO_PATH] Handling audio file for ID {asset_id}.")

        speech = StageTracker(Capability.SPEECH)
        topics = StageTracker(Capability.TOPICS)
        outcome = StageOutcome(update={"transcription": "", "topics": []})

        # One directory per invocation; duplicate notifications for an asset may overlap
        work_dir = tempfile.TemporaryDirectory(prefix=f"{asset_id}_", ignore_cleanup_errors=True)
        local_path = Path(work_dir.name) / PurePosixPath(event.path).name

        speech.begin()
        try:
            download_blob(event.container, event.path, local_path)
            probe = probe_audio(local_path)
            transcription = transcribe_audio(
                event.uri,
                probe,
                event.content_type,
                language_code=self.config.language_code,
                timeout=self.config.operation_timeout,
            )

            if transcription.result_count == 0:
                speech.complete(has_results=False)
                topics.skip()
            elif not transcription.transcript:
                speech.no_transcription()
                topics.skip()
            else:
                outcome.update["transcription"] = transcription.transcript
                speech.complete(has_results=True)
                logger.info("[AUDIO_PATH] Transcription successful. Analyzing for topics...")

                topics.begin()
                try:
                    generated = generate_topics(
                        transcription.transcript,
                        model_name=self.config.topics_model,
                        project_id=self.config.project_id,
                        location=self.config.location,
                    )
                    outcome.update["topics"] = generated
                    topics.complete(has_results=bool(generated))
                except ExternalServiceError as e:
                    topics.fail(e)
                    logger.error(f"[AUDIO_PATH] Error during topic generation: {e}")
        except (StageError, FileNotFoundError) as e:
            speech.fail(e)
            logger.error(f"[AUDIO_PATH] Error during audio processing: {e}")
        finally:
            cleanup_temp_files(local_path)
            work_dir.cleanup()

        outcome.update.update(speech.as_update())
        outcome.update.update(topics.as_update())
        self._finish(outcome, speech)
        return outcome

    def _process_video(self, event: AssetEvent, asset_id: str) -> StageOutcome:
        logger.info(f"[VIDEO_PATH] Handling video for ID {asset_id}.")

        video = StageTracker(Capability.VIDEO)
        outcome = StageOutcome()

        video.begin()
        try:
            annotation = annotate_video(event.uri, timeout=self.config.operation_timeout)
            outcome.update["tags"] = annotation.labels
            outcome.update["object_tags"] = annotation.objects
            video.complete(has_results=annotation.has_results)
        except ExternalServiceError as e:
            video.fail(e)
            logger.error(f"[VIDEO_PATH] Error during video annotation: {e}")

        outcome.update.update(video.as_update())
        self._finish(outcome, video)
        return outcome

    def _process_image(self, event: AssetEvent, asset_id: str) -> StageOutcome:
        logger.info(f"[IMAGE_PATH] Handling image for ID {asset_id}.")

        vision = StageTracker(Capability.VISION)
        outcome = StageOutcome()

        vision.begin()
        try:
            annotation = annotate_image(event.uri)
            outcome.update["tags"] = annotation.labels
            outcome.update["object_tags"] = annotation.objects
            vision.complete(has_results=annotation.has_results)
        except ExternalServiceError as e:
            vision.fail(e)
            logger.error(f"[IMAGE_PATH] Error during image analysis: {e}")

        outcome.update.update(vision.as_update())
        self._finish(outcome, vision)
        return outcome

    @staticmethod
    def _finish(outcome: StageOutcome, primary: StageTracker) -> None:
        # Only the path's own capability decides the step; a topics failure does not
        if primary.failed:
            outcome.overall.fail()
        else:
            outcome.overall.complete()

    def _request_audio_extraction(self, event: AssetEvent, asset_id: str) -> str:
        request = ExtractionRequest(
            source_container=event.container,
            source_path=event.path,
            asset_id=asset_id,
        )
        message_id = publish_message(
            request.to_message(),
            topic=self.config.extraction_topic,
            project_id=self.config.project_id,
        )
        logger.info(f"[VIDEO_PATH] Message published to {self.config.extraction_topic}.")
        return message_id

    def _fatal(
        self,
        event: AssetEvent,
        asset_id: str,
        error: BaseException,
        kind: MediaKind | None = None,
    ) -> FatalPipelineError:
        logger.exception(f"FATAL ERROR for {event.path} (ID: {asset_id}): {error}")
        self._record_fatal_error(asset_id, error, kind)
        return FatalPipelineError(f"Processing failed for {event.path}: {error}")

    def _record_fatal_error(
        self,
        asset_id: str,
        error: BaseException,
        kind: MediaKind | None = None,
    ) -> None:
        overall = OverallTracker()
        overall.fail(error)
        try:
            self.store.merge(asset_id, failure_changes(overall, kind))
        except Exception as e:
            logger.error(f"CRITICAL: Could not save fatal error state for {asset_id}: {e}")
