"""Audio extraction worker.

Consumes the extraction requests published by the video path, pulls the
audio track out of the video with ffmpeg and uploads it as
``<assetId>.flac``. The upload lands in the derived-audio bucket, whose
notification runs the audio path against the video's own record.
"""

from __future__ import annotations

import tempfile
import time
from pathlib import Path, PurePosixPath

from mediaflow.config import PipelineConfig
from mediaflow.errors import TransportParseError
from mediaflow.stages.ingest import cleanup_temp_files, extract_audio
from mediaflow.store.blobs import download_blob, upload_file
from mediaflow.store.queue import parse_extraction_message
from mediaflow.utils.logging import get_logger

logger = get_logger(__name__)

EXTRACTED_CONTENT_TYPE = "audio/flac"


class AudioExtractor:
    """Turns extraction requests into FLAC uploads."""

    def __init__(self, config: PipelineConfig | None = None, work_dir: Path | None = None) -> None:
        """Initialize the extractor.

        Args:
            config: Configuration. Defaults to one read from the environment.
            work_dir: Directory for temporary files. Defaults to the system temp dir.
        """
        self.config = config if config is not None else PipelineConfig.from_env()
        self.work_dir = work_dir if work_dir is not None else Path(tempfile.gettempdir())

    def handle_message(self, data: bytes | str | None) -> str | None:
        """Handle one queue message.

        Malformed messages are logged and acknowledged (None is returned).
        Anything that fails after the message was understood is re-raised so
        the subscription redelivers it.

        Args:
            data: Message body, already base64-decoded.

        Returns:
            gs:// URI of the uploaded audio, or None if the message was dropped.

        Raises:
            ValueError: If the output audio bucket is not configured.
            TranscoderError: If ffmpeg fails.
            BlobStorageError: If the download or upload fails.
        """
        self.config.validate_for_extraction()

        try:
            request = parse_extraction_message(data)
        except TransportParseError as e:
            logger.error(f"Error: {e} Acknowledging message without retry.")
            return None

        logger.info(
            f"Processing video: gs://{request.source_container}/{request.source_path} "
            f"for Doc ID: {request.asset_id}"
        )

        output_name = f"{request.asset_id}.flac"
        # Requests are handled concurrently; each gets its own directory
        scratch = tempfile.TemporaryDirectory(
            prefix=f"{request.asset_id}_", dir=self.work_dir, ignore_cleanup_errors=True
        )
        local_video = Path(scratch.name) / PurePosixPath(request.source_path).name
        local_audio = Path(scratch.name) / output_name

        start_time = time.perf_counter()

        try:
            download_blob(request.source_container, request.source_path, local_video)
            extract_audio(local_video, local_audio)
            uri = upload_file(
                self.config.output_audio_container,
                local_audio,
                output_name,
                content_type=EXTRACTED_CONTENT_TYPE,
            )
        except Exception as e:
            logger.error(f"Error extracting audio for {request.source_path}: {e}")
            raise
        finally:
            logger.info("Cleaning up temporary files...")
            cleanup_temp_files(local_video, local_audio)
            scratch.cleanup()

        elapsed = time.perf_counter() - start_time
        logger.info(f"Audio extraction completed for {request.source_path} in {elapsed:.2f}s: {uri}")

        return uri
