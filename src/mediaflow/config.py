"""Configuration and settings for mediaflow pipelines."""

from __future__ import annotations

import os
from typing import Mapping

from pydantic import BaseModel, Field

# Environment variable names, shared with the deployed functions
ENV_METADATA_COLLECTION = "METADATA_COLLECTION"
ENV_DATABASE_ID = "DATABASE_ID"
ENV_DERIVED_AUDIO_CONTAINER = "EXTRACTED_AUDIO_BUCKET_NAME"
ENV_EXTRACTION_TOPIC = "AUDIO_EXTRACTION_TOPIC"
ENV_OUTPUT_AUDIO_CONTAINER = "OUTPUT_AUDIO_BUCKET_NAME"
ENV_PROJECT_ID = "GCP_PROJECT_ID"
ENV_LOCATION = "GCP_LOCATION"
ENV_TOPICS_MODEL = "TOPICS_MODEL"
ENV_LANGUAGE_CODE = "SPEECH_LANGUAGE_CODE"
ENV_OPERATION_TIMEOUT = "OPERATION_TIMEOUT_SECONDS"
ENV_LOG_LEVEL = "LOG_LEVEL"


class PipelineConfig(BaseModel):
    """Configuration for the ingestion pipeline and the audio extractor."""

    metadata_collection: str = Field(
        default="media_metadata", description="Firestore collection holding media records"
    )
    database_id: str | None = Field(
        default=None, description="Firestore database ID (None for the default database)"
    )
    derived_audio_container: str | None = Field(
        default=None,
        description="Bucket receiving audio tracks extracted from videos",
    )
    extraction_topic: str | None = Field(
        default=None, description="Pub/Sub topic consumed by the audio extractor"
    )
    output_audio_container: str | None = Field(
        default=None, description="Bucket the audio extractor uploads FLAC files to"
    )
    project_id: str | None = Field(
        default=None, description="Google Cloud project for Pub/Sub and Vertex AI"
    )
    location: str = Field(default="us-central1", description="Vertex AI region")
    topics_model: str = Field(
        default="gemini-pro", description="Generative model used for topic extraction"
    )
    language_code: str = Field(default="en-US", description="Speech recognition language")
    operation_timeout: float = Field(
        default=540.0,
        gt=0,
        description="Seconds to wait for long-running speech/video operations",
    )
    log_level: str = Field(default="INFO", description="Logging level name")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PipelineConfig:
        """Build a config from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            PipelineConfig with unset variables left at their defaults.
        """
        env = os.environ if environ is None else environ

        mapping = {
            "metadata_collection": ENV_METADATA_COLLECTION,
            "database_id": ENV_DATABASE_ID,
            "derived_audio_container": ENV_DERIVED_AUDIO_CONTAINER,
            "extraction_topic": ENV_EXTRACTION_TOPIC,
            "output_audio_container": ENV_OUTPUT_AUDIO_CONTAINER,
            "project_id": ENV_PROJECT_ID,
            "location": ENV_LOCATION,
            "topics_model": ENV_TOPICS_MODEL,
            "language_code": ENV_LANGUAGE_CODE,
            "operation_timeout": ENV_OPERATION_TIMEOUT,
            "log_level": ENV_LOG_LEVEL,
        }
        values = {field: env[name] for field, name in mapping.items() if env.get(name)}
        return cls(**values)

    def is_derived_audio(self, container: str) -> bool:
        """Check whether a bucket is the derived-audio bucket."""
        return bool(self.derived_audio_container) and container == self.derived_audio_container

    def validate_for_fanout(self) -> None:
        """Validate that the video path can publish extraction requests.

        Raises:
            ValueError: If the extraction topic is not configured.
        """
        if not self.extraction_topic:
            raise ValueError(
                f"{ENV_EXTRACTION_TOPIC} environment variable not set.\n"
                "Video uploads publish an audio extraction request after analysis;\n"
                "set it to the topic the extractor subscribes to, e.g.\n"
                f"   export {ENV_EXTRACTION_TOPIC}='audio-extraction'"
            )
        if not self.project_id and not self.extraction_topic.startswith("projects/"):
            raise ValueError(
                f"{ENV_PROJECT_ID} environment variable not set.\n"
                f"Either set it or give {ENV_EXTRACTION_TOPIC} as a full topic path:\n"
                "   projects/<project>/topics/<topic>"
            )

    def validate_for_extraction(self) -> None:
        """Validate that the audio extractor has somewhere to upload to.

        Raises:
            ValueError: If the output audio bucket is not configured.
        """
        if not self.output_audio_container:
            raise ValueError(f"{ENV_OUTPUT_AUDIO_CONTAINER} environment variable not set.")
