"""Speech stage: long-running transcription via Cloud Speech-to-Text.

This stage handles:
- Mapping a probed codec to a recognition encoding
- Running long-running recognition against the object's gs:// URI
- Joining the top alternative of each result into one transcript
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from google.cloud import speech_v1p1beta1 as speech

from mediaflow.errors import ExternalServiceError, UnsupportedCodecError
from mediaflow.stages.ingest import AudioProbe

logger = logging.getLogger(__name__)

_speech_client: speech.SpeechClient | None = None


@dataclass
class TranscriptionResult:
    """Outcome of one recognition request."""

    result_count: int = 0
    transcript: str = ""


def _get_speech_client() -> speech.SpeechClient:
    global _speech_client
    if _speech_client is None:
        _speech_client = speech.SpeechClient()
        logger.info("Initialized Speech-to-Text client")
    return _speech_client


def select_encoding(codec_name: str | None, content_type: str) -> str:
    """Pick the recognition encoding for an audio file.

    Args:
        codec_name: Codec reported by ffprobe, if any.
        content_type: Declared content type of the object.

    Returns:
        Encoding name: ``LINEAR16``, ``MP3`` or ``FLAC``.

    Raises:
        UnsupportedCodecError: If neither codec nor content type is recognized.
    """
    codec = (codec_name or "").lower()
    content_type = content_type.lower()

    if "pcm" in codec or "wav" in content_type:
        return "LINEAR16"
    if "mpeg" in codec or "mp3" in codec or "mp3" in content_type or "mpeg" in content_type:
        return "MP3"
    if "flac" in codec or "flac" in content_type:
        return "FLAC"

    raise UnsupportedCodecError(f"Unsupported audio codec: {codec_name}")


def build_recognition_config(
    probe: AudioProbe,
    content_type: str,
    language_code: str = "en-US",
) -> speech.RecognitionConfig:
    """Build the recognition config for a probed audio file.

    Raises:
        UnsupportedCodecError: If the codec has no matching encoding.
    """
    encoding = select_encoding(probe.codec_name, content_type)

    config = speech.RecognitionConfig(
        encoding=speech.RecognitionConfig.AudioEncoding[encoding],
        language_code=language_code,
        enable_automatic_punctuation=True,
    )
    if probe.sample_rate:
        config.sample_rate_hertz = probe.sample_rate
    if probe.channels > 1:
        config.audio_channel_count = probe.channels
    return config


def transcribe_audio(
    uri: str,
    probe: AudioProbe,
    content_type: str,
    language_code: str = "en-US",
    timeout: float | None = None,
) -> TranscriptionResult:
    """Transcribe an audio object.

    Args:
        uri: gs:// URI of the audio.
        probe: Codec, sample rate and channels of a local copy.
        content_type: Declared content type of the object.
        language_code: Recognition language.
        timeout: Seconds to wait for the operation (None waits indefinitely).

    Returns:
        TranscriptionResult with the result count and the joined transcript.

    Raises:
        UnsupportedCodecError: If the codec has no matching encoding.
        ExternalServiceError: If recognition fails.
    """
    config = build_recognition_config(probe, content_type, language_code)
    logger.info(f"Transcribing {uri} ({config.encoding.name}, {probe.sample_rate} Hz)...")
    start_time = time.perf_counter()

    try:
        client = _get_speech_client()
        operation = client.long_running_recognize(
            config=config,
            audio=speech.RecognitionAudio(uri=uri),
        )
        response = operation.result(timeout=timeout)
    except Exception as e:
        raise ExternalServiceError(f"Transcription failed: {e}") from e

    results = list(response.results)
    transcript = "\n".join(
        result.alternatives[0].transcript for result in results if result.alternatives
    ).strip()

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"Transcription complete: {len(results)} results, "
        f"{len(transcript)} characters in {elapsed:.2f}s"
    )

    return TranscriptionResult(result_count=len(results), transcript=transcript)
