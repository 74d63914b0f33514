"""Ingestion stage: local media probing and audio track extraction.

This stage handles:
- Audio stream inspection via ffprobe (codec, sample rate, channels)
- Audio track extraction from video via ffmpeg
- Best-effort removal of temporary files
"""

from __future__ import annotations

import json
import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from mediaflow.errors import IngestError, TranscoderError

logger = logging.getLogger(__name__)

FFMPEG_INSTALL_HINT = (
    "Please install FFmpeg:\n"
    "  Ubuntu/Debian: sudo apt install ffmpeg\n"
    "  macOS: brew install ffmpeg\n"
    "  Windows: choco install ffmpeg"
)

# Output of the extractor: mono 16kHz FLAC
EXTRACTED_SAMPLE_RATE = 16000
EXTRACTED_CHANNELS = 1
EXTRACTED_CODEC = "flac"


@dataclass
class AudioProbe:
    """Audio stream properties from ffprobe."""

    codec_name: str | None
    sample_rate: int | None
    channels: int
    format_name: str
    duration: float


def _run_ffprobe(source: Path) -> dict:
    """Run ffprobe and return parsed JSON output.

    Args:
        source: Path to the media file.

    Returns:
        Parsed JSON from ffprobe.

    Raises:
        IngestError: If ffprobe fails or is not installed.
    """
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(source),
    ]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=30,
        )
    except FileNotFoundError:
        raise IngestError(f"ffprobe not found. {FFMPEG_INSTALL_HINT}")
    except subprocess.TimeoutExpired:
        raise IngestError(f"ffprobe timed out reading: {source}")

    if result.returncode != 0:
        raise IngestError(f"ffprobe failed: {result.stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise IngestError(f"Failed to parse ffprobe output: {e}")


def _parse_audio_probe(data: dict) -> AudioProbe:
    """Parse ffprobe JSON into an AudioProbe.

    Args:
        data: Parsed ffprobe JSON.

    Returns:
        AudioProbe for the first audio stream.

    Raises:
        IngestError: If the file has no audio stream.
    """
    streams = data.get("streams", [])
    format_info = data.get("format", {})

    audio_stream = None
    for stream in streams:
        if stream.get("codec_type") == "audio":
            audio_stream = stream
            break

    if audio_stream is None:
        raise IngestError("No audio stream found")

    sample_rate = audio_stream.get("sample_rate")

    # Prefer format duration, fall back to stream
    duration = 0.0
    if "duration" in format_info:
        duration = float(format_info["duration"])
    elif "duration" in audio_stream:
        duration = float(audio_stream["duration"])

    format_name = format_info.get("format_name", "unknown")
    if "," in format_name:
        format_name = format_name.split(",")[0]

    return AudioProbe(
        codec_name=audio_stream.get("codec_name"),
        sample_rate=int(sample_rate) if sample_rate else None,
        channels=int(audio_stream.get("channels") or 0),
        format_name=format_name,
        duration=duration,
    )


def probe_audio(source: Path) -> AudioProbe:
    """Probe a local audio file.

    Args:
        source: Path to the audio file.

    Returns:
        AudioProbe with codec, sample rate and channel count.

    Raises:
        FileNotFoundError: If the file does not exist.
        IngestError: If probing fails.
    """
    if not source.exists():
        raise FileNotFoundError(f"Audio file not found: {source}")

    start_time = time.perf_counter()

    probe = _parse_audio_probe(_run_ffprobe(source))

    elapsed = time.perf_counter() - start_time
    logger.debug(f"Probed {source.name} in {elapsed:.2f}s")

    return probe


def extract_audio(
    source: Path,
    output_path: Path,
    timeout: float = 300,
) -> Path:
    """Extract the audio track of a video as mono 16kHz FLAC.

    Args:
        source: Path to the local video file.
        output_path: Where to write the FLAC file (overwritten if present).
        timeout: Seconds to allow ffmpeg to run.

    Returns:
        Path to the extracted FLAC file.

    Raises:
        TranscoderError: If ffmpeg cannot start, times out or exits non-zero.
    """
    cmd = [
        "ffmpeg",
        "-i", str(source),
        "-y",  # Overwrite output
        "-vn",  # No video
        "-ac", str(EXTRACTED_CHANNELS),
        "-ar", str(EXTRACTED_SAMPLE_RATE),
        "-acodec", EXTRACTED_CODEC,
        str(output_path),
    ]

    logger.info(f"Extracting audio from {source.name} -> {output_path.name}")
    start_time = time.perf_counter()

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise TranscoderError(f"FFmpeg failed to start: ffmpeg not found. {FFMPEG_INSTALL_HINT}")
    except OSError as e:
        raise TranscoderError(f"FFmpeg failed to start: {e}") from e
    except subprocess.TimeoutExpired:
        raise TranscoderError(f"Audio extraction timed out for: {source}")

    if result.returncode != 0:
        logger.error(f"FFmpeg failed. Code: {result.returncode}. Stderr: {result.stderr}")
        raise TranscoderError(f"FFmpeg process exited with code {result.returncode}.")

    elapsed = time.perf_counter() - start_time
    logger.info(f"Audio extracted in {elapsed:.2f}s: {output_path}")

    return output_path


def cleanup_temp_files(*paths: Path) -> None:
    """Delete temporary files, logging instead of raising on failure."""
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete temp file {path}: {e}")
