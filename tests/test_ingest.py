"""Tests for the ingestion stage."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from mediaflow.errors import IngestError, TranscoderError
from mediaflow.stages.ingest import (
    AudioProbe,
    _parse_audio_probe,
    cleanup_temp_files,
    extract_audio,
    probe_audio,
)


class TestParseAudioProbe:
    """Tests for _parse_audio_probe function."""

    def test_parse_wav(self) -> None:
        """Should parse a PCM stream."""
        data = {
            "format": {"duration": "12.5", "format_name": "wav"},
            "streams": [
                {"codec_type": "audio", "codec_name": "pcm_s16le", "sample_rate": "44100", "channels": 2},
            ],
        }

        result = _parse_audio_probe(data)

        assert result.codec_name == "pcm_s16le"
        assert result.sample_rate == 44100
        assert result.channels == 2
        assert result.duration == 12.5
        assert result.format_name == "wav"

    def test_picks_audio_stream_of_video(self) -> None:
        """Should skip the video stream."""
        data = {
            "format": {"duration": "60.0", "format_name": "mov,mp4,m4a,3gp,3g2,mj2"},
            "streams": [
                {"codec_type": "video", "codec_name": "h264"},
                {"codec_type": "audio", "codec_name": "aac", "sample_rate": "48000", "channels": 2},
            ],
        }

        result = _parse_audio_probe(data)

        assert result.codec_name == "aac"
        assert result.format_name == "mov"

    def test_stream_duration_fallback(self) -> None:
        """Should use stream duration when format has none."""
        data = {
            "format": {"format_name": "flac"},
            "streams": [{"codec_type": "audio", "codec_name": "flac", "duration": "3.0"}],
        }

        result = _parse_audio_probe(data)

        assert result.duration == 3.0
        assert result.sample_rate is None
        assert result.channels == 0

    def test_no_audio_stream(self) -> None:
        """Should raise IngestError for files without audio."""
        data = {"format": {}, "streams": [{"codec_type": "video"}]}

        with pytest.raises(IngestError, match="No audio stream"):
            _parse_audio_probe(data)


class TestProbeAudio:
    """Tests for probe_audio function."""

    def test_file_not_found(self, temp_dir: Path) -> None:
        """Should raise FileNotFoundError for missing file."""
        with pytest.raises(FileNotFoundError):
            probe_audio(temp_dir / "missing.wav")

    def test_ffprobe_not_found(self, temp_dir: Path) -> None:
        """Should raise IngestError when ffprobe is not installed."""
        audio_path = temp_dir / "note.wav"
        audio_path.write_bytes(b"fake")

        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(IngestError, match="ffprobe not found"):
                probe_audio(audio_path)

    def test_ffprobe_timeout(self, temp_dir: Path) -> None:
        """Should raise IngestError on timeout."""
        audio_path = temp_dir / "note.wav"
        audio_path.write_bytes(b"fake")

        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("ffprobe", 30)):
            with pytest.raises(IngestError, match="timed out"):
                probe_audio(audio_path)

    def test_success(self, temp_dir: Path) -> None:
        """Should return AudioProbe on success."""
        audio_path = temp_dir / "note.mp3"
        audio_path.write_bytes(b"fake")

        mock_result = MagicMock()
        mock_result.returncode = 0
        mock_result.stdout = """{
            "format": {"duration": "5.0", "format_name": "mp3"},
            "streams": [{"codec_type": "audio", "codec_name": "mp3", "sample_rate": "22050", "channels": 1}]
        }"""

        with patch("subprocess.run", return_value=mock_result):
            result = probe_audio(audio_path)

        assert isinstance(result, AudioProbe)
        assert result.codec_name == "mp3"
        assert result.sample_rate == 22050


class TestExtractAudio:
    """Tests for extract_audio function."""

    def test_mono_16k_flac(self, temp_dir: Path) -> None:
        """Should extract audio as 16kHz mono FLAC without video."""
        video_path = temp_dir / "clip.mp4"
        output_path = temp_dir / "abc.flac"
        captured_cmd = []

        def capture_cmd(*args, **kwargs):
            captured_cmd.extend(args[0])
            mock = MagicMock()
            mock.returncode = 0
            return mock

        with patch("subprocess.run", side_effect=capture_cmd):
            result = extract_audio(video_path, output_path)

        assert result == output_path
        assert captured_cmd[0] == "ffmpeg"
        assert "-vn" in captured_cmd
        assert captured_cmd[captured_cmd.index("-ac") + 1] == "1"
        assert captured_cmd[captured_cmd.index("-ar") + 1] == "16000"
        assert captured_cmd[captured_cmd.index("-acodec") + 1] == "flac"
        assert captured_cmd[-1] == str(output_path)

    def test_ffmpeg_not_found(self, temp_dir: Path) -> None:
        """Should raise TranscoderError when ffmpeg is not installed."""
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(TranscoderError, match="failed to start"):
                extract_audio(temp_dir / "clip.mp4", temp_dir / "abc.flac")

    def test_ffmpeg_nonzero_exit(self, temp_dir: Path) -> None:
        """Should raise TranscoderError with the exit code."""
        mock_result = MagicMock()
        mock_result.returncode = 1
        mock_result.stderr = "Invalid data found when processing input"

        with patch("subprocess.run", return_value=mock_result):
            with pytest.raises(TranscoderError, match="exited with code 1"):
                extract_audio(temp_dir / "clip.mp4", temp_dir / "abc.flac")

    def test_ffmpeg_timeout(self, temp_dir: Path) -> None:
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("ffmpeg", 5)):
            with pytest.raises(TranscoderError, match="timed out"):
                extract_audio(temp_dir / "clip.mp4", temp_dir / "abc.flac", timeout=5)

    def test_transcoder_error_is_ingest_error(self) -> None:
        assert issubclass(TranscoderError, IngestError)


class TestCleanupTempFiles:
    """Tests for cleanup_temp_files function."""

    def test_removes_existing_and_ignores_missing(self, temp_dir: Path) -> None:
        existing = temp_dir / "a.mp4"
        existing.write_bytes(b"data")

        cleanup_temp_files(existing, temp_dir / "missing.flac")

        assert not existing.exists()

    def test_logs_instead_of_raising(self, temp_dir: Path) -> None:
        path = MagicMock(spec=Path)
        path.unlink.side_effect = PermissionError("denied")

        cleanup_temp_files(path)

        path.unlink.assert_called_once_with(missing_ok=True)
