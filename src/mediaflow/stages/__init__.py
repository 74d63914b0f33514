"""Processing stages for the mediaflow pipeline.

Each stage handles a specific part of processing one upload:
- identity: Stable asset ID from content hash or filename
- status: Per-capability status state machine
- reconcile: Merging stage results into the media record
- ingest: Local probing and audio track extraction (ffmpeg)
- vision: Image labels and objects (Cloud Vision)
- video: Video labels and tracked objects (Video Intelligence)
- speech: Transcription (Speech-to-Text)
- topics: Topic extraction from transcripts (Vertex AI)
"""

__all__ = [
    "identity",
    "status",
    "reconcile",
    "ingest",
    "vision",
    "video",
    "speech",
    "topics",
]
