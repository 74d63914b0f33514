"""Pytest configuration and fixtures for mediaflow tests."""

from __future__ import annotations

import base64
import copy
import tempfile
from pathlib import Path
from typing import Any

import pytest

from mediaflow.config import PipelineConfig
from mediaflow.models.schema import MediaRecord

HASH_HEX = "0123456789abcdef0123456789abcdef"
HASH_B64 = base64.b64encode(bytes.fromhex(HASH_HEX)).decode("ascii")


class FakeMetadataStore:
    """In-memory stand-in for MetadataStore.

    ``merge`` follows Firestore's ``set(merge=True)``: top-level keys are
    replaced, nested maps are merged key by key.
    """

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self.documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self.writes: list[tuple[str, dict[str, Any]]] = []

    def get(self, asset_id: str) -> MediaRecord | None:
        data = self.documents.get(asset_id)
        if data is None:
            return None
        return MediaRecord.from_document(asset_id, copy.deepcopy(data))

    def merge(self, asset_id: str, changes: dict[str, Any]) -> None:
        self.writes.append((asset_id, copy.deepcopy(changes)))
        _deep_merge(self.documents.setdefault(asset_id, {}), copy.deepcopy(changes))


def _deep_merge(target: dict[str, Any], changes: dict[str, Any]) -> None:
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config() -> PipelineConfig:
    """Config with every bucket and topic set."""
    return PipelineConfig(
        derived_audio_container="extracted-audio",
        extraction_topic="audio-extraction",
        output_audio_container="extracted-audio",
        project_id="test-project",
        operation_timeout=60,
    )


@pytest.fixture
def store() -> FakeMetadataStore:
    return FakeMetadataStore()


@pytest.fixture
def make_event():
    """Factory for raw storage object payloads."""

    def _make(name: str, content_type: str, bucket: str = "uploads", **extra: Any) -> dict:
        event = {
            "name": name,
            "bucket": bucket,
            "contentType": content_type,
            "md5Hash": HASH_B64,
            "timeCreated": "2024-05-01T12:00:00.000Z",
            "generation": 1714564800000000,
        }
        event.update(extra)
        return event

    return _make
