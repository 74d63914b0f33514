"""Asset identifier derivation.

A direct upload is keyed by its content hash, so re-uploading the same bytes
under another name lands on the same record. An audio track extracted from a
video is uploaded as ``<assetId>.flac`` and is keyed by its filename stem,
which points it back at the parent video's record.
"""

from __future__ import annotations

import base64
import binascii
from pathlib import PurePosixPath

from mediaflow.errors import MissingIdentifierError
from mediaflow.models.events import AssetEvent


def hash_to_hex(content_hash: str) -> str:
    """Convert a base64 content hash to lowercase hex.

    Raises:
        MissingIdentifierError: If the hash is not valid base64.
    """
    try:
        return base64.b64decode(content_hash, validate=True).hex()
    except (binascii.Error, ValueError) as e:
        raise MissingIdentifierError(f"Content hash is not valid base64: {content_hash!r}") from e


def derive_asset_id(event: AssetEvent, derived_audio_container: str | None) -> str:
    """Compute the stable asset ID for an event.

    Args:
        event: Storage notification being processed.
        derived_audio_container: Bucket holding audio tracks extracted from
            videos, or None if not configured.

    Returns:
        Filename stem for derived audio, lowercase hex hash otherwise.

    Raises:
        MissingIdentifierError: If a direct upload carries no usable hash.
    """
    if derived_audio_container and event.container == derived_audio_container:
        stem = PurePosixPath(event.path).stem
        if not stem:
            raise MissingIdentifierError(f"Derived audio object has no filename: {event.path!r}")
        return stem

    if not event.content_hash:
        raise MissingIdentifierError(f"md5Hash is missing for file {event.path}")

    asset_id = hash_to_hex(event.content_hash)
    if not asset_id:
        raise MissingIdentifierError(f"md5Hash is empty for file {event.path}")
    return asset_id
