"""Firestore-backed metadata store.

One collection, one document per asset ID. All writes are
``set(..., merge=True)`` so fields this pipeline does not own survive.
"""

from __future__ import annotations

import time
from typing import Any

from google.cloud import firestore

from mediaflow.errors import MetadataStoreError
from mediaflow.models.schema import MediaRecord
from mediaflow.utils.logging import get_logger

logger = get_logger(__name__)

# Lazily created clients, keyed by (project, database)
_clients: dict[tuple[str | None, str | None], firestore.Client] = {}


def _get_client(project_id: str | None = None, database_id: str | None = None) -> firestore.Client:
    key = (project_id, database_id)
    if key not in _clients:
        kwargs: dict[str, Any] = {}
        if project_id:
            kwargs["project"] = project_id
        if database_id:
            kwargs["database"] = database_id
        _clients[key] = firestore.Client(**kwargs)
        logger.info(f"Initialized Firestore client (database={database_id or '(default)'})")
    return _clients[key]


class MetadataStore:
    """Reads and merges media records in a Firestore collection."""

    def __init__(
        self,
        collection_name: str = "media_metadata",
        database_id: str | None = None,
        project_id: str | None = None,
        client: firestore.Client | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            collection_name: Collection holding one document per asset.
            database_id: Firestore database ID (None for the default database).
            project_id: Google Cloud project (None uses the ambient default).
            client: Pre-built client, mainly for tests.
        """
        self.collection_name = collection_name
        self._database_id = database_id
        self._project_id = project_id
        self._client = client

    @property
    def client(self) -> firestore.Client:
        if self._client is None:
            self._client = _get_client(self._project_id, self._database_id)
        return self._client

    def _document(self, asset_id: str):
        return self.client.collection(self.collection_name).document(asset_id)

    def get(self, asset_id: str) -> MediaRecord | None:
        """Load the record for an asset.

        Args:
            asset_id: Document ID.

        Returns:
            The normalized MediaRecord, or None if no document exists.

        Raises:
            MetadataStoreError: If the read fails or the document is malformed.
        """
        try:
            snapshot = self._document(asset_id).get()
        except Exception as e:
            raise MetadataStoreError(f"Failed to read record {asset_id}: {e}") from e

        if not snapshot.exists:
            return None

        try:
            return MediaRecord.from_document(asset_id, snapshot.to_dict() or {})
        except ValueError as e:
            raise MetadataStoreError(f"Record {asset_id} is malformed: {e}") from e

    def merge(self, asset_id: str, changes: dict[str, Any]) -> None:
        """Merge fields into an asset's document, creating it if absent.

        Args:
            asset_id: Document ID.
            changes: Document fields to write; other fields are left alone.

        Raises:
            MetadataStoreError: If the write fails.
        """
        start_time = time.perf_counter()

        try:
            self._document(asset_id).set(changes, merge=True)
        except Exception as e:
            raise MetadataStoreError(f"Failed to merge record {asset_id}: {e}") from e

        elapsed = time.perf_counter() - start_time
        logger.debug(f"Merged {len(changes)} fields into {asset_id} in {elapsed:.2f}s")
