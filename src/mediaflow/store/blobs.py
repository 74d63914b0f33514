"""Cloud Storage helpers for downloading uploads and storing extracted audio."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from google.cloud import storage

from mediaflow.errors import ExternalServiceError

logger = logging.getLogger(__name__)

_storage_client: storage.Client | None = None


class BlobStorageError(ExternalServiceError):
    """Error transferring an object to or from Cloud Storage."""

    pass


def get_storage_client() -> storage.Client:
    global _storage_client
    if _storage_client is None:
        _storage_client = storage.Client()
        logger.info("Initialized Cloud Storage client")
    return _storage_client


def download_blob(container: str, path: str, destination: Path) -> Path:
    """Download an object to a local file.

    Args:
        container: Bucket name.
        path: Object path within the bucket.
        destination: Local file to write.

    Returns:
        The destination path.

    Raises:
        BlobStorageError: If the download fails.
    """
    start_time = time.perf_counter()

    try:
        blob = get_storage_client().bucket(container).blob(path)
        blob.download_to_filename(str(destination))
    except Exception as e:
        raise BlobStorageError(f"Failed to download gs://{container}/{path}: {e}") from e

    elapsed = time.perf_counter() - start_time
    logger.info(f"Downloaded gs://{container}/{path} to {destination} in {elapsed:.2f}s")

    return destination


def upload_file(container: str, source: Path, destination: str, content_type: str) -> str:
    """Upload a local file as an object.

    Args:
        container: Bucket name.
        source: Local file to upload.
        destination: Object path within the bucket.
        content_type: Content type stored on the object.

    Returns:
        gs:// URI of the uploaded object.

    Raises:
        BlobStorageError: If the upload fails.
    """
    uri = f"gs://{container}/{destination}"
    start_time = time.perf_counter()

    try:
        blob = get_storage_client().bucket(container).blob(destination)
        blob.upload_from_filename(str(source), content_type=content_type)
    except Exception as e:
        raise BlobStorageError(f"Failed to upload {source} to {uri}: {e}") from e

    elapsed = time.perf_counter() - start_time
    logger.info(f"Uploaded {source.name} to {uri} in {elapsed:.2f}s")

    return uri
