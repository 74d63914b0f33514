"""Image analysis stage: label detection and object localization.

Uses the Cloud Vision API against the object's gs:// URI, so the image
is never downloaded. The client is created lazily and reused.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from google.cloud import vision

from mediaflow.errors import ExternalServiceError

logger = logging.getLogger(__name__)

_vision_client: vision.ImageAnnotatorClient | None = None


@dataclass
class ImageAnnotation:
    """Raw labels and objects detected in an image."""

    labels: list[str] = field(default_factory=list)
    objects: list[str] = field(default_factory=list)

    @property
    def has_results(self) -> bool:
        return bool(self.labels or self.objects)


def _get_vision_client() -> vision.ImageAnnotatorClient:
    global _vision_client
    if _vision_client is None:
        _vision_client = vision.ImageAnnotatorClient()
        logger.info("Initialized Cloud Vision client")
    return _vision_client


def _check_response(response, operation: str) -> None:
    # Per-image failures come back in the response rather than as an exception
    if response.error.message:
        raise ExternalServiceError(f"Vision {operation} failed: {response.error.message}")


def annotate_image(uri: str) -> ImageAnnotation:
    """Detect labels and objects in an image.

    Args:
        uri: gs:// URI of the image.

    Returns:
        ImageAnnotation with label descriptions and object names.

    Raises:
        ExternalServiceError: If either Vision call fails.
    """
    image = vision.Image(source=vision.ImageSource(image_uri=uri))

    start_time = time.perf_counter()

    try:
        client = _get_vision_client()
        label_response = client.label_detection(image=image)
        _check_response(label_response, "label detection")

        object_response = client.object_localization(image=image)
        _check_response(object_response, "object localization")
    except ExternalServiceError:
        raise
    except Exception as e:
        raise ExternalServiceError(f"Vision request failed: {e}") from e

    result = ImageAnnotation(
        labels=[label.description for label in label_response.label_annotations if label.description],
        objects=[obj.name for obj in object_response.localized_object_annotations if obj.name],
    )

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"Vision complete: {len(result.labels)} labels, "
        f"{len(result.objects)} objects in {elapsed:.2f}s"
    )

    return result
