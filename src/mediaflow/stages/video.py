"""Video analysis stage: segment labels and object tracking.

Runs a Video Intelligence long-running annotation and waits for it within
the invocation. Nothing is checkpointed; if the invocation dies mid-wait the
annotation is simply requested again on retry.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from google.cloud import videointelligence

from mediaflow.errors import ExternalServiceError

logger = logging.getLogger(__name__)

VIDEO_FEATURES = [
    videointelligence.Feature.LABEL_DETECTION,
    videointelligence.Feature.OBJECT_TRACKING,
]

_video_client: videointelligence.VideoIntelligenceServiceClient | None = None


@dataclass
class VideoAnnotation:
    """Raw segment labels and tracked objects for a video.

    Entries may repeat; the reconciler dedupes them.
    """

    labels: list[str] = field(default_factory=list)
    objects: list[str] = field(default_factory=list)

    @property
    def has_results(self) -> bool:
        return bool(self.labels or self.objects)


def _get_video_client() -> videointelligence.VideoIntelligenceServiceClient:
    global _video_client
    if _video_client is None:
        _video_client = videointelligence.VideoIntelligenceServiceClient()
        logger.info("Initialized Video Intelligence client")
    return _video_client


def annotate_video(uri: str, timeout: float | None = None) -> VideoAnnotation:
    """Annotate a video with segment labels and tracked objects.

    Args:
        uri: gs:// URI of the video.
        timeout: Seconds to wait for the operation (None waits indefinitely).

    Returns:
        VideoAnnotation; empty when the service returned no annotation results.

    Raises:
        ExternalServiceError: If the request or the operation fails.
    """
    logger.info(f"Annotating {uri}...")
    start_time = time.perf_counter()

    try:
        client = _get_video_client()
        operation = client.annotate_video(
            request={"input_uri": uri, "features": VIDEO_FEATURES}
        )
        response = operation.result(timeout=timeout)
    except Exception as e:
        raise ExternalServiceError(f"Video annotation failed: {e}") from e

    if not response.annotation_results:
        logger.info(f"No annotation results for {uri}")
        return VideoAnnotation()

    results = response.annotation_results[0]
    annotation = VideoAnnotation(
        labels=[
            label.entity.description
            for label in results.segment_label_annotations
            if label.entity.description
        ],
        objects=[
            obj.entity.description
            for obj in results.object_annotations
            if obj.entity.description
        ],
    )

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"Video annotation complete: {len(annotation.labels)} labels, "
        f"{len(annotation.objects)} objects in {elapsed:.2f}s"
    )

    return annotation
