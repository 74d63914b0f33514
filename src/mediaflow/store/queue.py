"""Pub/Sub transport for audio extraction requests."""

from __future__ import annotations

import json
import logging

from google.cloud import pubsub_v1
from pydantic import ValidationError

from mediaflow.errors import TransportParseError
from mediaflow.models.events import ExtractionRequest

logger = logging.getLogger(__name__)

PUBLISH_TIMEOUT = 10

_publisher: pubsub_v1.PublisherClient | None = None


def get_publisher() -> pubsub_v1.PublisherClient:
    global _publisher
    if _publisher is None:
        _publisher = pubsub_v1.PublisherClient()
        logger.info("Initialized Pub/Sub publisher")
    return _publisher


def resolve_topic_path(topic: str, project_id: str | None) -> str:
    """Expand a short topic name into ``projects/<project>/topics/<topic>``.

    Raises:
        RuntimeError: If the topic is short and no project is set.
    """
    if topic.startswith("projects/"):
        return topic
    if not project_id:
        raise RuntimeError("GCP_PROJECT_ID is not set")
    return f"projects/{project_id}/topics/{topic}"


def publish_message(payload: dict, topic: str, project_id: str | None = None) -> str:
    """Publish a JSON payload to a topic.

    Returns the Pub/Sub message ID.
    """
    publisher = get_publisher()
    topic_path = resolve_topic_path(topic, project_id)

    data = json.dumps(payload).encode("utf-8")

    future = publisher.publish(topic_path, data=data)
    message_id = future.result(timeout=PUBLISH_TIMEOUT)
    logger.info(f"Published message to {topic_path} with message_id={message_id}")
    return message_id


def parse_extraction_message(data: bytes | str | None) -> ExtractionRequest:
    """Decode a queue message body into an extraction request.

    Args:
        data: Message body (already base64-decoded).

    Returns:
        The ExtractionRequest.

    Raises:
        TransportParseError: If the body is empty, not JSON, or missing fields.
    """
    if not data:
        raise TransportParseError("Pub/Sub message data is empty.")

    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TransportParseError(f"Message data is not UTF-8: {e}") from e

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise TransportParseError(f"Error parsing message data JSON: {e}") from e

    if not isinstance(payload, dict):
        raise TransportParseError(f"Message data is not a JSON object: {payload!r}")

    try:
        return ExtractionRequest.model_validate(payload)
    except ValidationError as e:
        raise TransportParseError(f"Missing required fields in message: {payload}") from e
