"""HTTP entry points for Cloud Run.

- ``POST /gcs-events``: Eventarc storage notifications, run through the pipeline
- ``POST /pubsub``: Pub/Sub push deliveries of extraction requests

A 5xx response makes the trigger redeliver; 204 acknowledges.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from mediaflow import __version__
from mediaflow.config import PipelineConfig
from mediaflow.errors import FatalPipelineError
from mediaflow.extractor import AudioExtractor
from mediaflow.pipeline import Pipeline
from mediaflow.utils.logging import configure_logging, get_logger

logger = get_logger("mediaflow.server")

app = FastAPI(title="mediaflow", version=__version__)

_pipeline: Pipeline | None = None
_extractor: AudioExtractor | None = None


class PubSubEnvelope(BaseModel):
    message: dict
    subscription: str


def get_pipeline() -> Pipeline:
    global _pipeline
    if _pipeline is None:
        config = PipelineConfig.from_env()
        configure_logging(config.log_level)
        _pipeline = Pipeline(config)
    return _pipeline


def get_extractor() -> AudioExtractor:
    global _extractor
    if _extractor is None:
        config = PipelineConfig.from_env()
        configure_logging(config.log_level)
        _extractor = AudioExtractor(config)
    return _extractor


@app.get("/")
def root() -> dict[str, str]:
    return {"status": "ok", "service": "mediaflow"}


@app.post("/gcs-events")
async def handle_gcs_events(
    request: Request,
    pipeline: Pipeline = Depends(get_pipeline),
) -> Response:
    try:
        raw: Any = await request.json()
    except ValueError:
        logger.error("Storage event body is not valid JSON. Dropping.")
        return Response(status_code=204)

    if not isinstance(raw, dict):
        logger.error("Storage event body is not a JSON object. Dropping.")
        return Response(status_code=204)

    try:
        await run_in_threadpool(pipeline.handle_event, raw)
    except (KeyError, ValueError) as e:
        # Not an object notification; redelivery would not help
        logger.error(f"Storage event is missing or has invalid fields ({e}). Dropping.")
    except FatalPipelineError:
        logger.exception("Error processing storage event")
        return Response(status_code=500)

    return Response(status_code=204)


@app.post("/pubsub")
def handle_pubsub(
    envelope: PubSubEnvelope,
    extractor: AudioExtractor = Depends(get_extractor),
) -> Response:
    """Pub/Sub push endpoint for audio extraction requests."""
    data_b64 = envelope.message.get("data", "")
    try:
        data = base64.b64decode(data_b64, validate=True) if data_b64 else None
    except (binascii.Error, ValueError):
        logger.error("Pub/Sub message data is not base64. Acknowledging.")
        return Response(status_code=204)

    try:
        extractor.handle_message(data)
    except Exception:
        logger.exception(f"Error extracting audio from {envelope.subscription}")
        return Response(status_code=500)

    return Response(status_code=204)
