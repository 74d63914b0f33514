"""Topic extraction stage: summarize a transcript into short topics.

Uses a Vertex AI generative model. The model is lazy-loaded and cached per
(project, location, model name).
"""

from __future__ import annotations

import json
import logging
import re
import time

import vertexai
from vertexai.generative_models import GenerativeModel

from mediaflow.errors import ExternalServiceError

logger = logging.getLogger(__name__)

_model: GenerativeModel | None = None
_model_key: tuple[str | None, str, str] | None = None

TOPICS_PROMPT = """You are an expert at analyzing text to find key topics.
Based on the following transcript, identify the 5 to 7 most relevant topics or keywords.
Rules for your response:
- The topics should be concise, using 1 to 4 words each.
- Your entire output MUST be a valid JSON array of strings and nothing else.
Example of a perfect response: ["Artificial Intelligence", "Cloud Computing", "Startup Funding"]
Transcript: \"\"\"{transcript}\"\"\"
JSON Output:"""

_CODE_FENCE = re.compile(r"```(?:json)?")


class TopicGenerationError(ExternalServiceError):
    """The generative model failed or returned something other than topics."""

    pass


def _load_model(model_name: str, project_id: str | None, location: str) -> GenerativeModel:
    """Lazy-load the generative model.

    Args:
        model_name: Vertex AI model identifier.
        project_id: Google Cloud project (None uses the ambient default).
        location: Vertex AI region.

    Returns:
        Cached GenerativeModel instance.
    """
    global _model, _model_key

    key = (project_id, location, model_name)
    if _model is not None and _model_key == key:
        return _model

    vertexai.init(project=project_id, location=location)
    _model = GenerativeModel(model_name)
    _model_key = key
    logger.info(f"Loaded generative model '{model_name}' ({location})")

    return _model


def parse_topics_response(text: str) -> list[str]:
    """Parse the model's reply into a list of topics.

    Markdown code fences around the JSON are tolerated.

    Raises:
        TopicGenerationError: If the reply is not a JSON array of strings.
    """
    payload = _CODE_FENCE.sub("", text.strip()).strip()
    try:
        topics = json.loads(payload)
    except json.JSONDecodeError as e:
        raise TopicGenerationError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
        raise TopicGenerationError("Model response is not a JSON array of strings")

    return [t.strip() for t in topics if t.strip()]


def generate_topics(
    transcript: str,
    model_name: str = "gemini-pro",
    project_id: str | None = None,
    location: str = "us-central1",
) -> list[str]:
    """Generate topics for a transcript.

    Args:
        transcript: Non-empty transcript text.
        model_name: Vertex AI model identifier.
        project_id: Google Cloud project.
        location: Vertex AI region.

    Returns:
        List of short topic strings.

    Raises:
        TopicGenerationError: If generation fails or the reply cannot be parsed.
    """
    start_time = time.perf_counter()

    try:
        model = _load_model(model_name, project_id, location)
    except Exception as e:
        raise TopicGenerationError(f"Failed to load model '{model_name}': {e}") from e

    try:
        response = model.generate_content(TOPICS_PROMPT.format(transcript=transcript))
    except Exception as e:
        raise TopicGenerationError(f"Topic generation failed: {e}") from e

    try:
        text = response.candidates[0].content.parts[0].text
    except (AttributeError, IndexError) as e:
        raise TopicGenerationError("Model returned an empty or invalid response.") from e
    if not text:
        raise TopicGenerationError("Model returned an empty or invalid response.")

    topics = parse_topics_response(text)

    elapsed = time.perf_counter() - start_time
    logger.info(f"Generated {len(topics)} topics in {elapsed:.2f}s: {topics}")

    return topics
