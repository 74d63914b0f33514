"""Tests for the topic extraction stage."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from mediaflow.errors import ExternalServiceError
from mediaflow.stages import topics
from mediaflow.stages.topics import (
    TopicGenerationError,
    generate_topics,
    parse_topics_response,
)


def _model_replying(text: str) -> MagicMock:
    model = MagicMock()
    model.generate_content.return_value.candidates[0].content.parts[0].text = text
    return model


class TestParseTopicsResponse:
    """Tests for parse_topics_response function."""

    def test_plain_json(self) -> None:
        assert parse_topics_response('["AI", "Cloud"]') == ["AI", "Cloud"]

    def test_code_fenced_json(self) -> None:
        text = '```json\n["Startup Funding", " Cloud "]\n```'

        assert parse_topics_response(text) == ["Startup Funding", "Cloud"]

    def test_not_json(self) -> None:
        with pytest.raises(TopicGenerationError, match="not valid JSON"):
            parse_topics_response("Here are some topics: AI")

    def test_not_a_list_of_strings(self) -> None:
        with pytest.raises(TopicGenerationError, match="array of strings"):
            parse_topics_response('{"topics": ["AI"]}')


class TestGenerateTopics:
    """Tests for generate_topics function."""

    def test_returns_parsed_topics(self) -> None:
        model = _model_replying('["Greetings"]')

        with patch("mediaflow.stages.topics._load_model", return_value=model) as load:
            result = generate_topics("hello world", model_name="gemini-pro", project_id="proj")

        assert result == ["Greetings"]
        load.assert_called_once_with("gemini-pro", "proj", "us-central1")
        prompt = model.generate_content.call_args[0][0]
        assert "hello world" in prompt

    def test_model_failure(self) -> None:
        model = MagicMock()
        model.generate_content.side_effect = RuntimeError("unavailable")

        with patch("mediaflow.stages.topics._load_model", return_value=model):
            with pytest.raises(TopicGenerationError, match="unavailable"):
                generate_topics("hello world")

    def test_model_startup_failure(self) -> None:
        with patch(
            "mediaflow.stages.topics._load_model",
            side_effect=RuntimeError("Your default credentials were not found"),
        ):
            with pytest.raises(TopicGenerationError, match="credentials"):
                generate_topics("hello world")

    def test_empty_reply(self) -> None:
        model = MagicMock()
        model.generate_content.return_value.candidates = []

        with patch("mediaflow.stages.topics._load_model", return_value=model):
            with pytest.raises(TopicGenerationError, match="empty or invalid"):
                generate_topics("hello world")

    def test_errors_are_external_service_errors(self) -> None:
        assert issubclass(TopicGenerationError, ExternalServiceError)


class TestLoadModel:
    """Tests for _load_model caching."""

    def test_cached_per_settings(self) -> None:
        with patch.object(topics, "_model", None), patch.object(topics, "_model_key", None):
            with patch("mediaflow.stages.topics.vertexai.init") as init, patch(
                "mediaflow.stages.topics.GenerativeModel"
            ) as model_cls:
                first = topics._load_model("gemini-pro", "proj", "us-central1")
                second = topics._load_model("gemini-pro", "proj", "us-central1")
                topics._load_model("gemini-pro", "proj", "europe-west4")

        assert first is second
        assert init.call_count == 2
        assert model_cls.call_count == 2

