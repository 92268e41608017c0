"""Tests for dense embedding providers."""

from __future__ import annotations

import json
from typing import Any, List

import httpx
import numpy as np
import pytest

from insights.config import InsightsSettings
from insights.embedding.encoder import OllamaClient, decode_embedding, make_embedder
from insights.errors import ProviderError


def _client(handler: Any) -> OllamaClient:
    return OllamaClient("http://ollama.test/", "test-model", transport=httpx.MockTransport(handler))


class TestDecodeEmbedding:
    """Tests for response shape normalization."""

    @pytest.mark.parametrize(
        "payload",
        [
            {"data": [{"embedding": [0.1, 0.2, 0.3]}]},
            {"embedding": [0.1, 0.2, 0.3]},
            {"embeddings": [[0.1, 0.2, 0.3], [9.0, 9.0, 9.0]]},
        ],
    )
    def test_known_shapes(self, payload: dict) -> None:
        """All supported shapes yield the same flat float32 vector."""
        vector = decode_embedding(payload)
        assert vector.dtype == np.float32
        np.testing.assert_allclose(vector, [0.1, 0.2, 0.3], rtol=1e-6)

    @pytest.mark.parametrize(
        "payload",
        [
            {"result": [1, 2]},
            {"embedding": []},
            {"embedding": ["a", "b"]},
            {"embeddings": []},
            [0.1, 0.2],
            "nope",
        ],
    )
    def test_unrecognized_shapes(self, payload: Any) -> None:
        with pytest.raises(ProviderError, match="Unrecognized embeddings response"):
            decode_embedding(payload)

    def test_openai_shape_without_embedding(self) -> None:
        with pytest.raises(ProviderError):
            decode_embedding({"data": []})


class TestOllamaClient:
    """Tests for the HTTP embedding client."""

    def test_posts_model_and_prompt(self) -> None:
        """One request per text against /api/embeddings."""
        seen: List[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/embeddings"
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"embedding": [1.0, 0.0]})

        vectors = _client(handler).embed(["first", "second"])

        assert len(vectors) == 2
        assert seen == [
            {"model": "test-model", "prompt": "first"},
            {"model": "test-model", "prompt": "second"},
        ]

    def test_endpoint_strips_trailing_slash(self) -> None:
        assert _client(lambda request: httpx.Response(200)).endpoint == "http://ollama.test/api/embeddings"

    def test_http_error_status(self) -> None:
        """A non-success status is a provider failure carrying the code."""
        client = _client(lambda request: httpx.Response(500, text="model crashed"))
        with pytest.raises(ProviderError, match="HTTP 500"):
            client.embed(["text"])

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError, match="Embedding request failed"):
            _client(handler).embed(["text"])

    def test_invalid_json(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(ProviderError, match="not valid JSON"):
            client.embed(["text"])

    def test_empty_input(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert _client(handler).embed([]) == []


class TestMakeEmbedder:
    """Tests for provider selection."""

    def test_tfidf_local_has_no_embedder(self) -> None:
        assert make_embedder(InsightsSettings()) is None

    def test_ollama(self) -> None:
        settings = InsightsSettings(embedding_provider="ollama")
        settings.ollama.base_url = "http://gpu-box:11434"
        embedder = make_embedder(settings)
        assert isinstance(embedder, OllamaClient)
        assert embedder.endpoint == "http://gpu-box:11434/api/embeddings"
        assert embedder.model == "nomic-embed-text"

    def test_openai_is_reserved(self, caplog: pytest.LogCaptureFixture) -> None:
        assert make_embedder(InsightsSettings(embedding_provider="openai")) is None
        assert "reserved" in caplog.text
