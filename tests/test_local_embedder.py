"""Tests for the sentence-transformers embedder."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

pytest.importorskip("sentence_transformers")

from insights.config import InsightsSettings  # noqa: E402
from insights.embedding.encoder import make_embedder  # noqa: E402
from insights.embedding.local import LocalEmbedder, LocalEmbeddingConfig  # noqa: E402
from insights.errors import ProviderError  # noqa: E402


class TestLocalEmbedder:
    """Tests for LocalEmbedder with the model mocked out."""

    @patch("insights.embedding.local.SentenceTransformer")
    def test_model_loaded_lazily_once(self, mock_model_class: MagicMock) -> None:
        """Construction does not load; the first embed does, exactly once."""
        mock_model_class.return_value.encode.side_effect = lambda sentences, **kwargs: np.ones(
            (len(sentences), 3), dtype="float64"
        )
        embedder = LocalEmbedder(LocalEmbeddingConfig(model_name="tiny-model"))
        mock_model_class.assert_not_called()

        first = embedder.embed(["a", "b"])
        embedder.embed(["c"])

        mock_model_class.assert_called_once_with("tiny-model", device=None)
        assert len(first) == 2
        assert first[0].dtype == np.float32

    @patch("insights.embedding.local.SentenceTransformer")
    def test_empty_input_skips_model(self, mock_model_class: MagicMock) -> None:
        assert LocalEmbedder().embed([]) == []
        mock_model_class.assert_not_called()

    @patch("insights.embedding.local.SentenceTransformer", side_effect=OSError("no such model"))
    def test_load_failure_is_provider_error(self, mock_model_class: MagicMock) -> None:
        with pytest.raises(ProviderError, match="no such model"):
            LocalEmbedder(model_name="missing").embed(["text"])

    def test_selected_by_settings(self) -> None:
        settings = InsightsSettings(embedding_provider="sentence-transformers", local_model="my/model")
        embedder = make_embedder(settings)
        assert isinstance(embedder, LocalEmbedder)
        assert embedder.config.model_name == "my/model"
