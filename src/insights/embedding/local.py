"""Offline dense embeddings through sentence-transformers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from insights.embedding.encoder import DEFAULT_LOCAL_MODEL
from insights.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LocalEmbeddingConfig:
    model_name: str = DEFAULT_LOCAL_MODEL
    batch_size: int = 16
    normalize: bool = True
    device: str | None = None


class LocalEmbedder:
    """Thin wrapper around `SentenceTransformer` honouring the embedder protocol.

    The model is loaded on first use so that configuring the provider does not
    block startup.
    """

    def __init__(self, config: LocalEmbeddingConfig | None = None, *, model_name: str | None = None) -> None:
        self.config = config or LocalEmbeddingConfig()
        if model_name:
            self.config.model_name = model_name
        self._model: SentenceTransformer | None = None

    def _load_model(self) -> SentenceTransformer:
        if self._model is None:
            try:
                self._model = SentenceTransformer(self.config.model_name, device=self.config.device)
            except Exception as exc:
                raise ProviderError(
                    f"Failed to load sentence-transformers model '{self.config.model_name}': {exc}"
                ) from exc
            logger.info("Loaded local embedding model %s", self.config.model_name)
        return self._model

    def embed(self, texts: Sequence[str]) -> List[np.ndarray]:
        """Return float32 embeddings for input texts."""
        sentences = list(texts)
        if not sentences:
            return []
        model = self._load_model()
        try:
            embeddings = model.encode(
                sentences,
                batch_size=self.config.batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
                normalize_embeddings=self.config.normalize,
            )
        except Exception as exc:
            raise ProviderError(f"Local embedding failed: {exc}") from exc
        return list(np.asarray(embeddings).astype("float32", copy=False))
