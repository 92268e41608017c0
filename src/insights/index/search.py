"""Similarity search over a built index."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Mapping, Optional, Sequence

import numpy as np

from insights.embedding.encoder import Embedder
from insights.errors import DocumentReadError, IndexUnavailable
from insights.index.scoring import (
    build_excerpt,
    cosine_dense,
    cosine_sparse,
    recency_weight,
    sentiment_boost,
    term_vector,
)
from insights.models import IndexState, SearchResult
from insights.store.base import DocumentStore
from insights.utils.text import term_counts, tokenize

LOGGER = logging.getLogger(__name__)


class Searcher:
    """Ranks documents against a query by similarity, recency and sentiment."""

    def __init__(
        self,
        store: DocumentStore,
        embedder: Optional[Embedder] = None,
        *,
        half_life_days: float = 30,
        max_results: int = 20,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.half_life_days = half_life_days
        self.max_results = max_results
        self.clock = clock

    def search(self, index: IndexState | None, query: str, *, top_k: int | None = None) -> List[SearchResult]:
        if index is None:
            raise IndexUnavailable("Index has not been built yet")

        query_tokens = tokenize(query)
        if not query_tokens:
            return []

        now = self.clock()
        results: List[SearchResult] = []
        if self.embedder is not None and index.dense_vectors is not None:
            results = self._dense_candidates(self.embedder, index, index.dense_vectors, query, now)
        if not results:
            results = self._sparse_candidates(index, query_tokens, now)

        results.sort(key=lambda result: result.score, reverse=True)
        page = results[: top_k or self.max_results]
        for result in page:
            result.excerpt = self._excerpt(result, query_tokens)
        return page

    def _result(self, index: IndexState, path: str, similarity: float, now: float) -> SearchResult:
        meta = index.documents[path]
        recency = recency_weight(meta.mtime, self.half_life_days, now)
        sentiment = sentiment_boost(meta.sentiment)
        return SearchResult(
            path=path,
            title=meta.title,
            excerpt=meta.title,
            similarity=similarity,
            recency_boost=recency,
            sentiment_boost=sentiment,
            score=max(0.0, similarity) * recency * sentiment,
        )

    def _dense_candidates(
        self,
        embedder: Embedder,
        index: IndexState,
        dense_vectors: Mapping[str, np.ndarray],
        query: str,
        now: float,
    ) -> List[SearchResult]:
        try:
            [query_vector] = embedder.embed([query])
        except Exception as exc:
            LOGGER.info("Dense query embedding failed, using TF-IDF: %s", exc)
            return []
        results = []
        for path in index.documents:
            doc_vector = dense_vectors.get(path)
            if doc_vector is None:
                continue
            results.append(self._result(index, path, cosine_dense(query_vector, doc_vector), now))
        return results

    def _sparse_candidates(self, index: IndexState, query_tokens: Sequence[str], now: float) -> List[SearchResult]:
        query_vector = term_vector(term_counts(query_tokens), index.vocabulary_idf)
        results = []
        for path in index.documents:
            similarity = cosine_sparse(query_vector, index.doc_vectors.get(path, {}))
            if similarity <= 0:
                continue
            results.append(self._result(index, path, similarity, now))
        return results

    def _excerpt(self, result: SearchResult, query_tokens: Sequence[str]) -> str:
        try:
            content = self.store.read(result.path)
        except DocumentReadError as exc:
            LOGGER.debug("No excerpt for %s: %s", result.path, exc)
            return result.title
        return build_excerpt(content, query_tokens)
