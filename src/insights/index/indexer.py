"""TF-IDF index construction."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import numpy as np

from insights.embedding.encoder import Embedder
from insights.errors import DocumentReadError
from insights.index.scoring import term_vector
from insights.models import DocumentMeta, IndexState, RawDocument, SparseVector
from insights.store.base import DocumentStore
from insights.utils.text import read_head, term_counts, tokenize

LOGGER = logging.getLogger(__name__)

SENTIMENT_LEXICON: Dict[str, int] = {
    "good": 1, "great": 1, "excellent": 1, "happy": 1, "love": 1, "positive": 1, "success": 1, "win": 1,
    "bad": -1, "poor": -1, "terrible": -1, "sad": -1, "hate": -1, "negative": -1, "fail": -1, "loss": -1,
}

_TITLE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def simple_sentiment(tokens: Iterable[str]) -> float:
    """Lexicon score scaled by 1/5 and clamped to [-1, 1]."""
    score = sum(SENTIMENT_LEXICON.get(token, 0) for token in tokens)
    return max(-1.0, min(1.0, score / 5))


def extract_title(content: str, fallback: str) -> str:
    match = _TITLE.search(content)
    if match:
        return match.group(1).strip()
    return fallback


def normalize_tags(tags: Iterable[str]) -> tuple[str, ...]:
    """Lower-case, drop a leading ``#`` and deduplicate, keeping first-seen order."""
    seen: Dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip().lower()
        if cleaned.startswith("#"):
            cleaned = cleaned[1:]
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


def dense_text(title: str, content: str) -> str:
    """Representative text of a document for the embedding service."""
    return f"{title}\n\n{read_head(content)}"


@dataclass(slots=True)
class IndexStats:
    documents: int = 0
    terms: int = 0
    failed: int = 0
    dense: bool = False
    dense_error: str | None = None
    failed_files: List[str] = field(default_factory=list)

    def record_failure(self, path: str) -> None:
        self.failed += 1
        self.failed_files.append(path)


class Indexer:
    """Builds an immutable :class:`IndexState` from a full set of documents."""

    def __init__(self, embedder: Optional[Embedder] = None) -> None:
        self.embedder = embedder

    def index_store(self, store: DocumentStore) -> tuple[IndexState, IndexStats]:
        """Full rebuild from every document the store enumerates.

        Unreadable documents are skipped and counted; an enumeration failure
        propagates to the caller.
        """
        stats = IndexStats()
        return self.build(self._load_all(store, stats), stats=stats)

    def _load_all(self, store: DocumentStore, stats: IndexStats) -> Iterator[RawDocument]:
        for path in store.list_paths():
            try:
                yield store.load(path)
            except DocumentReadError as exc:
                LOGGER.error("Failed to read %s: %s", path, exc)
                stats.record_failure(path)

    def build(
        self, documents: Iterable[RawDocument], *, stats: IndexStats | None = None
    ) -> tuple[IndexState, IndexStats]:
        if stats is None:
            stats = IndexStats()
        sources: List[RawDocument] = []
        metas: Dict[str, DocumentMeta] = {}
        counts_by_path: Dict[str, Dict[str, int]] = {}
        doc_freq: Dict[str, int] = {}

        for document in documents:
            tokens = tokenize(document.content)
            counts = term_counts(tokens)
            counts_by_path[document.path] = counts
            for term in counts:
                doc_freq[term] = doc_freq.get(term, 0) + 1
            metas[document.path] = DocumentMeta(
                path=document.path,
                title=extract_title(document.content, document.fallback_title),
                mtime=document.mtime,
                word_count=len(tokens),
                sentiment=simple_sentiment(tokens),
                tags=normalize_tags(document.tags),
            )
            sources.append(document)

        n_docs = max(1, len(metas))
        # Not clamped: terms in more than N - 1 documents get a negative weight.
        vocabulary_idf = {term: math.log(n_docs / (1 + df)) for term, df in doc_freq.items()}

        doc_vectors: Dict[str, SparseVector] = {}
        inverted_index: Dict[str, List[str]] = {}
        for path, counts in counts_by_path.items():
            doc_vectors[path] = term_vector(counts, vocabulary_idf)
            for term in counts:
                inverted_index.setdefault(term, []).append(path)

        dense_vectors = None
        if self.embedder is not None and sources:
            dense_vectors = self._embed_documents(self.embedder, sources, metas, stats)

        stats.documents = len(metas)
        stats.terms = len(vocabulary_idf)
        stats.dense = dense_vectors is not None
        LOGGER.info(
            "Indexed %d documents, %d terms (dense: %s)", stats.documents, stats.terms, stats.dense
        )
        state = IndexState(
            documents=metas,
            vocabulary_idf=vocabulary_idf,
            doc_vectors=doc_vectors,
            inverted_index=inverted_index,
            dense_vectors=dense_vectors,
        )
        return state, stats

    def _embed_documents(
        self,
        embedder: Embedder,
        sources: Sequence[RawDocument],
        metas: Dict[str, DocumentMeta],
        stats: IndexStats,
    ) -> Dict[str, np.ndarray] | None:
        """One embedding call per document; any failure drops the whole dense map."""
        vectors: Dict[str, np.ndarray] = {}
        try:
            for document in sources:
                [vector] = embedder.embed([dense_text(metas[document.path].title, document.content)])
                vectors[document.path] = vector
        except Exception as exc:
            LOGGER.warning("Dense embedding failed, keeping TF-IDF only: %s", exc)
            stats.dense_error = str(exc)
            return None
        return vectors
