"""Core Insights data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping

import numpy as np

SparseVector = Dict[str, float]


@dataclass(slots=True)
class RawDocument:
    """Document content as handed over by the document store."""

    path: str
    content: str
    mtime: float
    fallback_title: str
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DocumentMeta:
    """Metadata snapshot of an indexed document."""

    path: str
    title: str
    mtime: float
    word_count: int
    sentiment: float
    tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class IndexState:
    """Immutable result of one full index build."""

    documents: Mapping[str, DocumentMeta]
    vocabulary_idf: Mapping[str, float]
    doc_vectors: Mapping[str, SparseVector]
    inverted_index: Mapping[str, List[str]]
    dense_vectors: Mapping[str, np.ndarray] | None = None

    @property
    def has_dense(self) -> bool:
        return self.dense_vectors is not None

    def __len__(self) -> int:
        return len(self.documents)


@dataclass(slots=True)
class SearchResult:
    path: str
    title: str
    excerpt: str
    similarity: float
    recency_boost: float
    sentiment_boost: float
    score: float


@dataclass(slots=True)
class RuminationSuggestion:
    """A pair of documents worth looking at together."""

    a_path: str
    b_path: str
    a_title: str
    b_title: str
    score: float
    similarity: float
    link_affinity: float
    novelty_boost: float
    shared_terms: List[str] = field(default_factory=list)
    bridge: str | None = None
