"""Dense embedding providers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Protocol, Sequence

import httpx
import numpy as np

from insights.errors import ProviderError

if TYPE_CHECKING:
    from insights.config import InsightsSettings

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "nomic-embed-text"
DEFAULT_TIMEOUT = 60.0
DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

LOGGER = logging.getLogger(__name__)


class Embedder(Protocol):
    def embed(self, texts: Sequence[str]) -> List[np.ndarray]:
        """Return one dense vector per input text, in order."""
        ...


def _as_vector(value: Any) -> np.ndarray | None:
    if not isinstance(value, list) or not value:
        return None
    if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value):
        return None
    return np.asarray(value, dtype="float32")


def _decode_openai(data: Any) -> np.ndarray | None:
    """``{"data": [{"embedding": [...]}]}``"""
    items = data.get("data")
    if not isinstance(items, list):
        return None
    if not items or not isinstance(items[0], dict):
        raise ProviderError("Missing embedding in 'data' response")
    vector = _as_vector(items[0].get("embedding"))
    if vector is None:
        raise ProviderError("Missing embedding in 'data' response")
    return vector


def _decode_single(data: Any) -> np.ndarray | None:
    """``{"embedding": [...]}``"""
    if not isinstance(data.get("embedding"), list):
        return None
    return _as_vector(data["embedding"])


def _decode_batch(data: Any) -> np.ndarray | None:
    """``{"embeddings": [[...], ...]}``"""
    items = data.get("embeddings")
    if not isinstance(items, list) or not items:
        return None
    return _as_vector(items[0])


# Order matters: the first decoder that recognises the shape wins.
RESPONSE_DECODERS: tuple[Callable[[Any], np.ndarray | None], ...] = (
    _decode_openai,
    _decode_single,
    _decode_batch,
)


def decode_embedding(data: Any) -> np.ndarray:
    """Normalize any recognised embedding response into a flat float32 vector."""
    if isinstance(data, dict):
        for decoder in RESPONSE_DECODERS:
            vector = decoder(data)
            if vector is not None:
                return vector
    raise ProviderError("Unrecognized embeddings response")


class OllamaClient:
    """Client for an Ollama-compatible ``/api/embeddings`` endpoint.

    One request per text, issued sequentially. Failures raise
    :class:`ProviderError`; retrying is left to the caller.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/embeddings"

    def embed(self, texts: Sequence[str]) -> List[np.ndarray]:
        embeddings: List[np.ndarray] = []
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            for text in texts:
                embeddings.append(self._embed_one(client, text))
        return embeddings

    def _embed_one(self, client: httpx.Client, text: str) -> np.ndarray:
        try:
            response = client.post(self.endpoint, json={"model": self.model, "prompt": text})
        except httpx.HTTPError as exc:
            raise ProviderError(f"Embedding request failed: {exc}") from exc

        if not response.is_success:
            raise ProviderError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("Embedding response is not valid JSON") from exc
        return decode_embedding(data)


def make_embedder(settings: "InsightsSettings") -> Embedder | None:
    """Return the dense embedder selected in settings, or None for lexical-only."""
    provider = settings.embedding_provider
    if provider == "ollama":
        return OllamaClient(settings.ollama.base_url, settings.ollama.model)
    if provider == "sentence-transformers":
        from insights.embedding.local import LocalEmbedder

        return LocalEmbedder(model_name=settings.local_model)
    if provider == "openai":
        LOGGER.warning("Embedding provider 'openai' is reserved, using TF-IDF only")
    return None

