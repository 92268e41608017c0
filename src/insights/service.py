"""Long-lived engine owning the index, settings and background work."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Deque, List, Mapping, Optional

from insights.config import AppConfig, InsightsSettings, SettingsStore, apply_settings_update
from insights.embedding.encoder import Embedder, make_embedder
from insights.errors import IndexUnavailable
from insights.index.indexer import Indexer, IndexStats
from insights.index.search import Searcher
from insights.models import DocumentMeta, IndexState, RuminationSuggestion, SearchResult
from insights.rumination.ruminator import Ruminator
from insights.store.vault import FileSystemVault
from insights.store.watcher import VaultWatcher
from insights.utils.debounce import DebouncedTask
from insights.utils.files import MARKDOWN_SUFFIX

LOGGER = logging.getLogger(__name__)

MAX_NOTICES = 50


class InsightsService:
    """Search, rumination and index maintenance over one vault.

    The published :attr:`index` is only ever replaced by a complete build, so
    callers holding the previous state keep a consistent view.
    """

    def __init__(
        self,
        vault: FileSystemVault,
        settings: InsightsSettings | None = None,
        *,
        save_settings: Optional[Callable[[InsightsSettings], None]] = None,
        notify: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.time,
        now: Callable[[], datetime] = datetime.now,
        debounce_delay: float = 0.3,
        watch_interval: float = 2.0,
    ) -> None:
        self.vault = vault
        self.settings = settings or InsightsSettings()
        self.index: IndexState | None = None
        self.last_stats: IndexStats | None = None
        self.recent_notices: Deque[str] = deque(maxlen=MAX_NOTICES)
        self.clock = clock
        self._save_settings = save_settings
        self._notify = notify or LOGGER.info
        self._embedder: Embedder | None = None
        self._rebuild_lock = asyncio.Lock()
        self.ruminator = Ruminator(
            vault,
            vault,
            lambda: self.index,
            self.settings,
            self.save_settings,
            notify=self.notice,
            clock=clock,
            now=now,
        )
        self._debouncer = DebouncedTask(self.rebuild_index, debounce_delay)
        self._watcher = VaultWatcher(vault, self.notify_file_change, watch_interval)

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: Any) -> "InsightsService":
        settings_store = SettingsStore(config.resolve_state_path(Path.cwd()))
        return cls(
            FileSystemVault(config.vault_path),
            settings_store.load(),
            save_settings=settings_store.save,
            **kwargs,
        )

    def notice(self, message: str) -> None:
        """Informational message for the user."""
        self.recent_notices.append(message)
        self._notify(message)

    def save_settings(self) -> None:
        if self._save_settings is not None:
            self._save_settings(self.settings)

    def _build(self) -> tuple[IndexState, IndexStats, Embedder | None]:
        self.vault.refresh()
        embedder = make_embedder(self.settings)
        state, stats = Indexer(embedder).index_store(self.vault)
        return state, stats, embedder

    async def rebuild_index(self) -> bool:
        """Full rebuild; on failure the previous index stays published."""
        async with self._rebuild_lock:
            self.notice("INSIGHTS: indexing…")
            try:
                state, stats, embedder = await asyncio.to_thread(self._build)
            except Exception:
                LOGGER.exception("Index rebuild failed")
                self.notice("INSIGHTS: index failed")
                return False

            self.index = state
            self.last_stats = stats
            self._embedder = embedder
            if stats.dense_error:
                self.notice("Dense embeddings failed. Falling back to TF-IDF.")
            if stats.failed:
                self.notice(f"INSIGHTS: {stats.failed} documents could not be read")
            self.notice("INSIGHTS: index ready")
            return True

    def searcher(self) -> Searcher:
        return Searcher(
            self.vault,
            self._embedder,
            half_life_days=self.settings.recency_half_life_days,
            max_results=self.settings.max_search_results,
            clock=self.clock,
        )

    async def search(self, query: str, *, top_k: int | None = None) -> List[SearchResult]:
        index = self.index
        try:
            return await asyncio.to_thread(self.searcher().search, index, query, top_k=top_k)
        except IndexUnavailable:
            LOGGER.info("Search requested before the index was built")
            return []

    async def run_rumination(self, force: bool = False) -> List[RuminationSuggestion]:
        suggestions = await self.ruminator.tick(force)
        LOGGER.info("Ruminations: %d suggestions", len(suggestions))
        return suggestions

    def documents(self) -> List[DocumentMeta]:
        if self.index is None:
            return []
        return sorted(self.index.documents.values(), key=lambda meta: meta.path)

    def status(self) -> dict[str, Any]:
        stats = self.last_stats
        return {
            "vault": str(self.vault.root),
            "indexed": self.index is not None,
            "documents": len(self.index) if self.index is not None else 0,
            "terms": stats.terms if stats else 0,
            "dense": bool(self.index is not None and self.index.has_dense),
            "failed_files": list(stats.failed_files) if stats else [],
            "rumination": self.ruminator.state,
            "notices": list(self.recent_notices),
        }

    def notify_file_change(self, path: str) -> None:
        """Coalesce Markdown changes into one debounced rebuild."""
        if not self.settings.auto_update_on_file_change:
            return
        if not path.lower().endswith(MARKDOWN_SUFFIX):
            return
        self._debouncer.trigger()

    async def wait_idle(self) -> None:
        await self._debouncer.wait()

    async def update_settings(self, updates: Mapping[str, Any]) -> InsightsSettings:
        """Validate, apply and persist a partial settings update.

        Changing the embedding backend drops the query embedder: dense vectors
        of the published index belong to the old model, so searches stay
        lexical until the next rebuild.
        """
        previous = self._embedding_key()
        apply_settings_update(self.settings, updates)
        self.save_settings()
        if self._embedding_key() != previous:
            self._embedder = None
        self.ruminator.update_settings(self.settings)
        if not self.settings.auto_update_on_file_change:
            self._watcher.stop()
        elif not self._watcher.running:
            self._watcher.start()
        return self.settings

    def _embedding_key(self) -> tuple[str, str, str, str]:
        return (
            self.settings.embedding_provider,
            self.settings.ollama.base_url,
            self.settings.ollama.model,
            self.settings.local_model,
        )

    async def start(self) -> None:
        if self.settings.index_on_startup:
            await self.rebuild_index()
        self.ruminator.start()
        if self.settings.auto_update_on_file_change:
            self._watcher.start()

    async def stop(self) -> None:
        self.ruminator.stop()
        self._watcher.stop()
        self._debouncer.cancel()
