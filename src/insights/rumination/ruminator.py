"""Background scans that surface related document pairs.

A scan compares every pair of indexed documents, weights the lexical
similarity by link-graph affinity and novelty, and remembers which pairs it
has shown so they fade out after ``max_repeats_per_pair`` appearances.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from insights.config import DEFAULT_DIGEST_PATH, InsightsSettings, NoveltyEntry
from insights.index.scoring import cosine_sparse
from insights.models import IndexState, RuminationSuggestion, SparseVector
from insights.store.base import DocumentStore, LinkGraph

LOGGER = logging.getLogger(__name__)

MAX_SUGGESTIONS = 10
SHARED_TERMS = 5
BRIDGE_TERMS = 3
PAIR_SEPARATOR = "|"
DIGEST_HEADING = "# INSIGHTS Digest\n"

PersistCallback = Callable[[], Optional[Awaitable[Any]]]


def within_allowed_hours(start: int, end: int, hour: int) -> bool:
    """Whether ``hour`` lies in ``[start, end)``; the window may wrap midnight."""
    if start == end:
        return True
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def pair_key(a: str, b: str) -> str:
    return f"{a}{PAIR_SEPARATOR}{b}" if a < b else f"{b}{PAIR_SEPARATOR}{a}"


def jaccard(a: Set[str], b: Set[str]) -> float:
    if not a and not b:
        return 0.0
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return intersection / union if union else 0.0


def top_shared_terms(a: SparseVector, b: SparseVector, k: int = SHARED_TERMS) -> List[str]:
    shared = [(term, a[term] + b[term]) for term in a if term in b]
    shared.sort(key=lambda item: item[1], reverse=True)
    return [term for term, _ in shared[:k]]


def bridge_sentence(a_title: str, b_title: str, terms: List[str]) -> str:
    return f"{a_title} and {b_title} connect via {', '.join(terms[:BRIDGE_TERMS])}."


class Ruminator:
    """Schedules and runs rumination scans.

    The ruminator is either stopped, scheduled (timer armed) or running a
    scan. Scans never overlap: a timer firing during a scan is skipped and a
    forced run waits for the current scan to finish.
    """

    def __init__(
        self,
        store: DocumentStore,
        link_graph: LinkGraph,
        get_index: Callable[[], IndexState | None],
        settings: InsightsSettings,
        persist: PersistCallback,
        *,
        notify: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.time,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.link_graph = link_graph
        self.get_index = get_index
        self.settings = settings
        self.persist = persist
        self.notify = notify or LOGGER.info
        self.clock = clock
        self.now = now
        self._timer: asyncio.Task | None = None
        self._scan_lock = asyncio.Lock()

    @property
    def state(self) -> str:
        if self._scan_lock.locked():
            return "running"
        if self._timer is not None and not self._timer.done():
            return "scheduled"
        return "stopped"

    @property
    def interval_seconds(self) -> float:
        return max(1, self.settings.rumination.interval_minutes) * 60

    def start(self) -> None:
        """Arm the repeating timer; requires a running event loop."""
        self.stop()
        if not self.settings.rumination.enabled:
            return
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())
        LOGGER.info("Rumination scheduled every %.0f seconds", self.interval_seconds)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def update_settings(self, settings: InsightsSettings) -> None:
        self.settings = settings
        self.stop()
        if settings.rumination.enabled:
            self.start()

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self._scan_lock.locked():
                LOGGER.debug("Rumination still running, skipping this tick")
                continue
            try:
                await self.tick()
            except Exception:
                LOGGER.exception("Rumination tick failed")

    async def tick(self, force: bool = False) -> List[RuminationSuggestion]:
        """Run one scan end to end and return the suggestions shown."""
        rumination = self.settings.rumination
        if not force and not within_allowed_hours(
            rumination.allowed_start_hour, rumination.allowed_end_hour, self.now().hour
        ):
            LOGGER.debug("Outside allowed rumination hours")
            return []

        async with self._scan_lock:
            index = self.get_index()
            if index is None:
                LOGGER.debug("No index available for rumination")
                return []
            # The pairwise scan and digest writes read files; keep them off the loop.
            suggestions = await asyncio.to_thread(self.compute_suggestions, index)
            self._remember(suggestions)
            await self._persist()
            if rumination.write_digest and suggestions:
                try:
                    await asyncio.to_thread(self.write_digest, suggestions)
                except Exception:
                    LOGGER.exception("Failed to write rumination digest")
                else:
                    self.notify("INSIGHTS digest updated")
        return suggestions

    def compute_suggestions(self, index: IndexState) -> List[RuminationSuggestion]:
        """Score every document pair and return the best ones, without side effects."""
        rumination = self.settings.rumination
        seen_pairs = self.settings.rumination_state.seen_pairs
        focus_tags = rumination.focus_tag_set()
        neighbors: Dict[str, Set[str]] = {}

        def links_of(path: str) -> Set[str]:
            if path not in neighbors:
                neighbors[path] = set(self.link_graph.outgoing_links(path))
            return neighbors[path]

        items: List[RuminationSuggestion] = []
        for a, b in itertools.combinations(index.documents, 2):
            a_vector = index.doc_vectors.get(a, {})
            b_vector = index.doc_vectors.get(b, {})
            similarity = cosine_sparse(a_vector, b_vector)
            if similarity < rumination.min_similarity:
                continue

            a_meta = index.documents[a]
            b_meta = index.documents[b]
            if focus_tags and not focus_tags.intersection(
                [tag.lower() for tag in (*a_meta.tags, *b_meta.tags)]
            ):
                continue

            entry = seen_pairs.get(pair_key(a, b))
            repeats = entry.count if entry is not None else 0
            if repeats >= rumination.max_repeats_per_pair:
                continue

            link_affinity = jaccard(links_of(a), links_of(b)) if rumination.use_link_graph_weighting else 0.0
            novelty_boost = rumination.novelty_weight * (1 / (1 + repeats))
            shared = top_shared_terms(a_vector, b_vector)
            bridge = None
            if rumination.bridge_summary and shared:
                bridge = bridge_sentence(a_meta.title, b_meta.title, shared)

            items.append(
                RuminationSuggestion(
                    a_path=a,
                    b_path=b,
                    a_title=a_meta.title,
                    b_title=b_meta.title,
                    score=similarity * (1 + link_affinity) * (1 + novelty_boost),
                    similarity=similarity,
                    link_affinity=link_affinity,
                    novelty_boost=novelty_boost,
                    shared_terms=shared,
                    bridge=bridge,
                )
            )

        items.sort(key=lambda item: item.score, reverse=True)
        return items[:MAX_SUGGESTIONS]

    def _remember(self, suggestions: List[RuminationSuggestion]) -> None:
        seen_pairs = self.settings.rumination_state.seen_pairs
        shown_at = self.clock()
        for suggestion in suggestions:
            entry = seen_pairs.setdefault(pair_key(suggestion.a_path, suggestion.b_path), NoveltyEntry())
            entry.count += 1
            entry.last_shown = shown_at

    async def _persist(self) -> None:
        try:
            result = self.persist()
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.exception("Failed to persist rumination state")

    def write_digest(self, suggestions: List[RuminationSuggestion]) -> None:
        path = self.settings.rumination.digest_note_path or DEFAULT_DIGEST_PATH
        if not self.store.exists(path):
            self.store.create(path, DIGEST_HEADING)
        self.store.append(path, format_digest(suggestions, self.now()))


def format_digest(suggestions: List[RuminationSuggestion], when: datetime) -> str:
    lines = [f"\n## {when.strftime('%Y-%m-%d %H:%M')}\n"]
    for suggestion in suggestions:
        lines.append(
            f"- {suggestion.a_title} ⇄ {suggestion.b_title} "
            f"(score: {suggestion.score:.3f}, sim: {suggestion.similarity:.3f}, "
            f"link: {suggestion.link_affinity:.3f})"
        )
        if suggestion.bridge:
            lines.append(f"  - {suggestion.bridge}")
    return "\n".join(lines) + "\n"

