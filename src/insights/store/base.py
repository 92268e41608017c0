"""Interfaces of the collaborators the engine reads documents and links from."""

from __future__ import annotations

from typing import List, Protocol, Set

from insights.models import RawDocument


class DocumentStore(Protocol):
    def list_paths(self) -> List[str]:
        """All indexable document paths."""
        ...

    def read(self, path: str) -> str:
        """Full text of a document; raises ``DocumentReadError``."""
        ...

    def load(self, path: str) -> RawDocument:
        """Content plus the metadata the index builder needs."""
        ...

    def exists(self, path: str) -> bool: ...

    def create(self, path: str, text: str) -> None: ...

    def append(self, path: str, text: str) -> None: ...


class LinkGraph(Protocol):
    def outgoing_links(self, path: str) -> Set[str]:
        """Paths of the documents ``path`` links to."""
        ...
