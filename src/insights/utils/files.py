"""Utility helpers for working with files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

MARKDOWN_SUFFIX = ".md"


def _is_hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


def iter_markdown_paths(root: Path) -> Iterator[Path]:
    """Yield Markdown files under ``root`` in sorted order, skipping hidden entries."""
    if not root.is_dir():
        return
    for item in sorted(root.rglob(f"*{MARKDOWN_SUFFIX}")):
        if item.is_file() and not _is_hidden(item, root):
            yield item


def to_vault_path(path: Path, root: Path) -> str:
    """Vault-relative path with forward slashes."""
    return path.relative_to(root).as_posix()


def iter_vault_paths(root: Path) -> Iterable[str]:
    return [to_vault_path(path, root) for path in iter_markdown_paths(root)]
