"""Markdown vault on the local filesystem.

Implements both the document store and the link graph the engine consumes.
Paths handed in and out are vault-relative and use forward slashes.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Set
from urllib.parse import unquote

import yaml

from insights.errors import DocumentReadError
from insights.models import RawDocument
from insights.utils.files import MARKDOWN_SUFFIX, iter_markdown_paths, iter_vault_paths, to_vault_path

LOGGER = logging.getLogger(__name__)

_FRONTMATTER = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
_CODE = re.compile(r"```.*?```|`[^`\n]*`", re.DOTALL)
_INLINE_TAG = re.compile(r"(?:^|(?<=\s))#([\w/-]*[A-Za-z_][\w/-]*)", re.MULTILINE)
_WIKILINK = re.compile(r"\[\[([^\]|#]+)(?:#[^\]|]*)?(?:\|[^\]]*)?\]\]")
_MD_LINK = re.compile(r"(?<!!)\[[^\]]*\]\(([^)\s#]+)(?:#[^)]*)?\)")


def parse_frontmatter(content: str, path: str = "") -> tuple[Dict[str, Any], str]:
    """Split YAML frontmatter from the body; invalid YAML yields an empty mapping."""
    match = _FRONTMATTER.match(content)
    if not match:
        return {}, content
    try:
        raw = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        LOGGER.debug("Invalid YAML frontmatter in %s: %s", path, exc)
        return {}, content
    if not isinstance(raw, dict):
        return {}, content[match.end():]
    return raw, content[match.end():]


def frontmatter_tags(frontmatter: Dict[str, Any]) -> List[str]:
    tags: List[str] = []
    for key in ("tags", "tag"):
        value = frontmatter.get(key)
        if isinstance(value, list):
            tags.extend(str(item).strip() for item in value if isinstance(item, (str, int)))
        elif isinstance(value, str):
            tags.extend(part.strip() for part in value.split(","))
    return [tag for tag in tags if tag]


def inline_tags(body: str) -> List[str]:
    return _INLINE_TAG.findall(_CODE.sub(" ", body))


class FileSystemVault:
    """Directory of Markdown notes."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser().resolve()
        self._link_cache: tuple[Set[str], Dict[str, str]] | None = None

    def refresh(self) -> None:
        """Forget cached link-resolution tables after the vault changed."""
        self._link_cache = None

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise DocumentReadError(path, "outside of vault")
        return target

    def list_paths(self) -> List[str]:
        return list(iter_vault_paths(self.root))

    def snapshot(self) -> Dict[str, float]:
        """Map of path to modification time, used for change detection."""
        state: Dict[str, float] = {}
        for item in iter_markdown_paths(self.root):
            try:
                state[to_vault_path(item, self.root)] = item.stat().st_mtime
            except OSError:
                continue
        return state

    def read(self, path: str) -> str:
        try:
            return self._resolve(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentReadError(path, exc) from exc

    def load(self, path: str) -> RawDocument:
        content = self.read(path)
        try:
            mtime = self._resolve(path).stat().st_mtime
        except OSError as exc:
            raise DocumentReadError(path, exc) from exc
        frontmatter, body = parse_frontmatter(content, path)
        return RawDocument(
            path=path,
            content=content,
            mtime=mtime,
            fallback_title=PurePosixPath(path).stem,
            tags=inline_tags(body) + frontmatter_tags(frontmatter),
        )

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except DocumentReadError:
            return False

    def create(self, path: str, text: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        self.refresh()

    def append(self, path: str, text: str) -> None:
        with self._resolve(path).open("a", encoding="utf-8") as handle:
            handle.write(text)

    def _link_tables(self) -> tuple[Set[str], Dict[str, str]]:
        cache = self._link_cache
        if cache is not None:
            return cache
        paths = self.list_paths()
        by_path = set(paths)
        by_stem: Dict[str, str] = {}
        # Sorted order makes the first file win when stems collide.
        for path in paths:
            by_stem.setdefault(PurePosixPath(path).stem.lower(), path)
        self._link_cache = (by_path, by_stem)
        return by_path, by_stem

    def _resolve_link(self, source: str, target: str) -> str | None:
        by_path, by_stem = self._link_tables()
        target = unquote(target).strip()
        if not target or "://" in target:
            return None
        if not target.lower().endswith(MARKDOWN_SUFFIX):
            target = target + MARKDOWN_SUFFIX
        parent = PurePosixPath(source).parent
        for candidate in (parent / target, PurePosixPath(target)):
            normalized = _normalize(candidate)
            if normalized in by_path:
                return normalized
        return by_stem.get(PurePosixPath(target).stem.lower())

    def outgoing_links(self, path: str) -> Set[str]:
        try:
            content = self.read(path)
        except DocumentReadError as exc:
            LOGGER.warning("Skipping links of %s: %s", path, exc)
            return set()
        body = _CODE.sub(" ", content)
        targets = _WIKILINK.findall(body) + _MD_LINK.findall(body)
        links: Set[str] = set()
        for target in targets:
            resolved = self._resolve_link(path, target)
            if resolved is not None and resolved != path:
                links.add(resolved)
        return links


def _normalize(path: PurePosixPath) -> str:
    parts: List[str] = []
    for part in path.parts:
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)
