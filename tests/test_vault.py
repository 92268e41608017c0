"""Tests for the filesystem vault, frontmatter and link resolution."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from insights.errors import DocumentReadError
from insights.store.vault import FileSystemVault, frontmatter_tags, inline_tags, parse_frontmatter


def _write(root: Path, relative: str, text: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestFrontmatter:
    """Tests for YAML frontmatter and tag extraction."""

    def test_parse_frontmatter(self) -> None:
        meta, body = parse_frontmatter("---\ntitle: Hi\ntags: [a, b]\n---\nBody")
        assert meta == {"title": "Hi", "tags": ["a", "b"]}
        assert body == "Body"

    def test_invalid_yaml_keeps_content(self) -> None:
        content = "---\ntags: [unclosed\n---\nBody"
        assert parse_frontmatter(content) == ({}, content)

    def test_no_frontmatter(self) -> None:
        assert parse_frontmatter("# Title") == ({}, "# Title")

    def test_frontmatter_tags_list_and_string(self) -> None:
        assert frontmatter_tags({"tags": ["x", 2, None]}) == ["x", "2"]
        assert frontmatter_tags({"tag": "one, two"}) == ["one", "two"]

    def test_inline_tags(self) -> None:
        body = "# Heading\nSome #idea and #work/project but not `#code` or #123"
        assert inline_tags(body) == ["idea", "work/project"]


class TestFileSystemVault:
    """Tests for FileSystemVault."""

    def test_load(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "folder/Note.md", "---\ntags: [Alpha]\n---\n# Title\ntext #beta")
        os.utime(path, (1000, 1000))

        document = FileSystemVault(tmp_path).load("folder/Note.md")

        assert document.path == "folder/Note.md"
        assert document.fallback_title == "Note"
        assert document.mtime == 1000
        assert document.tags == ["beta", "Alpha"]
        assert document.content.startswith("---")

    def test_read_missing(self, tmp_path: Path) -> None:
        with pytest.raises(DocumentReadError) as info:
            FileSystemVault(tmp_path).read("missing.md")
        assert info.value.path == "missing.md"

    def test_paths_outside_vault_rejected(self, tmp_path: Path) -> None:
        vault_root = tmp_path / "vault"
        vault_root.mkdir()
        _write(tmp_path, "secret.md", "nope")
        vault = FileSystemVault(vault_root)

        with pytest.raises(DocumentReadError, match="outside of vault"):
            vault.read("../secret.md")
        assert not vault.exists("../secret.md")

    def test_create_and_append(self, tmp_path: Path) -> None:
        vault = FileSystemVault(tmp_path)
        assert not vault.exists("Digest/Out.md")

        vault.create("Digest/Out.md", "# Head\n")
        vault.append("Digest/Out.md", "more\n")

        assert vault.exists("Digest/Out.md")
        assert (tmp_path / "Digest" / "Out.md").read_text(encoding="utf-8") == "# Head\nmore\n"
        assert "Digest/Out.md" in vault.list_paths()

    def test_snapshot(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "a.md", "x")
        os.utime(path, (50, 50))
        assert FileSystemVault(tmp_path).snapshot() == {"a.md": 50}


class TestOutgoingLinks:
    """Tests for wiki and Markdown link resolution."""

    def test_link_forms(self, tmp_path: Path) -> None:
        _write(tmp_path, "src.md", "[[Target]] [[folder/deep|alias]] [[Other#Section]] [rel](sib.md) [web](https://x.org/a.md)")
        _write(tmp_path, "target.md", "")
        _write(tmp_path, "folder/deep.md", "")
        _write(tmp_path, "nested/other.md", "")
        _write(tmp_path, "sib.md", "")

        links = FileSystemVault(tmp_path).outgoing_links("src.md")

        assert links == {"target.md", "folder/deep.md", "nested/other.md", "sib.md"}

    def test_relative_markdown_link(self, tmp_path: Path) -> None:
        _write(tmp_path, "a/src.md", "[up](../b/dest.md) [here](near.md)")
        _write(tmp_path, "b/dest.md", "")
        _write(tmp_path, "a/near.md", "")

        assert FileSystemVault(tmp_path).outgoing_links("a/src.md") == {"b/dest.md", "a/near.md"}

    def test_unresolved_self_and_code_links_ignored(self, tmp_path: Path) -> None:
        _write(tmp_path, "src.md", "[[src]] [[Nowhere]] `[[code]]`")
        _write(tmp_path, "code.md", "")

        assert FileSystemVault(tmp_path).outgoing_links("src.md") == set()

    def test_unreadable_source(self, tmp_path: Path) -> None:
        assert FileSystemVault(tmp_path).outgoing_links("gone.md") == set()

    def test_refresh_picks_up_new_notes(self, tmp_path: Path) -> None:
        _write(tmp_path, "src.md", "[[Later]]")
        vault = FileSystemVault(tmp_path)
        assert vault.outgoing_links("src.md") == set()

        _write(tmp_path, "later.md", "")
        assert vault.outgoing_links("src.md") == set()
        vault.refresh()

        assert vault.outgoing_links("src.md") == {"later.md"}

    def test_refresh_while_tables_are_built(self, tmp_path: Path) -> None:
        """A refresh racing a table build never leaves resolution without tables."""
        _write(tmp_path, "src.md", "[[Target]]")
        _write(tmp_path, "target.md", "")

        class RacingVault(FileSystemVault):
            def list_paths(self):
                paths = super().list_paths()
                self.refresh()
                return paths

        assert RacingVault(tmp_path).outgoing_links("src.md") == {"target.md"}
