"""Text helpers: Markdown stripping, tokenization and light lemmatization."""

from __future__ import annotations

import re
from typing import Iterable, List

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if", "in",
        "into", "is", "it", "no", "not", "of", "on", "or", "such", "that", "the",
        "their", "then", "there", "these", "they", "this", "to", "was", "will",
        "with", "from", "we", "you", "your", "i", "our", "ours", "yours", "me",
        "my", "mine", "he", "she", "his", "her", "hers", "them", "those", "were",
        "been", "being", "about", "over", "under", "again", "further", "do",
        "does", "did", "doing", "so", "than", "too", "very", "can", "could",
        "should", "would", "may", "might",
    }
)

_CODE_BLOCK = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE = re.compile(r"`[^`]*`")
_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_FRONTMATTER = re.compile(r"\A\s*---[ \t]*\n.*?\n---[ \t]*(?:\n|\Z)", re.DOTALL)
_LINE_MARKERS = re.compile(r"^[#>\-+*]+\s+", re.MULTILINE)
_HTML_TAG = re.compile(r"<[^>]+>")
_TABS = re.compile(r"[\t\r]+")
_NON_WORD = re.compile(r"[^a-z0-9]+")
_LINE_BREAKS = re.compile(r"\n+")


def strip_markdown(text: str) -> str:
    """Remove Markdown syntax that carries no content words."""
    text = _CODE_BLOCK.sub(" ", text)
    text = _INLINE_CODE.sub(" ", text)
    text = _IMAGE.sub(" ", text)
    text = _LINK.sub(r"\1", text)
    # Frontmatter goes before line markers, which would otherwise eat the `---` fences.
    text = _FRONTMATTER.sub(" ", text, count=1)
    text = _LINE_MARKERS.sub("", text)
    text = _HTML_TAG.sub(" ", text)
    return _TABS.sub(" ", text)


def lemmatize_token(token: str) -> str:
    """Strip common English plural, past and gerund suffixes."""
    if token.endswith("ies") and len(token) > 4:
        return token[:-3] + "y"
    if token.endswith("sses"):
        return token[:-2]
    if token.endswith("s") and not token.endswith("ss") and len(token) > 3:
        return token[:-1]
    if token.endswith("ing") and len(token) > 5:
        return token[:-3]
    if token.endswith("ed") and len(token) > 4:
        return token[:-2]
    return token


def tokenize(text: str) -> List[str]:
    """Turn raw document text into a list of content-bearing word stems."""
    stripped = strip_markdown(text.lower())
    tokens: List[str] = []
    for raw in _NON_WORD.split(stripped):
        if not raw or raw in STOP_WORDS:
            continue
        lemma = lemmatize_token(raw)
        if lemma and lemma not in STOP_WORDS:
            tokens.append(lemma)
    return tokens


def split_lines(text: str) -> List[str]:
    """Split on runs of newlines, dropping the empty lines in between."""
    return _LINE_BREAKS.split(text)


def read_head(content: str, max_chars: int = 1200, max_lines: int = 40) -> str:
    """Return the first lines of a document, capped in length."""
    head = "\n".join(split_lines(content)[:max_lines])
    return head[:max_chars]


def term_counts(tokens: Iterable[str]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for token in tokens:
        counts[token] = counts.get(token, 0) + 1
    return counts
