"""Semantic chunker — paragraph-first splitting into bounded word windows.

Used for content the provider does not chunk (web pages, long plain text) and
as the client-side alternative to provider chunking.

Units are tried coarse to fine: paragraphs, then sentences, then plain word
windows for sentences longer than ``max_words``. A chunk is flushed at a
paragraph boundary once it holds ``min_words``, and at any unit boundary
before it would exceed ``max_words``. Words are never split, and joining
the chunks with single spaces reproduces the input modulo whitespace.
"""

from __future__ import annotations

import re
import textwrap

from notespace.errors import InvalidArgumentError

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_SENTENCE_RE = re.compile(r"(?<=[.!?…])\s+")

# (text, starts_paragraph, word_count)
_Unit = tuple[str, bool, int]


def count_words(text: str) -> int:
    return len(text.split())


def summarize_prefix(text: str, width: int = 200) -> str:
    """First ~*width* characters of *text*, cut at a word boundary."""
    normalized = " ".join(text.split())
    shortened = textwrap.shorten(normalized, width=width, placeholder="...")
    if shortened == "...":
        # A single word longer than width.
        return normalized[: width - 3] + "..."
    return shortened


class SemanticChunker:
    """Split text into chunks of roughly ``min_words``..``max_words`` words.

    Args:
        min_words: Soft lower bound; only the last chunk may fall below it.
        max_words: Hard upper bound on words per chunk.
    """

    def __init__(self, min_words: int = 200, max_words: int = 1000) -> None:
        if not 0 < min_words <= max_words:
            raise InvalidArgumentError(
                f"min_words must be > 0 and <= max_words (got {min_words}..{max_words})"
            )
        self.min_words = min_words
        self.max_words = max_words

    def chunk(self, text: str) -> list[str]:
        """Return ordered, non-empty chunks. Blank input yields ``[]``."""
        if not text.strip():
            return []

        groups: list[list[_Unit]] = []
        current: list[_Unit] = []
        count = 0

        for unit in self._units(text):
            _, starts_paragraph, words = unit
            if current and (
                count + words > self.max_words
                or (starts_paragraph and count >= self.min_words)
            ):
                groups.append(current)
                current, count = [], 0
            current.append(unit)
            count += words

        if current:
            groups.append(current)

        # Fold an undersized tail into its predecessor when it still fits.
        if len(groups) > 1:
            tail_words = sum(u[2] for u in groups[-1])
            prev_words = sum(u[2] for u in groups[-2])
            if tail_words < self.min_words and prev_words + tail_words <= self.max_words:
                tail = groups.pop()
                groups[-1].extend(tail)

        return [self._render(group) for group in groups]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _units(self, text: str):
        for paragraph in _PARAGRAPH_RE.split(text):
            if not paragraph.strip():
                continue
            first = True
            for sentence in _SENTENCE_RE.split(paragraph.strip()):
                words = sentence.split()
                if not words:
                    continue
                for start in range(0, len(words), self.max_words):
                    window = words[start:start + self.max_words]
                    yield " ".join(window), first, len(window)
                    first = False

    @staticmethod
    def _render(group: list[_Unit]) -> str:
        parts: list[str] = []
        for i, (unit_text, starts_paragraph, _) in enumerate(group):
            if i and starts_paragraph:
                parts.append("\n\n")
            elif i:
                parts.append(" ")
            parts.append(unit_text)
        return "".join(parts)
