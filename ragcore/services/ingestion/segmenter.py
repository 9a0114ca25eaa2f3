"""Hierarchical text segmentation with heading/snippet context prefixes.

Turns raw page text into an ordered list of bounded-size chunk strings.
Four strategies are nested, each used only when the previous one leaves a
piece that is still too large:

1. **Heading split** -- lines that look like headings (ALL CAPS, or
   ``Section <n>:``) open a new section.  Text before the first heading
   belongs to the sentinel section ``"UNTITLED SECTION"``.  Every section
   also gets a *snippet*: the first non-empty line of its body, cut to 50
   characters with ``...`` appended when truncated.
2. **Paragraph split** -- section bodies split on blank lines.
3. **Sentence split** -- a paragraph longer than ``chunk_size`` is packed
   sentence by sentence; each new buffer starts with the trailing
   ``chunk_overlap`` characters of the buffer just emitted.
4. **Character windows** -- a sentence chunk still over ``chunk_size`` is
   cut into fixed windows of ``chunk_size`` characters, consecutive windows
   sharing ``chunk_overlap`` characters.

Every emitted chunk is prefixed with::

    <heading>
    Snippet: <snippet>
    <body text>

so a chunk cut out of the middle of a section still says where it came from.

All functions here are pure and synchronous; segmentation never suspends
and never raises on odd input (it returns fewer or zero chunks instead).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from ragcore.models.chunk import ChunkSizing

logger = structlog.get_logger(logger_name=__name__)

UNTITLED_HEADING = "UNTITLED SECTION"
NO_SNIPPET = "No snippet available"
SNIPPET_PREFIX = "Snippet: "
SNIPPET_MAX_CHARS = 50

_SECTION_HEADING_RE = re.compile(r"^section\s+\d+:", re.IGNORECASE)
# Longer "all caps" lines are shouting prose or table rows, not headings.
_MAX_HEADING_CHARS = 120
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.?!])\s+")

# Adaptive sizing policy: (exclusive upper bound on total chars, sizing).
# The last entry's bound is None and catches everything larger.
DEFAULT_SIZING_THRESHOLDS: tuple[tuple[int | None, ChunkSizing], ...] = (
    (5_000, ChunkSizing(chunk_size=500, chunk_overlap=100)),
    (50_000, ChunkSizing(chunk_size=1000, chunk_overlap=200)),
    (None, ChunkSizing(chunk_size=1500, chunk_overlap=200)),
)


@dataclass(frozen=True)
class Section:
    """One heading-delimited section of a page."""

    heading: str
    snippet: str
    body: str

    @property
    def prefix(self) -> str:
        return f"{self.heading}\n{SNIPPET_PREFIX}{self.snippet}"


# ------------------------------------------------------------------
# Heading / snippet heuristics
# ------------------------------------------------------------------

def is_heading(line: str) -> bool:
    """Return ``True`` if *line* looks like a heading.

    A heading is either a ``Section <number>:`` line (any case) or a short
    line that has at least one uppercase letter and no lowercase letters.
    """
    stripped = line.strip()
    if not stripped or len(stripped) > _MAX_HEADING_CHARS:
        return False
    if _SECTION_HEADING_RE.match(stripped):
        return True
    has_upper = False
    for ch in stripped:
        if ch.islower():
            return False
        if ch.isupper():
            has_upper = True
    return has_upper


def extract_headings(text: str) -> list[str]:
    """Return every heading-like line in *text*, stripped, in order."""
    return [line.strip() for line in text.split("\n") if is_heading(line)]


def make_snippet(heading: str, body: str) -> str:
    """Build the snippet for a section from the first non-empty body line."""
    for line in body.split("\n"):
        first = line.strip()
        if first:
            snippet = first[:SNIPPET_MAX_CHARS].strip()
            if len(first) > SNIPPET_MAX_CHARS:
                snippet += "..."
            return snippet
    return NO_SNIPPET if heading == UNTITLED_HEADING else heading


# ------------------------------------------------------------------
# Adaptive sizing
# ------------------------------------------------------------------

def get_adaptive_chunk_params(
    total_chars: int,
    thresholds: tuple[tuple[int | None, ChunkSizing], ...] = DEFAULT_SIZING_THRESHOLDS,
) -> ChunkSizing:
    """Choose chunk size and overlap for a document of *total_chars* characters.

    Smaller documents get smaller chunks with proportionally larger overlap;
    larger documents get larger chunks to bound the total chunk count.
    """
    for bound, sizing in thresholds:
        if bound is None or total_chars < bound:
            return sizing
    # Policy without a catch-all entry: the largest tier applies.
    return thresholds[-1][1]


def sizing_thresholds_from_config(config: dict) -> tuple[tuple[int | None, ChunkSizing], ...]:
    """Build a thresholds table from the ``chunking.thresholds`` config list.

    Entries are sorted by ``max_chars`` with the open-ended entry last.
    Falls back to :data:`DEFAULT_SIZING_THRESHOLDS` when the list is absent.
    """
    raw = (config.get("chunking") or {}).get("thresholds") or []
    if not raw:
        return DEFAULT_SIZING_THRESHOLDS
    table = [
        (
            entry.get("max_chars"),
            ChunkSizing(chunk_size=entry["chunk_size"], chunk_overlap=entry["chunk_overlap"]),
        )
        for entry in raw
    ]
    table.sort(key=lambda item: (item[0] is None, item[0] or 0))
    return tuple(table)


# ------------------------------------------------------------------
# Segmenter
# ------------------------------------------------------------------

class TextSegmenter:
    """Splits page text into heading-prefixed chunk strings.

    Stateless; one instance can be shared across documents and tasks.
    """

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def segment(self, text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
        """Split *text* into ordered chunk strings of bounded body size.

        Parameters
        ----------
        text:
            Raw text of one page (or a whole plain-text document).
        chunk_size:
            Maximum body characters per chunk, excluding the heading prefix.
        chunk_overlap:
            Characters carried over between consecutive split chunks.
            Clamped to ``chunk_size - 1``.

        Returns
        -------
        list[str]
            Chunks in document order.  Empty or whitespace-only input
            returns an empty list.

        Raises
        ------
        ValueError
            If *chunk_size* is not positive.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        overlap = max(0, min(chunk_overlap, chunk_size - 1))

        if not text or not text.strip():
            return []

        chunks: list[str] = []
        sections = self.split_sections(text)
        for section in sections:
            for body in self._split_section_body(section.body, chunk_size, overlap):
                chunks.append(f"{section.prefix}\n{body}")

        logger.debug(
            "segmentation_complete",
            num_sections=len(sections),
            num_chunks=len(chunks),
            chunk_size=chunk_size,
            chunk_overlap=overlap,
        )
        return chunks

    def split_sections(self, text: str) -> list[Section]:
        """Split *text* into heading-delimited sections, skipping empty bodies."""
        sections: list[Section] = []
        heading = UNTITLED_HEADING
        buffer: list[str] = []

        for line in text.split("\n"):
            if is_heading(line):
                self._flush_section(sections, heading, buffer)
                heading = line.strip()
                buffer = []
            else:
                buffer.append(line)

        self._flush_section(sections, heading, buffer)
        return sections

    # ------------------------------------------------------------------
    # Strategy stages
    # ------------------------------------------------------------------

    def _split_section_body(self, body: str, chunk_size: int, overlap: int) -> list[str]:
        pieces: list[str] = []
        for paragraph in self._split_paragraphs(body):
            if len(paragraph) <= chunk_size:
                pieces.append(paragraph)
                continue
            for sentence_chunk in self.sentence_split(paragraph, chunk_size, overlap):
                if len(sentence_chunk) > chunk_size:
                    pieces.extend(self.window_split(sentence_chunk, chunk_size, overlap))
                else:
                    pieces.append(sentence_chunk)
        return pieces

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split *text* on blank lines, discarding blanks."""
        parts = _PARAGRAPH_BREAK_RE.split(text)
        return [p.strip() for p in parts if p.strip()]

    @staticmethod
    def sentence_split(text: str, chunk_size: int, overlap: int) -> list[str]:
        """Pack sentences into buffers of at most *chunk_size* characters.

        When the next sentence would overflow the buffer, the buffer is
        emitted and the next one starts with its last *overlap* characters
        followed by that sentence.  A single sentence longer than
        *chunk_size* yields an oversized piece for :meth:`window_split`.
        """
        chunks: list[str] = []
        current = ""
        for sentence in _SENTENCE_BREAK_RE.split(text):
            if not sentence:
                continue
            candidate = f"{current} {sentence}" if current else sentence
            if len(candidate) <= chunk_size or not current:
                current = candidate
                continue
            chunks.append(current)
            tail = current[-overlap:] if overlap else ""
            current = f"{tail} {sentence}" if tail else sentence
        if current:
            chunks.append(current)
        return chunks

    @staticmethod
    def window_split(text: str, chunk_size: int, overlap: int) -> list[str]:
        """Cut *text* into windows of *chunk_size* chars sharing *overlap* chars.

        The last window ends exactly at the end of *text*; no window is
        emitted that lies entirely inside the previous one.
        """
        step = chunk_size - overlap
        windows: list[str] = []
        start = 0
        while start < len(text):
            end = min(start + chunk_size, len(text))
            windows.append(text[start:end])
            if end == len(text):
                break
            start += step
        return windows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _flush_section(sections: list[Section], heading: str, buffer: list[str]) -> None:
        body = "\n".join(buffer)
        if not body.strip():
            return
        sections.append(Section(heading=heading, snippet=make_snippet(heading, body), body=body))
