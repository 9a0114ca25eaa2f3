"""Unit tests for the heading-aware text segmenter and adaptive sizing."""

from __future__ import annotations

import pytest

from ragcore.models.chunk import ChunkSizing
from ragcore.services.ingestion.segmenter import (
    DEFAULT_SIZING_THRESHOLDS,
    NO_SNIPPET,
    UNTITLED_HEADING,
    TextSegmenter,
    extract_headings,
    get_adaptive_chunk_params,
    is_heading,
    make_snippet,
    sizing_thresholds_from_config,
)


def _body(chunk: str) -> str:
    """Strip the two-line heading/snippet prefix."""
    return chunk.split("\n", 2)[2]


@pytest.fixture()
def segmenter() -> TextSegmenter:
    return TextSegmenter()


# ======================================================================
# segment()
# ======================================================================


class TestSegment:
    def test_heading_splits_document_into_two_chunks(self, segmenter: TextSegmenter) -> None:
        text = "The quick brown fox.\n\nSECTION 1: ANIMALS\nFoxes are quick."
        chunks = segmenter.segment(text, chunk_size=1000, chunk_overlap=200)

        assert len(chunks) == 2
        assert chunks[0].startswith(f"{UNTITLED_HEADING}\n")
        assert chunks[1].startswith("SECTION 1: ANIMALS\n")
        assert chunks[1] == "SECTION 1: ANIMALS\nSnippet: Foxes are quick.\nFoxes are quick."

    def test_same_input_same_output(self, segmenter: TextSegmenter) -> None:
        text = "INTRO\n" + "A sentence about foxes. " * 80 + "\n\nSECTION 2: OWLS\nOwls hoot."
        first = segmenter.segment(text, 300, 50)
        second = segmenter.segment(text, 300, 50)
        assert first == second
        assert TextSegmenter().segment(text, 300, 50) == first

    def test_empty_and_whitespace_input_yield_no_chunks(self, segmenter: TextSegmenter) -> None:
        assert segmenter.segment("", 500, 100) == []
        assert segmenter.segment("  \n\n \t", 500, 100) == []

    def test_non_positive_chunk_size_rejected(self, segmenter: TextSegmenter) -> None:
        with pytest.raises(ValueError):
            segmenter.segment("text", 0, 0)

    def test_each_paragraph_becomes_a_prefixed_chunk(self, segmenter: TextSegmenter) -> None:
        chunks = segmenter.segment("SECTION 1: ANIMALS\nFoxes.\n\nOwls.", 1000, 100)
        assert chunks == [
            "SECTION 1: ANIMALS\nSnippet: Foxes.\nFoxes.",
            "SECTION 1: ANIMALS\nSnippet: Foxes.\nOwls.",
        ]

    def test_unbroken_text_bodies_stay_within_chunk_size(self, segmenter: TextSegmenter) -> None:
        chunks = segmenter.segment("a" * 250, chunk_size=100, chunk_overlap=20)
        assert len(chunks) > 1
        for chunk in chunks:
            assert len(_body(chunk)) <= 100

    def test_long_prose_bodies_stay_within_chunk_size(self, segmenter: TextSegmenter) -> None:
        text = " ".join(f"Sentence number {i} talks about foxes." for i in range(60))
        for chunk in segmenter.segment(text, chunk_size=120, chunk_overlap=30):
            assert len(_body(chunk)) <= 120

    def test_overlap_larger_than_size_is_clamped(self, segmenter: TextSegmenter) -> None:
        chunks = segmenter.segment("b" * 50, chunk_size=10, chunk_overlap=50)
        assert chunks
        assert all(len(_body(c)) <= 10 for c in chunks)


# ======================================================================
# Strategy stages
# ======================================================================


class TestWindowSplit:
    def test_windows_respect_size_and_share_overlap(self) -> None:
        text = "".join(chr(ord("a") + i % 26) for i in range(300))
        windows = TextSegmenter.window_split(text, chunk_size=100, overlap=20)

        assert all(len(w) <= 100 for w in windows)
        for current, following in zip(windows, windows[1:]):
            assert current[-20:] == following[:20]
        assert text.endswith(windows[-1])

    def test_short_text_is_single_window(self) -> None:
        assert TextSegmenter.window_split("short", 100, 20) == ["short"]


class TestSentenceSplit:
    def test_new_buffer_starts_with_previous_tail(self) -> None:
        text = "One two three. Four five six. Seven eight nine."
        chunks = TextSegmenter.sentence_split(text, chunk_size=20, overlap=5)

        assert chunks[0] == "One two three."
        assert chunks[1].startswith(chunks[0][-5:])
        assert chunks[2].startswith(chunks[1][-5:])

    def test_fits_in_one_buffer(self) -> None:
        text = "Short one. Short two."
        assert TextSegmenter.sentence_split(text, 100, 10) == [text]


class TestSplitSections:
    def test_text_before_first_heading_is_untitled(self, segmenter: TextSegmenter) -> None:
        sections = segmenter.split_sections("Preface line.\n  CHAPTER ONE  \nBody text.")
        assert [s.heading for s in sections] == [UNTITLED_HEADING, "CHAPTER ONE"]
        assert sections[0].snippet == "Preface line."

    def test_heading_without_body_is_skipped(self, segmenter: TextSegmenter) -> None:
        sections = segmenter.split_sections("EMPTY HEADING\nNEXT HEADING\nsome body")
        assert [s.heading for s in sections] == ["NEXT HEADING"]


# ======================================================================
# Heuristics
# ======================================================================


class TestHeadingHeuristics:
    @pytest.mark.parametrize(
        "line",
        ["SECTION 1: ANIMALS", "Section 2: plants", "  INTRODUCTION  ", "PART II - 1999"],
    )
    def test_headings(self, line: str) -> None:
        assert is_heading(line) is True

    @pytest.mark.parametrize("line", ["", "Foxes are quick.", "1234", "X" * 121])
    def test_non_headings(self, line: str) -> None:
        assert is_heading(line) is False

    def test_extract_headings_in_order(self) -> None:
        text = "INTRO\nbody\nSection 3: Results\nmore"
        assert extract_headings(text) == ["INTRO", "Section 3: Results"]


class TestMakeSnippet:
    def test_long_first_line_is_truncated(self) -> None:
        snippet = make_snippet("H", "\n" + "word " * 30)
        assert snippet.endswith("...")
        assert len(snippet) <= 53

    def test_short_first_line_kept(self) -> None:
        assert make_snippet("H", "\n\nFirst line.\nSecond.") == "First line."

    def test_empty_body_fallbacks(self) -> None:
        assert make_snippet(UNTITLED_HEADING, "  \n") == NO_SNIPPET
        assert make_snippet("SECTION 9: EMPTY", "") == "SECTION 9: EMPTY"


# ======================================================================
# Adaptive sizing
# ======================================================================


class TestAdaptiveChunkParams:
    def test_small_document(self) -> None:
        assert get_adaptive_chunk_params(3000) == ChunkSizing(chunk_size=500, chunk_overlap=100)

    def test_large_document_gets_larger_chunks(self) -> None:
        small = get_adaptive_chunk_params(3000)
        large = get_adaptive_chunk_params(80000)
        assert large == ChunkSizing(chunk_size=1500, chunk_overlap=200)
        assert large.chunk_size > small.chunk_size

    def test_bounds_are_exclusive(self) -> None:
        assert get_adaptive_chunk_params(4999).chunk_size == 500
        assert get_adaptive_chunk_params(5000).chunk_size == 1000
        assert get_adaptive_chunk_params(50000).chunk_size == 1500

    def test_thresholds_from_config_sorted(self) -> None:
        config = {
            "chunking": {
                "thresholds": [
                    {"max_chars": None, "chunk_size": 2000, "chunk_overlap": 300},
                    {"max_chars": 1000, "chunk_size": 200, "chunk_overlap": 20},
                ]
            }
        }
        table = sizing_thresholds_from_config(config)
        assert table[0][0] == 1000
        assert get_adaptive_chunk_params(500, table).chunk_size == 200
        assert get_adaptive_chunk_params(10**6, table).chunk_size == 2000

    def test_thresholds_default_when_missing(self) -> None:
        assert sizing_thresholds_from_config({}) is DEFAULT_SIZING_THRESHOLDS
