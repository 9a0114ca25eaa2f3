"""Lexical relevance ranking for chunk text search.

Scores chunks against a query with BM25 (``rank_bm25.BM25Plus``).  The
index is built over every candidate chunk of the project so term rarity
reflects the whole project, but only chunks sharing at least one term with
the query count as matches.
"""

from __future__ import annotations

import re

from rank_bm25 import BM25Plus

from ragcore.models.chunk import Chunk

_TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens used for both indexing and querying."""
    return _TOKEN_RE.findall(text.lower())


def rank_lexical(query_text: str, chunks: list[Chunk], top_k: int) -> list[Chunk]:
    """Return up to *top_k* chunks matching *query_text*, most relevant first.

    Ties are broken by ``chunk_number`` then ``unique_chunk_id`` so the
    order is stable across calls.
    """
    query_tokens = tokenize(query_text)
    if not query_tokens or not chunks or top_k <= 0:
        return []

    query_set = set(query_tokens)
    corpus = [tokenize(chunk.page_content) for chunk in chunks]
    matching = [idx for idx, tokens in enumerate(corpus) if query_set.intersection(tokens)]
    if not matching:
        return []

    bm25 = BM25Plus(corpus)
    scores = bm25.get_scores(query_tokens)

    matching.sort(
        key=lambda idx: (
            -float(scores[idx]),
            chunks[idx].chunk_number,
            chunks[idx].unique_chunk_id,
        )
    )
    return [chunks[idx] for idx in matching[:top_k]]
