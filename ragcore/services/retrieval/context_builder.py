"""Assembles retrieved chunks into one context string for a chat model.

Each chunk becomes a block headed by its provenance::

    [chunk <unique_chunk_id> | page <n> | <title> by <author> | headings: A; B]
    <chunk text, or its summary>

Blocks are joined with ``"\\n\\n---\\n\\n"``.  Chunks longer than
``summarize_threshold`` characters are condensed by the LLM first when one
is configured; a failed summary keeps the original text.
"""

from __future__ import annotations

from ragcore.interfaces.llm_provider import ILLMProvider
from ragcore.models.chunk import Chunk
from ragcore.utils.concurrency import throttled_gather
from ragcore.utils.errors import RagCoreError
from ragcore.utils.logging import get_logger

BLOCK_SEPARATOR = "\n\n---\n\n"

_SUMMARY_SYSTEM_PROMPT = (
    "You condense passages retrieved from a document so they fit in a "
    "limited context window. Keep names, numbers, dates and any facts a "
    "reader could be asked about. Do not add information that is not in "
    "the passage. Reply with the condensed passage only."
)


def format_provenance(chunk: Chunk) -> str:
    """Return the ``[chunk ... ]`` header line for *chunk*.

    Page and headings are left out when the chunk has none.
    """
    md = chunk.metadata
    parts = [f"chunk {chunk.unique_chunk_id}"]
    if md.page_number is not None:
        parts.append(f"page {md.page_number}")
    parts.append(f"{md.doc_title or 'Untitled'} by {md.doc_author or 'Unknown'}")
    if md.headings:
        parts.append("headings: " + "; ".join(md.headings))
    return "[" + " | ".join(parts) + "]"


class ContextBuilder:
    """Joins chunks into a provenance-preserving context string.

    Parameters
    ----------
    llm:
        Used to summarize long chunks.  ``None`` disables summarization.
    summarize_threshold:
        Chunks with more characters than this are summarized.
    max_chars:
        Upper bound on the returned string.  Only whole blocks are
        included; the first block is always kept.
    concurrency:
        Summaries requested at once.
    """

    def __init__(
        self,
        llm: ILLMProvider | None = None,
        summarize_threshold: int = 2000,
        max_chars: int = 12000,
        concurrency: int = 2,
    ) -> None:
        self._llm = llm
        self._summarize_threshold = summarize_threshold
        self._max_chars = max_chars
        self._concurrency = concurrency
        self._logger = get_logger(__name__)

    async def build(self, chunks: list[Chunk]) -> str:
        """Return the context string for *chunks*, in the given order."""
        if not chunks:
            return ""

        texts = await self._condense(chunks)
        blocks = [f"{format_provenance(c)}\n{text}" for c, text in zip(chunks, texts)]

        kept: list[str] = []
        total = 0
        for block in blocks:
            added = len(block) + (len(BLOCK_SEPARATOR) if kept else 0)
            if kept and total + added > self._max_chars:
                break
            kept.append(block)
            total += added

        if len(kept) < len(blocks):
            self._logger.info(
                "context_truncated",
                blocks_total=len(blocks),
                blocks_kept=len(kept),
                max_chars=self._max_chars,
            )
        return BLOCK_SEPARATOR.join(kept)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _condense(self, chunks: list[Chunk]) -> list[str]:
        texts = [c.page_content for c in chunks]
        llm = self._llm
        if llm is None:
            return texts

        long_indices = [
            i for i, text in enumerate(texts) if len(text) > self._summarize_threshold
        ]
        if not long_indices:
            return texts

        results = await throttled_gather(
            [_summarize(llm, texts[i]) for i in long_indices],
            limit=self._concurrency,
        )
        for i, outcome in zip(long_indices, results):
            if isinstance(outcome, RagCoreError):
                self._logger.warning(
                    "context_summary_failed",
                    unique_chunk_id=chunks[i].unique_chunk_id,
                    error=str(outcome),
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            elif outcome.strip():
                texts[i] = outcome.strip()
        return texts


async def _summarize(llm: ILLMProvider, text: str) -> str:
    return await llm.complete(
        system_prompt=_SUMMARY_SYSTEM_PROMPT,
        user_prompt=text,
        temperature=0.0,
        max_tokens=512,
    )
