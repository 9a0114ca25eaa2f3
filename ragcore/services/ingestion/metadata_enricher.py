"""Heuristic metadata enrichment for chunk text.

Derives, for one emitted chunk:

- ``headings``  -- heading-like lines, re-detected with the segmenter's rule
  (a chunk can hold several even though segmentation split only at the top);
- ``snippet``   -- taken from the ``Snippet:`` prefix line when present;
- ``num_tokens`` -- from a pluggable token counter;
- ``keywords`` / ``entities`` / ``topics`` -- from pluggable extractors.

The extractors are deliberately simple (frequency counts, capitalized
phrases, a fixed keyword taxonomy).  Each sits behind
:class:`TermExtractor` so a statistical NLP backend can replace it without
touching the pipeline.  An extractor that raises is logged and contributes
an empty list; enrichment itself never fails a chunk.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections import Counter
from typing import Callable

import structlog

from ragcore.models.chunk import ChunkMetadata
from ragcore.services.ingestion.segmenter import (
    SNIPPET_PREFIX,
    UNTITLED_HEADING,
    extract_headings,
    make_snippet,
)

logger = structlog.get_logger(logger_name=__name__)

_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'\-]+")
# Runs of Capitalized words, optionally joined by "of"/"the"/"and" ("Bank of England").
_CAPITALIZED_PHRASE_RE = re.compile(
    r"\b[A-Z][a-zA-Z]+(?:\s+(?:of|the|and|de|von)\s+[A-Z][a-zA-Z]+|\s+[A-Z][a-zA-Z]+)*\b"
)

_STOPWORDS = frozenset(
    {
        "a", "about", "after", "all", "also", "an", "and", "any", "are", "as", "at",
        "be", "because", "been", "before", "but", "by", "can", "could", "did", "do",
        "does", "each", "for", "from", "had", "has", "have", "he", "her", "here",
        "his", "how", "i", "if", "in", "into", "is", "it", "its", "may", "more",
        "most", "no", "not", "of", "on", "one", "only", "or", "other", "our", "out",
        "over", "she", "should", "so", "some", "such", "than", "that", "the",
        "their", "them", "then", "there", "these", "they", "this", "those", "to",
        "under", "up", "very", "was", "we", "were", "what", "when", "where",
        "which", "while", "who", "will", "with", "would", "you", "your",
    }
)

DEFAULT_TOPIC_TAXONOMY: dict[str, frozenset[str]] = {
    "finance": frozenset(
        {"revenue", "profit", "budget", "cost", "price", "market", "investment", "tax", "earnings", "fiscal"}
    ),
    "legal": frozenset(
        {"contract", "agreement", "clause", "liability", "court", "law", "statute", "party", "plaintiff", "defendant"}
    ),
    "technology": frozenset(
        {"software", "system", "data", "network", "algorithm", "computer", "server", "api", "database", "code"}
    ),
    "science": frozenset(
        {"experiment", "hypothesis", "research", "theory", "analysis", "laboratory", "study", "results", "evidence", "method"}
    ),
    "health": frozenset(
        {"patient", "treatment", "clinical", "disease", "medical", "health", "therapy", "diagnosis", "hospital", "symptoms"}
    ),
    "education": frozenset(
        {"student", "teacher", "course", "school", "learning", "curriculum", "university", "lecture", "exam", "education"}
    ),
}


# ------------------------------------------------------------------
# Token counting
# ------------------------------------------------------------------

def approximate_token_count(text: str) -> int:
    """Rough token estimate: four characters per token."""
    return len(text) // 4


class HuggingFaceTokenCounter:
    """Counts tokens with a HuggingFace ``tokenizers`` vocabulary.

    The tokenizer is fetched on first use.  If it cannot be loaded (no
    network, unknown name) counting falls back to
    :func:`approximate_token_count` for the lifetime of the instance.
    """

    def __init__(self, tokenizer_name: str = "bert-base-uncased") -> None:
        self._tokenizer_name = tokenizer_name
        self._tokenizer = None
        self._loaded = False

    def __call__(self, text: str) -> int:
        if not self._loaded:
            self._tokenizer = self._load_tokenizer()
            self._loaded = True
        if self._tokenizer is not None:
            return len(self._tokenizer.encode(text).ids)
        return approximate_token_count(text)

    def _load_tokenizer(self):  # noqa: ANN202
        from tokenizers import Tokenizer

        try:
            return Tokenizer.from_pretrained(self._tokenizer_name)
        except Exception:  # noqa: BLE001
            logger.info(
                "tokenizer_unavailable",
                tokenizer=self._tokenizer_name,
                msg="Falling back to approximate token counting (len // 4).",
            )
            return None


# ------------------------------------------------------------------
# Pluggable extractors
# ------------------------------------------------------------------

class TermExtractor(ABC):
    """Strategy that pulls a list of terms (keywords, entities, topics) from text."""

    name: str = "extractor"

    @abstractmethod
    def extract(self, text: str) -> list[str]:
        """Return extracted terms in a deterministic order."""


class FrequencyKeywordExtractor(TermExtractor):
    """Most frequent non-stopword words, ties broken by first appearance."""

    name = "keywords"

    def __init__(self, max_keywords: int = 8, min_length: int = 3) -> None:
        self._max_keywords = max_keywords
        self._min_length = min_length

    def extract(self, text: str) -> list[str]:
        words = [
            w.lower()
            for w in _WORD_RE.findall(text)
            if len(w) >= self._min_length and w.lower() not in _STOPWORDS
        ]
        counts = Counter(words)
        first_seen = {w: i for i, w in reversed(list(enumerate(words)))}
        ranked = sorted(counts, key=lambda w: (-counts[w], first_seen[w]))
        return ranked[: self._max_keywords]


class CapitalizedPhraseEntityExtractor(TermExtractor):
    """Runs of capitalized words, excluding lone sentence-initial stopwords."""

    name = "entities"

    def __init__(self, max_entities: int = 8) -> None:
        self._max_entities = max_entities

    def extract(self, text: str) -> list[str]:
        entities: list[str] = []
        seen: set[str] = set()
        for match in _CAPITALIZED_PHRASE_RE.finditer(text):
            phrase = match.group(0).strip()
            if " " not in phrase and phrase.lower() in _STOPWORDS:
                continue
            if phrase.isupper():
                continue
            if phrase not in seen:
                seen.add(phrase)
                entities.append(phrase)
            if len(entities) >= self._max_entities:
                break
        return entities


class TaxonomyTopicExtractor(TermExtractor):
    """Tags topics whose keyword set overlaps the text's words enough."""

    name = "topics"

    def __init__(
        self,
        taxonomy: dict[str, frozenset[str]] | None = None,
        min_overlap: int = 2,
    ) -> None:
        self._taxonomy = taxonomy if taxonomy is not None else DEFAULT_TOPIC_TAXONOMY
        self._min_overlap = min_overlap

    def extract(self, text: str) -> list[str]:
        words = {w.lower() for w in _WORD_RE.findall(text)}
        return [
            topic
            for topic, keywords in sorted(self._taxonomy.items())
            if len(words & keywords) >= self._min_overlap
        ]


def taxonomy_from_config(config: dict) -> dict[str, frozenset[str]]:
    """Read ``enrichment.topics`` from config, falling back to the default taxonomy."""
    topics = (config.get("enrichment") or {}).get("topics") or {}
    if not topics:
        return DEFAULT_TOPIC_TAXONOMY
    return {name: frozenset(str(k).lower() for k in keywords) for name, keywords in topics.items()}


# ------------------------------------------------------------------
# Enricher
# ------------------------------------------------------------------

class MetadataEnricher:
    """Builds :class:`ChunkMetadata` for chunk text emitted by the segmenter.

    Parameters
    ----------
    token_counter:
        Callable returning the token count of a string.  Defaults to the
        ``len // 4`` approximation; production wiring passes a
        :class:`HuggingFaceTokenCounter`.
    keyword_extractor, entity_extractor, topic_extractor:
        Strategy overrides.  Defaults are the heuristic extractors above.
    """

    def __init__(
        self,
        token_counter: Callable[[str], int] | None = None,
        keyword_extractor: TermExtractor | None = None,
        entity_extractor: TermExtractor | None = None,
        topic_extractor: TermExtractor | None = None,
    ) -> None:
        self._count_tokens = token_counter or approximate_token_count
        self._keywords = keyword_extractor or FrequencyKeywordExtractor()
        self._entities = entity_extractor or CapitalizedPhraseEntityExtractor()
        self._topics = topic_extractor or TaxonomyTopicExtractor()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enrich(self, chunk_text: str) -> ChunkMetadata:
        """Derive metadata for *chunk_text*.  Never raises on extractor failure."""
        body = self._strip_prefix(chunk_text)
        return ChunkMetadata(
            headings=extract_headings(chunk_text),
            snippet=self._snippet(chunk_text),
            num_tokens=self._safe_count(chunk_text),
            keywords=self._safe_extract(self._keywords, body),
            entities=self._safe_extract(self._entities, body),
            topics=self._safe_extract(self._topics, body),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _split_prefix(chunk_text: str) -> tuple[list[str], str]:
        lines = chunk_text.split("\n")
        if len(lines) >= 2 and lines[1].startswith(SNIPPET_PREFIX):
            return lines[:2], "\n".join(lines[2:])
        return [], chunk_text

    def _strip_prefix(self, chunk_text: str) -> str:
        return self._split_prefix(chunk_text)[1]

    def _snippet(self, chunk_text: str) -> str:
        prefix, body = self._split_prefix(chunk_text)
        if prefix:
            return prefix[1][len(SNIPPET_PREFIX):]
        return make_snippet(UNTITLED_HEADING, body)

    def _safe_count(self, text: str) -> int:
        try:
            return max(0, int(self._count_tokens(text)))
        except Exception:  # noqa: BLE001
            logger.warning("token_count_failed", exc_info=True)
            return approximate_token_count(text)

    @staticmethod
    def _safe_extract(extractor: TermExtractor, text: str) -> list[str]:
        try:
            return list(extractor.extract(text))
        except Exception as exc:  # noqa: BLE001
            logger.warning("metadata_extractor_failed", extractor=extractor.name, error=str(exc))
            return []
