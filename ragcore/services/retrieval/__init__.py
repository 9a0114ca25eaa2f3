"""Query-time services: hybrid retrieval, lexical ranking, context assembly."""

from ragcore.services.retrieval.context_builder import ContextBuilder, format_provenance
from ragcore.services.retrieval.hybrid_retriever import HybridRetriever, merge_hits
from ragcore.services.retrieval.lexical import rank_lexical, tokenize

__all__ = [
    "ContextBuilder",
    "HybridRetriever",
    "format_provenance",
    "merge_hits",
    "rank_lexical",
    "tokenize",
]
