"""Document ingestion: load -> segment -> enrich -> persist -> embed.

Modules
-------
document_loader
    Bytes to per-page text (PyMuPDF for PDFs, UTF-8 otherwise).
segmenter
    Heading-aware recursive text splitting and adaptive chunk sizing.
metadata_enricher
    Headings, snippet, token count, keywords, entities and topics per chunk.
ingestion_service
    :class:`IngestionOrchestrator`, the per-document state machine.
"""

from ragcore.services.ingestion.document_loader import DocumentLoader
from ragcore.services.ingestion.ingestion_service import (
    IngestionOrchestrator,
    make_unique_chunk_id,
)
from ragcore.services.ingestion.metadata_enricher import MetadataEnricher
from ragcore.services.ingestion.segmenter import TextSegmenter, get_adaptive_chunk_params

__all__ = [
    "DocumentLoader",
    "IngestionOrchestrator",
    "MetadataEnricher",
    "TextSegmenter",
    "get_adaptive_chunk_params",
    "make_unique_chunk_id",
]
