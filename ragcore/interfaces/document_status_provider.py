"""Abstract base class for document processing-status persistence.

The processing status is the single externally visible record of an
ingestion run: a UI polls it for progress, and it is the only place a
failed or degraded run is reported.  Updates are partial: fields left as
``None`` keep their stored value.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from ragcore.models.document import ProcessingStatus


# Concrete implementations: SQLiteDocumentStatusProvider
# Located in: ragcore/providers/status/
class IDocumentStatusProvider(ABC):
    """Contract for reading and writing per-document processing status."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create backing tables/structures if they do not exist."""

    @abstractmethod
    async def update_document_status(
        self,
        document_id: str,
        *,
        progress: int | None = None,
        is_processing: bool | None = None,
        is_processed: bool | None = None,
        processed_at: datetime | None = None,
        error: str | None = None,
        chunks_expected: int | None = None,
        chunks_inserted: int | None = None,
        chunks_embedded: int | None = None,
    ) -> ProcessingStatus:
        """Apply a partial update and return the resulting status.

        Creates the record on first use with defaults for unspecified fields.
        """

    @abstractmethod
    async def reset_document_status(self, document_id: str) -> ProcessingStatus:
        """Begin a new run for *document_id*.

        Sets progress to 0 and ``is_processing`` to True, and clears
        ``is_processed``, ``processed_at``, ``error`` and the chunk counts.
        Partial updates cannot clear ``processed_at``, so every run
        starts here.
        """

    @abstractmethod
    async def get_document_status(self, document_id: str) -> ProcessingStatus | None:
        """Return the stored status, or ``None`` if the document was never seen."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""
