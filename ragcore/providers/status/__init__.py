"""Document processing-status persistence."""

from ragcore.providers.status.sqlite_document_status_provider import SQLiteDocumentStatusProvider

__all__ = ["SQLiteDocumentStatusProvider"]
