"""Turns raw document bytes into per-page text.

PDFs are read in memory with PyMuPDF (fitz), one :class:`PageText` per
page, carrying the document's title and author from the PDF metadata
(``"Untitled"`` / ``"Unknown"`` when absent).  Anything that is not a PDF
is decoded as UTF-8 and treated as a single page.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from ragcore.models.document import PageText
from ragcore.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_PDF_MAGIC = b"%PDF"
DEFAULT_TITLE = "Untitled"
DEFAULT_AUTHOR = "Unknown"


class DocumentLoader:
    """Extracts :class:`PageText` objects from document bytes."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self, data: bytes, file_id: str = "") -> list[PageText]:
        """Return the non-empty pages of the document in *data*.

        Raises
        ------
        ExtractionError
            The bytes are a PDF that cannot be opened, or no page yields text.
        """
        if data.lstrip()[:4] == _PDF_MAGIC:
            pages = self._load_pdf(data, file_id)
        else:
            pages = self._load_text(data)

        if not pages:
            logger.warning("document_no_text_extracted", file_id=file_id)
            raise ExtractionError(f"No content extracted from document {file_id or '<bytes>'}")

        logger.info("document_loaded", file_id=file_id, pages=len(pages))
        return pages

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _load_pdf(data: bytes, file_id: str) -> list[PageText]:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            logger.error("pdf_open_failed", file_id=file_id, error=str(exc))
            raise ExtractionError(f"Could not open PDF {file_id or '<bytes>'}: {exc}") from exc

        pages: list[PageText] = []
        try:
            meta = doc.metadata or {}
            title = (meta.get("title") or "").strip() or DEFAULT_TITLE
            author = (meta.get("author") or "").strip() or DEFAULT_AUTHOR
            for page_index in range(len(doc)):
                text = doc[page_index].get_text("text")
                if text.strip():
                    pages.append(
                        PageText(
                            page_number=page_index + 1,
                            text=text,
                            doc_title=title,
                            doc_author=author,
                        )
                    )
        finally:
            doc.close()
        return pages

    @staticmethod
    def _load_text(data: bytes) -> list[PageText]:
        text = data.decode("utf-8", errors="replace")
        if not text.strip():
            return []
        return [PageText(page_number=1, text=text)]
