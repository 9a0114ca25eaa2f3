"""Unit tests for DocumentLoader (PyMuPDF and plain-text paths)."""

from __future__ import annotations

import fitz
import pytest

from ragcore.services.ingestion.document_loader import DocumentLoader
from ragcore.utils.errors import ExtractionError, FetchError


def _make_pdf(pages: list[str], title: str = "", author: str = "") -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    if title or author:
        doc.set_metadata({"title": title, "author": author})
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture()
def loader() -> DocumentLoader:
    return DocumentLoader()


class TestPdfLoading:
    def test_one_page_text_per_non_empty_page(self, loader: DocumentLoader) -> None:
        data = _make_pdf(
            ["Foxes are quick.", "", "Owls hoot at night."],
            title="Field Guide",
            author="A. Naturalist",
        )
        pages = loader.load(data, file_id="guide.pdf")

        assert [p.page_number for p in pages] == [1, 3]
        assert "Foxes are quick." in pages[0].text
        assert "Owls hoot at night." in pages[1].text
        assert all(p.doc_title == "Field Guide" for p in pages)
        assert all(p.doc_author == "A. Naturalist" for p in pages)

    def test_missing_metadata_defaults(self, loader: DocumentLoader) -> None:
        [page] = loader.load(_make_pdf(["Some text."]))
        assert page.doc_title == "Untitled"
        assert page.doc_author == "Unknown"

    def test_pdf_without_text_raises(self, loader: DocumentLoader) -> None:
        with pytest.raises(ExtractionError):
            loader.load(_make_pdf(["", ""]))

    def test_corrupt_pdf_raises_extraction_error(self, loader: DocumentLoader) -> None:
        with pytest.raises(ExtractionError) as exc_info:
            loader.load(b"%PDF-1.7 this is not really a pdf")
        assert isinstance(exc_info.value, FetchError)


class TestTextLoading:
    def test_plain_text_is_single_page(self, loader: DocumentLoader) -> None:
        [page] = loader.load("SECTION 1: ANIMALS\nFoxes are quick.".encode())
        assert page.page_number == 1
        assert page.text.startswith("SECTION 1: ANIMALS")
        assert page.doc_title == "Untitled"

    def test_empty_bytes_raise(self, loader: DocumentLoader) -> None:
        with pytest.raises(ExtractionError):
            loader.load(b"   \n")
