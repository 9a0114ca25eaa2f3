"""Unit tests for the HTTP and filesystem object stores."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from ragcore.providers.object_store.file_object_store import FileObjectStore
from ragcore.providers.object_store.http_object_store import HttpObjectStore
from ragcore.utils.errors import (
    DocumentNotFoundError,
    FetchError,
    ProviderTimeoutError,
    ProviderTransientError,
    RateLimitError,
)


def _store(handler) -> HttpObjectStore:  # noqa: ANN001
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpObjectStore(http_client=client, base_url="https://files.example.com/docs/")


# ======================================================================
# HttpObjectStore
# ======================================================================


class TestHttpObjectStore:
    @pytest.mark.asyncio
    async def test_fetches_bytes_from_quoted_url(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=b"%PDF-1.7 ...")

        data = await _store(handler).get_document_bytes("reports/q1 2024.pdf")

        assert data == b"%PDF-1.7 ..."
        assert seen == ["https://files.example.com/docs/reports%2Fq1%202024.pdf"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [
            (404, DocumentNotFoundError),
            (429, RateLimitError),
            (503, ProviderTransientError),
            (403, FetchError),
        ],
    )
    async def test_status_codes_are_classified(self, status: int, error_type: type) -> None:
        store = _store(lambda request: httpx.Response(status))
        with pytest.raises(error_type):
            await store.get_document_bytes("doc.pdf")

    @pytest.mark.asyncio
    async def test_not_found_is_not_transient(self) -> None:
        store = _store(lambda request: httpx.Response(404))
        with pytest.raises(DocumentNotFoundError) as exc_info:
            await store.get_document_bytes("doc.pdf")
        assert not isinstance(exc_info.value, ProviderTransientError)
        assert exc_info.value.file_id == "doc.pdf"

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderTimeoutError):
            await _store(handler).get_document_bytes("doc.pdf")

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderTransientError):
            await _store(handler).get_document_bytes("doc.pdf")


# ======================================================================
# FileObjectStore
# ======================================================================


class TestFileObjectStore:
    @pytest.mark.asyncio
    async def test_reads_file_under_root(self, tmp_path: Path) -> None:
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "doc.txt").write_bytes(b"hello")
        store = FileObjectStore(root=tmp_path)
        assert await store.get_document_bytes("a/doc.txt") == b"hello"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(DocumentNotFoundError):
            await FileObjectStore(root=tmp_path).get_document_bytes("nope.txt")

    @pytest.mark.asyncio
    async def test_path_escape_is_not_found(self, tmp_path: Path) -> None:
        root = tmp_path / "root"
        root.mkdir()
        (tmp_path / "secret.txt").write_bytes(b"secret")
        with pytest.raises(DocumentNotFoundError):
            await FileObjectStore(root=root).get_document_bytes("../secret.txt")
