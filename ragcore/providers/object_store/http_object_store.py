"""HTTP object store adapter.

Fetches document bytes with ``GET {base_url}/{file_id}`` through an
injected ``httpx.AsyncClient`` (injected for testability and connection
pooling).  Status codes are classified for the caller's retry loop:

    404          -> DocumentNotFoundError   (never retried)
    429, 5xx     -> ProviderTransientError  (retried)
    timeout      -> ProviderTimeoutError    (retried)
    other errors -> FetchError              (never retried)
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog

from ragcore.interfaces.object_store import IObjectStore
from ragcore.utils.errors import (
    DocumentNotFoundError,
    FetchError,
    ProviderTimeoutError,
    ProviderTransientError,
    RateLimitError,
)

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "http-object-store"


class HttpObjectStore(IObjectStore):
    """Object store reachable over plain HTTP(S)."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    async def get_document_bytes(self, file_id: str) -> bytes:
        url = f"{self._base_url}/{quote(file_id, safe='')}"
        try:
            response = await self._http.get(url, follow_redirects=True)
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                message=f"Timed out fetching {file_id}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except httpx.TransportError as exc:
            raise ProviderTransientError(
                message=f"Transport error fetching {file_id}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        status = response.status_code
        if status == 404:
            raise DocumentNotFoundError(file_id, provider_name=_PROVIDER_NAME)
        if status == 429:
            raise RateLimitError(
                message=f"Rate limited fetching {file_id}",
                provider_name=_PROVIDER_NAME,
            )
        if status >= 500:
            raise ProviderTransientError(
                message=f"Object store returned {status} for {file_id}",
                provider_name=_PROVIDER_NAME,
            )
        if status >= 400:
            raise FetchError(
                message=f"Object store returned {status} for {file_id}",
                provider_name=_PROVIDER_NAME,
            )

        logger.info("object_store_fetch", file_id=file_id, size_bytes=len(response.content))
        return response.content

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME
