"""Local-directory object store, for development and tests."""

from __future__ import annotations

from pathlib import Path

import structlog

from ragcore.interfaces.object_store import IObjectStore
from ragcore.utils.errors import DocumentNotFoundError, FetchError

logger = structlog.get_logger(logger_name=__name__)


class FileObjectStore(IObjectStore):
    """Serves ``<root>/<file_id>`` from disk.

    File ids that resolve outside *root* (``../`` tricks) are reported as
    not found.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    async def get_document_bytes(self, file_id: str) -> bytes:
        path = (self._root / file_id).resolve()
        if not path.is_relative_to(self._root) or not path.is_file():
            raise DocumentNotFoundError(file_id, provider_name=self.get_provider_name())
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise FetchError(
                message=f"Could not read {file_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("file_object_store_read", file_id=file_id, size_bytes=len(data))
        return data

    def get_provider_name(self) -> str:
        return "file-object-store"
