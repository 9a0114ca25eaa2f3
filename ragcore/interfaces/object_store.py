"""Abstract base class for the raw-document object store."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   HttpObjectStore -- GET {base_url}/{file_id} via httpx
#   FileObjectStore -- files under a local directory
# Located in: ragcore/providers/object_store/
class IObjectStore(ABC):
    """Contract for fetching the bytes of an uploaded document."""

    @abstractmethod
    async def get_document_bytes(self, file_id: str) -> bytes:
        """Return the raw bytes stored under *file_id*.

        Raises
        ------
        ragcore.utils.errors.DocumentNotFoundError
            Nothing is stored under *file_id*.
        ragcore.utils.errors.ProviderTransientError
            Timeout or temporary unavailability; safe to retry.
        ragcore.utils.errors.FetchError
            Any other failure to obtain the bytes.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"http-object-store"``."""
