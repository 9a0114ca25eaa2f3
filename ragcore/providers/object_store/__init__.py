"""Object store adapters for fetching raw document bytes."""

from ragcore.providers.object_store.file_object_store import FileObjectStore
from ragcore.providers.object_store.http_object_store import HttpObjectStore

__all__ = ["FileObjectStore", "HttpObjectStore"]
