"""ChromaDB chunk store adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IChunkStore`.
The ``project_id`` metadata field scopes every query.

Chunks are inserted before their embedding exists, and ChromaDB requires
a vector on every record.  Two collections keep placeholder vectors out
of the similarity index:

    <name>          embedded chunks only; the HNSW index vector search uses
    <name>_pending  chunks awaiting an embedding, stored with a fixed
                    placeholder vector that is never queried

``update_embedding`` moves a chunk from the pending collection into the
vector collection.  ``insert_many`` always writes to the pending
collection and drops any previously embedded copy, so re-ingested content
is embedded afresh.  Text search and lookups read both collections.

Calls into chromadb are synchronous and run on the event loop thread, so
writes issued by concurrent batches are applied one at a time.  Locked
SQLite files, timeouts and connection failures surface as
:class:`ProviderTransientError` so callers can retry them.
"""

from __future__ import annotations

import json
import os
import sqlite3
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  ChromaDB's bundled
# PostHog client breaks against newer posthog releases ("capture() takes 1
# positional argument but 3 were given").
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from ragcore.interfaces.chunk_store import IChunkStore
from ragcore.models.chunk import Chunk, ChunkMetadata
from ragcore.services.retrieval.lexical import rank_lexical
from ragcore.utils.errors import (
    ChunkNotFoundError,
    EmbeddingDimensionError,
    ProviderError,
    ProviderTransientError,
    RagCoreError,
)

logger = structlog.get_logger(logger_name=__name__)

# Page size for full-project scans; keeps each get() under SQLite's
# bind-parameter limit.
_PAGE_SIZE = 5000
_LIST_FIELDS = ("headings", "keywords", "entities", "topics")
_OPTIONAL_FIELDS = ("doc_title", "doc_author", "page_number", "snippet")
_PENDING_SUFFIX = "_pending"
# sqlite3.OperationalError covers "database is locked" from the persistent client.
_TRANSIENT_ERRORS = (sqlite3.OperationalError, TimeoutError, ConnectionError)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops ChromaDB from loading its default ONNX model; vectors are always supplied."""

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("ragcore supplies every vector; ChromaDB must not embed.")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBChunkStore(IChunkStore):
    """Chunk store backed by two persistent ChromaDB collections.

    Parameters
    ----------
    dimension:
        Embedding dimension of the configured provider.  Every vector
        written through :meth:`update_embedding` must have this length.
    persist_directory:
        Directory for ChromaDB's on-disk storage.
    collection_name:
        Collection holding embedded chunks; pending chunks live in
        ``<collection_name>_pending``.
    """

    def __init__(
        self,
        dimension: int,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "ragcore_chunks",
    ) -> None:
        if dimension < 1:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self._dimension = dimension
        self._placeholder = [1.0] + [0.0] * (dimension - 1)
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collection = self._open_collection(collection_name)
        self._pending = self._open_collection(collection_name + _PENDING_SUFFIX)

    # ------------------------------------------------------------------
    # IChunkStore implementation
    # ------------------------------------------------------------------

    async def insert_many(self, project_id: str, chunks: list[Chunk]) -> int:
        """Upsert *chunks* keyed by ``unique_chunk_id`` without embeddings."""
        if not chunks:
            return 0
        ids = [c.unique_chunk_id for c in chunks]
        try:
            self._pending.upsert(
                ids=ids,
                embeddings=[self._placeholder for _ in chunks],
                documents=[c.page_content for c in chunks],
                metadatas=[self._chunk_to_metadata(project_id, c) for c in chunks],
            )
            self._collection.delete(ids=ids)
        except Exception as exc:
            raise self._store_error("insert_many", exc) from exc

        logger.info("chromadb_insert_many", project_id=project_id, count=len(chunks))
        return len(chunks)

    async def update_embedding(self, unique_chunk_id: str, vector: list[float]) -> None:
        """Attach *vector* to an existing chunk and move it into the vector index."""
        if len(vector) != self._dimension:
            raise EmbeddingDimensionError(
                message=(
                    f"Vector for {unique_chunk_id} has dimension {len(vector)}, "
                    f"store expects {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )
        try:
            pending = self._pending.get(
                ids=[unique_chunk_id], include=["documents", "metadatas"]
            )
            if pending["ids"]:
                metadata = dict(pending["metadatas"][0] or {})
                metadata["has_embedding"] = True
                self._collection.upsert(
                    ids=[unique_chunk_id],
                    embeddings=[vector],
                    documents=[pending["documents"][0] or ""],
                    metadatas=[metadata],
                )
                self._pending.delete(ids=[unique_chunk_id])
                return

            embedded = self._collection.get(ids=[unique_chunk_id], include=["metadatas"])
            if not embedded["ids"]:
                raise ChunkNotFoundError(unique_chunk_id, provider_name=self.get_provider_name())
            self._collection.update(ids=[unique_chunk_id], embeddings=[vector])
        except RagCoreError:
            raise
        except Exception as exc:
            raise self._store_error("update_embedding", exc) from exc

    async def vector_search(
        self, project_id: str, query_vector: list[float], top_k: int
    ) -> list[str]:
        """Return ids of the *top_k* nearest embedded chunks of *project_id*."""
        if top_k <= 0:
            return []
        try:
            total = self._collection.count()
            if total == 0:
                return []
            results = self._collection.query(
                query_embeddings=[query_vector],
                n_results=min(top_k, total),
                where={"project_id": project_id},
                include=["distances"],
            )
        except Exception as exc:
            raise self._store_error("vector_search", exc) from exc

        ids = results["ids"][0] if results["ids"] else []
        logger.debug("chromadb_vector_search", project_id=project_id, results=len(ids))
        return list(ids)

    async def text_search(self, project_id: str, query_text: str, top_k: int) -> list[Chunk]:
        """Return the *top_k* chunks of *project_id* ranked by BM25 against *query_text*."""
        chunks = self._scan_project(self._collection, project_id)
        chunks.extend(self._scan_project(self._pending, project_id))
        ranked = rank_lexical(query_text, chunks, top_k)
        logger.debug(
            "chromadb_text_search",
            project_id=project_id,
            candidates=len(chunks),
            results=len(ranked),
        )
        return ranked

    async def get_chunks(self, unique_chunk_ids: list[str]) -> list[Chunk]:
        """Fetch chunks by id, preserving the requested order."""
        if not unique_chunk_ids:
            return []
        try:
            embedded = self._collection.get(
                ids=list(unique_chunk_ids),
                include=["documents", "metadatas", "embeddings"],
            )
            pending = self._pending.get(
                ids=list(unique_chunk_ids),
                include=["documents", "metadatas"],
            )
        except Exception as exc:
            raise self._store_error("get_chunks", exc) from exc

        by_id: dict[str, Chunk] = {}
        for result, with_vectors in ((pending, False), (embedded, True)):
            embeddings = result.get("embeddings") if with_vectors else None
            for idx, chunk_id in enumerate(result["ids"]):
                vector = None
                if embeddings is not None:
                    vector = [float(x) for x in embeddings[idx]]
                by_id[chunk_id] = self._metadata_to_chunk(
                    chunk_id,
                    result["metadatas"][idx] or {},
                    result["documents"][idx] or "",
                    vector,
                )
        return [by_id[cid] for cid in unique_chunk_ids if cid in by_id]

    async def delete_document_chunks(self, project_id: str, document_id: str) -> int:
        where = {"$and": [{"project_id": project_id}, {"document_id": document_id}]}
        count = 0
        try:
            for collection in (self._collection, self._pending):
                existing = collection.get(where=where, include=["metadatas"])
                found = len(existing["ids"]) if existing["ids"] else 0
                if found > 0:
                    collection.delete(where=where)
                count += found
        except Exception as exc:
            raise self._store_error("delete_document_chunks", exc) from exc

        logger.info(
            "chromadb_delete_document_chunks",
            project_id=project_id,
            document_id=document_id,
            deleted_count=count,
        )
        return count

    async def count_chunks(self, project_id: str) -> int:
        count = 0
        try:
            for collection in (self._collection, self._pending):
                existing = collection.get(where={"project_id": project_id}, include=["metadatas"])
                count += len(existing["ids"]) if existing["ids"] else 0
        except Exception as exc:
            raise self._store_error("count_chunks", exc) from exc
        return count

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _open_collection(self, name: str):  # noqa: ANN202
        # Collections persisted with a different embedding function reject
        # ours; reopen them with whatever function was stored.
        try:
            return self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            return self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )

    def _store_error(self, operation: str, exc: Exception) -> RagCoreError:
        """Translate a chromadb failure into the package hierarchy."""
        message = f"ChromaDB {operation} failed: {exc}"
        if isinstance(exc, _TRANSIENT_ERRORS):
            logger.warning("chromadb_transient_error", operation=operation, error=str(exc))
            return ProviderTransientError(message=message, provider_name=self.get_provider_name())
        return ProviderError(message=message, provider_name=self.get_provider_name())

    def _scan_project(self, collection: Any, project_id: str) -> list[Chunk]:
        """Load every chunk of *project_id* in *collection* (text and metadata only)."""
        chunks: list[Chunk] = []
        offset = 0
        try:
            while True:
                page = collection.get(
                    where={"project_id": project_id},
                    include=["documents", "metadatas"],
                    limit=_PAGE_SIZE,
                    offset=offset,
                )
                ids = page["ids"] or []
                for idx, chunk_id in enumerate(ids):
                    chunks.append(
                        self._metadata_to_chunk(
                            chunk_id,
                            page["metadatas"][idx] or {},
                            page["documents"][idx] or "",
                            None,
                        )
                    )
                if len(ids) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
        except Exception as exc:
            raise self._store_error("text_search", exc) from exc
        return chunks

    @staticmethod
    def _chunk_to_metadata(project_id: str, chunk: Chunk) -> dict[str, str | int | float | bool]:
        """Flatten a Chunk into ChromaDB-compatible scalar metadata.

        List fields are stored as JSON strings; ``None`` fields are omitted.
        """
        md = chunk.metadata
        meta: dict[str, str | int | float | bool] = {
            "project_id": project_id,
            "document_id": chunk.document_id,
            "chunk_number": chunk.chunk_number,
            "has_embedding": False,
            "num_tokens": md.num_tokens,
        }
        for field in _LIST_FIELDS:
            meta[field] = json.dumps(getattr(md, field))
        for field in _OPTIONAL_FIELDS:
            value = getattr(md, field)
            if value is not None:
                meta[field] = value
        return meta

    @staticmethod
    def _metadata_to_chunk(
        chunk_id: str,
        meta: dict[str, Any],
        text: str,
        embedding: list[float] | None,
    ) -> Chunk:
        """Rebuild a Chunk from a ChromaDB record."""
        list_values = {field: _load_list(meta.get(field)) for field in _LIST_FIELDS}
        return Chunk(
            project_id=str(meta.get("project_id", "")),
            document_id=str(meta.get("document_id", "")),
            unique_chunk_id=chunk_id,
            chunk_number=int(meta.get("chunk_number", 1)),
            page_content=text,
            metadata=ChunkMetadata(
                doc_title=meta.get("doc_title"),
                doc_author=meta.get("doc_author"),
                page_number=meta.get("page_number"),
                snippet=meta.get("snippet"),
                num_tokens=int(meta.get("num_tokens", 0)),
                **list_values,
            ),
            embedding=embedding,
        )


def _load_list(value: Any) -> list[str]:
    if not value or not isinstance(value, str):
        return []
    try:
        loaded = json.loads(value)
    except json.JSONDecodeError:
        return []
    return [str(v) for v in loaded] if isinstance(loaded, list) else []
