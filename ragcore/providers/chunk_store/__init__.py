"""Chunk store implementations.

ChromaDB is the sole implementation: chunks, their embeddings and their
metadata live in one persistent collection (default ./data/chromadb).
To use another database, implement IChunkStore and wire it in main.py.
"""

from ragcore.providers.chunk_store.chromadb_chunk_store import ChromaDBChunkStore

__all__ = ["ChromaDBChunkStore"]
