"""ragcore: document ingestion and hybrid chunk retrieval."""

__version__ = "0.1.0"
