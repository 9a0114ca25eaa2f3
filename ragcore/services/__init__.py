"""Ingestion, embedding and retrieval services."""
