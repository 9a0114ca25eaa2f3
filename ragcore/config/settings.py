"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ───────────────────────────────────────────────────
#
# Settings are read from two sources (in priority order):
#
#   1. **Environment variables** e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** key=value lines in the working directory
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults
# apply when neither source sets a value.
#
# Tunable, non-secret policy (adaptive chunk-size thresholds, the topic
# taxonomy) lives in config/config.yaml instead; see loader.py.
# ─────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ragcore.utils.concurrency import clamp_concurrency


class Settings(BaseSettings):
    """ragcore settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (Azure proxy, TogetherAI, ...)
    openai_embedding_model: str = "text-embedding-ada-002"
    openai_llm_model: str = "gpt-3.5-turbo"
    embedding_dimension: int = 1536

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "ragcore_chunks"
    status_db_path: str = "data/document_status.db"

    # === Object store ===
    # HTTP store wins when both are set.
    object_store_base_url: str = ""
    object_store_root: str = "./data/documents"
    object_store_timeout: float = 120.0

    # === Ingestion ===
    ingest_batch_size: int = 250
    ingest_concurrency: int = 1
    retry_budget: int = 5
    retry_initial_delay: float = 1.0

    # === Retrieval / context assembly ===
    retrieval_top_k: int = 5
    context_summarize_threshold: int = 2000
    context_max_chars: int = 12000

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"

    @field_validator("ingest_concurrency")
    @classmethod
    def _clamp_concurrency(cls, value: int) -> int:
        return clamp_concurrency(value)

    @field_validator("ingest_batch_size", "retrieval_top_k")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value
