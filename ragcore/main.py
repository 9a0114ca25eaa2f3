"""Composition root: builds ragcore services from :class:`Settings`.

There is no CLI or server here.  An ingestion trigger (e.g. an upload
webhook) and a retrieval trigger (e.g. a query endpoint) owned elsewhere
call these factories once and reuse the returned services::

    orchestrator = await build_ingestion_service()
    result = await orchestrator.ingest_document(project_id, document_id)

    retriever = build_hybrid_retriever()
    chunks = await retriever.retrieve(project_id, "foxes")

Every collaborator is constructed explicitly and injected; no service
reaches for a module-level client.
"""

from __future__ import annotations

import httpx
import structlog

from ragcore.config.loader import load_config
from ragcore.config.settings import Settings
from ragcore.interfaces.chunk_store import IChunkStore
from ragcore.interfaces.document_status_provider import IDocumentStatusProvider
from ragcore.interfaces.object_store import IObjectStore
from ragcore.pipeline.progress_tracker import ProgressTracker
from ragcore.providers.chunk_store.chromadb_chunk_store import ChromaDBChunkStore
from ragcore.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragcore.providers.llm.openai_provider import OpenAILLMProvider
from ragcore.providers.object_store.file_object_store import FileObjectStore
from ragcore.providers.object_store.http_object_store import HttpObjectStore
from ragcore.providers.status.sqlite_document_status_provider import (
    SQLiteDocumentStatusProvider,
)
from ragcore.services.embedding_client import EmbeddingClient
from ragcore.services.ingestion.ingestion_service import IngestionOrchestrator
from ragcore.services.ingestion.metadata_enricher import (
    CapitalizedPhraseEntityExtractor,
    FrequencyKeywordExtractor,
    HuggingFaceTokenCounter,
    MetadataEnricher,
    TaxonomyTopicExtractor,
    taxonomy_from_config,
)
from ragcore.services.ingestion.segmenter import sizing_thresholds_from_config
from ragcore.services.retrieval.context_builder import ContextBuilder
from ragcore.services.retrieval.hybrid_retriever import HybridRetriever
from ragcore.utils.errors import ConfigurationError
from ragcore.utils.logging import configure_logging
from ragcore.utils.retry import RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

_logging_configured = False


def _setup(settings: Settings | None) -> Settings:
    """Resolve settings and configure logging on first use."""
    global _logging_configured
    s = settings or Settings()
    if not _logging_configured:
        configure_logging(log_level=s.log_level, json_output=(s.app_env == "production"))
        _logging_configured = True
    return s


# ---------------------------------------------------------------------------
# Provider builders
# ---------------------------------------------------------------------------


def build_embedding_client(settings: Settings | None = None) -> EmbeddingClient:
    """OpenAI (or OpenAI-compatible) embeddings behind the retrying client.

    Raises
    ------
    ConfigurationError
        If no OpenAI API key is configured.
    """
    s = _setup(settings)
    provider = OpenAIEmbeddingProvider(settings=s)
    if not provider.is_available():
        raise ConfigurationError(
            message="OPENAI_API_KEY is required for embeddings",
            provider_name=provider.get_provider_name(),
        )
    return EmbeddingClient(
        provider,
        retry_policy=RetryPolicy(retries=s.retry_budget, initial_delay=s.retry_initial_delay),
    )


def build_chunk_store(settings: Settings | None = None, dimension: int | None = None) -> IChunkStore:
    s = _setup(settings)
    return ChromaDBChunkStore(
        dimension=dimension or s.embedding_dimension,
        persist_directory=s.chromadb_persist_dir,
        collection_name=s.chromadb_collection,
    )


def build_status_provider(settings: Settings | None = None) -> IDocumentStatusProvider:
    s = _setup(settings)
    return SQLiteDocumentStatusProvider(db_path=s.status_db_path)


def build_object_store(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> IObjectStore:
    """HTTP object store when ``OBJECT_STORE_BASE_URL`` is set, else the local directory."""
    s = _setup(settings)
    if s.object_store_base_url:
        client = http_client or httpx.AsyncClient(timeout=s.object_store_timeout)
        return HttpObjectStore(http_client=client, base_url=s.object_store_base_url)
    return FileObjectStore(root=s.object_store_root)


# ---------------------------------------------------------------------------
# Service builders
# ---------------------------------------------------------------------------


async def build_ingestion_service(
    settings: Settings | None = None,
    config: dict | None = None,
) -> IngestionOrchestrator:
    """Wire an :class:`IngestionOrchestrator` and initialise its status store.

    Parameters
    ----------
    settings:
        Application settings; read from the environment when omitted.
    config:
        Resolved YAML config (see :func:`load_config`); loaded from
        ``config/config.yaml`` when omitted.
    """
    s = _setup(settings)
    cfg = config if config is not None else load_config()
    enrichment = cfg["enrichment"]

    embedding_client = build_embedding_client(s)
    status_provider = build_status_provider(s)
    await status_provider.initialize()

    enricher = MetadataEnricher(
        token_counter=HuggingFaceTokenCounter(),
        keyword_extractor=FrequencyKeywordExtractor(
            max_keywords=enrichment["max_keywords"]
        ),
        entity_extractor=CapitalizedPhraseEntityExtractor(
            max_entities=enrichment["max_entities"]
        ),
        topic_extractor=TaxonomyTopicExtractor(
            taxonomy=taxonomy_from_config(cfg),
            min_overlap=enrichment["min_topic_overlap"],
        ),
    )

    orchestrator = IngestionOrchestrator(
        object_store=build_object_store(s),
        chunk_store=build_chunk_store(s, dimension=embedding_client.dimension),
        embedding_client=embedding_client,
        progress_tracker=ProgressTracker(status_provider),
        enricher=enricher,
        retry_policy=RetryPolicy(retries=s.retry_budget, initial_delay=s.retry_initial_delay),
        batch_size=s.ingest_batch_size,
        concurrency=s.ingest_concurrency,
        sizing_thresholds=sizing_thresholds_from_config(cfg),
    )
    logger.info(
        "ingestion_service_ready",
        embedding_provider=embedding_client.provider_name,
        batch_size=s.ingest_batch_size,
        concurrency=s.ingest_concurrency,
    )
    return orchestrator


def build_hybrid_retriever(settings: Settings | None = None) -> HybridRetriever:
    s = _setup(settings)
    embedding_client = build_embedding_client(s)
    return HybridRetriever(
        chunk_store=build_chunk_store(s, dimension=embedding_client.dimension),
        embedding_client=embedding_client,
        default_top_k=s.retrieval_top_k,
    )


def build_context_builder(settings: Settings | None = None) -> ContextBuilder:
    """Context builder that summarizes long chunks when an OpenAI key is set."""
    s = _setup(settings)
    llm = OpenAILLMProvider(settings=s)
    return ContextBuilder(
        llm=llm if llm.is_available() else None,
        summarize_threshold=s.context_summarize_threshold,
        max_chars=s.context_max_chars,
    )
