"""Structured logging setup using structlog.

One shared processor chain feeds either a coloured ConsoleRenderer (local
development) or a JSONRenderer (production, or ``json_output=True``).
Standard-library ``logging`` is routed through the same chain, so the
libraries ragcore drives (chromadb, httpx, openai) log in the same format.
Those libraries are chatty at INFO, so they are held at WARNING unless
ragcore itself runs at DEBUG.

Everything logged while a document is being ingested carries its
``document_id`` and ``project_id``: the orchestrator wraps each run in
:func:`ingestion_context`, which binds both ids into structlog's
contextvars for the duration of the run.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

# Third-party loggers that emit per-request INFO lines during ingestion.
NOISY_LOGGERS: tuple[str, ...] = ("chromadb", "httpx", "httpcore", "openai")


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and stdlib logging for ragcore.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output.  Otherwise JSON is used only when
                     ``APP_ENV`` is ``"production"``.

    Returns:
        A configured structlog BoundLogger.
    """
    level = log_level.upper()
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    # merge_contextvars must run first or the bound ingestion ids are lost.
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[*shared_processors, renderer],
        # Filtering happens before the processor chain runs.
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared_processors,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    third_party_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Named structlog logger; applies the default configuration on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


@contextmanager
def ingestion_context(document_id: str, project_id: str) -> Iterator[None]:
    """Bind the ids of the document being ingested to every event logged inside.

    Bindings made by an enclosing scope under the same keys are restored
    on exit; unrelated context variables are left alone.
    """
    with structlog.contextvars.bound_contextvars(
        document_id=document_id, project_id=project_id
    ):
        yield
