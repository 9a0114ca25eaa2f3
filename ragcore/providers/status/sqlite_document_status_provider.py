"""SQLite-backed document processing-status provider.

Persists one row per document at ``data/document_status.db`` using
``aiosqlite`` for async I/O.  Updates are partial: a ``None`` argument
leaves the stored column untouched, which the upsert expresses with
``COALESCE(?, column)``.  :meth:`reset_document_status` is the one write
that clears columns, used when a new ingestion run starts.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from ragcore.interfaces.document_status_provider import IDocumentStatusProvider
from ragcore.models.document import ProcessingStatus

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/document_status.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS document_status (
    document_id      TEXT    PRIMARY KEY,
    progress         INTEGER NOT NULL DEFAULT 0,
    is_processing    INTEGER NOT NULL DEFAULT 0,
    is_processed     INTEGER NOT NULL DEFAULT 0,
    processed_at     TEXT,
    error            TEXT,
    chunks_expected  INTEGER NOT NULL DEFAULT 0,
    chunks_inserted  INTEGER NOT NULL DEFAULT 0,
    chunks_embedded  INTEGER NOT NULL DEFAULT 0,
    updated_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_UPSERT_SQL = """\
INSERT INTO document_status (document_id, progress, is_processing, is_processed, processed_at, error,
                             chunks_expected, chunks_inserted, chunks_embedded)
VALUES (?, COALESCE(?, 0), COALESCE(?, 0), COALESCE(?, 0), ?, ?,
        COALESCE(?, 0), COALESCE(?, 0), COALESCE(?, 0))
ON CONFLICT(document_id)
DO UPDATE SET progress        = COALESCE(?, progress),
              is_processing   = COALESCE(?, is_processing),
              is_processed    = COALESCE(?, is_processed),
              processed_at    = COALESCE(?, processed_at),
              error           = COALESCE(?, error),
              chunks_expected = COALESCE(?, chunks_expected),
              chunks_inserted = COALESCE(?, chunks_inserted),
              chunks_embedded = COALESCE(?, chunks_embedded),
              updated_at      = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_RESET_SQL = """\
INSERT INTO document_status (document_id, progress, is_processing, is_processed)
VALUES (?, 0, 1, 0)
ON CONFLICT(document_id)
DO UPDATE SET progress        = 0,
              is_processing   = 1,
              is_processed    = 0,
              processed_at    = NULL,
              error           = NULL,
              chunks_expected = 0,
              chunks_inserted = 0,
              chunks_embedded = 0,
              updated_at      = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_SQL = """\
SELECT document_id, progress, is_processing, is_processed, processed_at, error,
       chunks_expected, chunks_inserted, chunks_embedded
FROM document_status
WHERE document_id = ?;
"""


class SQLiteDocumentStatusProvider(IDocumentStatusProvider):
    """SQLite-backed processing-status persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the status table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.commit()
        logger.info("document_status_db_initialized", path=str(self._db_path))

    async def update_document_status(
        self,
        document_id: str,
        *,
        progress: int | None = None,
        is_processing: bool | None = None,
        is_processed: bool | None = None,
        processed_at: datetime | None = None,
        error: str | None = None,
        chunks_expected: int | None = None,
        chunks_inserted: int | None = None,
        chunks_embedded: int | None = None,
    ) -> ProcessingStatus:
        """Apply a partial update and return the stored row.

        Passing ``error=""`` clears a previous failure reason.
        """
        if progress is not None and not 0 <= progress <= 100:
            raise ValueError(f"progress must be within 0..100, got {progress}")

        values = (
            progress,
            _to_int(is_processing),
            _to_int(is_processed),
            processed_at.isoformat() if processed_at is not None else None,
            error,
            chunks_expected,
            chunks_inserted,
            chunks_embedded,
        )
        status = await self._write_and_read(document_id, _UPSERT_SQL, (document_id, *values, *values))
        logger.debug(
            "document_status_updated",
            document_id=document_id,
            progress=status.progress,
            is_processing=status.is_processing,
            is_processed=status.is_processed,
        )
        return status

    async def reset_document_status(self, document_id: str) -> ProcessingStatus:
        """Start a fresh run: zero progress and counts, clear timestamp and error."""
        status = await self._write_and_read(document_id, _RESET_SQL, (document_id,))
        logger.debug("document_status_reset", document_id=document_id)
        return status

    async def get_document_status(self, document_id: str) -> ProcessingStatus | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_SQL, (document_id,))
            row = await cursor.fetchone()
        return _row_to_status(row) if row is not None else None

    def get_provider_name(self) -> str:
        return "sqlite"

    async def _write_and_read(self, document_id: str, sql: str, params: tuple) -> ProcessingStatus:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute(sql, params)
            await db.commit()
            cursor = await db.execute(_SELECT_SQL, (document_id,))
            row = await cursor.fetchone()
        return _row_to_status(row)


def _to_int(value: bool | None) -> int | None:
    return None if value is None else int(value)


def _row_to_status(row: aiosqlite.Row) -> ProcessingStatus:
    processed_at = row["processed_at"]
    return ProcessingStatus(
        document_id=row["document_id"],
        progress=row["progress"],
        is_processing=bool(row["is_processing"]),
        is_processed=bool(row["is_processed"]),
        processed_at=datetime.fromisoformat(processed_at) if processed_at else None,
        error=row["error"] or None,
        chunks_expected=row["chunks_expected"],
        chunks_inserted=row["chunks_inserted"],
        chunks_embedded=row["chunks_embedded"],
    )
