"""Per-document ingestion progress tracking."""

from ragcore.pipeline.progress_tracker import ProgressTracker

__all__ = ["ProgressTracker"]
