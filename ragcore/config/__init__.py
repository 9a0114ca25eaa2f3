"""Configuration module: exports Settings and load_config."""

from ragcore.config.loader import load_config
from ragcore.config.settings import Settings

__all__ = ["Settings", "load_config"]
