"""YAML configuration loader layered over built-in defaults.

# ─── CONFIGURATION HIERARCHY ────────────────────────────────────────────
#
#   1. _DEFAULTS           -- enrichment limits used when the file is silent
#   2. config/config.yaml  -- tunable policy checked into the repo
#                             (chunk-size thresholds, topic taxonomy)
#
# Secrets and deployment values (batch size, retry budget, top_k) live in
# Settings only; ragcore.main reads them from there.
#
# _deep_merge does recursive dict merging:
#   base = {"enrichment": {"max_keywords": 8, "max_entities": 8}}
#   overrides = {"enrichment": {"max_keywords": 12}}
#   result = {"enrichment": {"max_keywords": 12, "max_entities": 8}}
# ─────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import copy
from pathlib import Path

import yaml

_DEFAULTS: dict = {
    "enrichment": {
        "max_keywords": 8,
        "max_entities": 8,
        "min_topic_overlap": 2,
    },
}


def load_config(path: str = "config/config.yaml") -> dict:
    """Load YAML config merged over the built-in defaults.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
              the defaults alone; chunk sizing and the taxonomy then fall
              back to their own built-in tables.

    Returns:
        Fully resolved configuration dictionary.
    """
    config = copy.deepcopy(_DEFAULTS)
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            _deep_merge(config, yaml.safe_load(f) or {})
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
