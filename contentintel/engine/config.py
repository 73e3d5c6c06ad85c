"""Configuration helpers for the content intelligence engine."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass(frozen=True)
class EngineConfig:
    """Typed wrapper around the engine configuration dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def section(self, name: str) -> Dict[str, Any]:
        value = self.raw.get(name, {})
        return value if isinstance(value, dict) else {}

    def value(self, section: str, key: str, default: Any = None) -> Any:
        return self.section(section).get(key, default)


DEFAULTS: Dict[str, Any] = {
    "internal": {
        "min_total_words": 80,
        "min_source_words": 50,
        "min_word_len": 3,
        "min_chunk_words": 8,
        "current_window_words": 18,
        "current_window_step": 11,
        "current_max_windows": 140,
        "source_window_words": 22,
        "source_window_step": 12,
        "source_max_windows": 180,
        "jaccard_weight": 0.62,
        "coverage_weight": 0.38,
        "jaccard_floor": 0.16,
        "probe_words": 5,
        "probe_min_chars": 15,
        "probe_bonus": 0.08,
        "emit_threshold": 0.52,
        "medium_threshold": 0.58,
        "high_threshold": 0.72,
        "default_max_matches": 10,
        "min_max_matches": 3,
        "max_max_matches": 20,
        "dedupe_prefix_chars": 120,
        "structure_hint_below": 45,
    },
    "external": {
        "min_total_tokens": 80,
        "min_word_len": 3,
        "min_sentence_chars": 80,
        "max_query_chars": 118,
        "max_chunk_words": 16,
        "min_chunk_words": 8,
        "fallback_step": 20,
        "fallback_width": 22,
        "jaccard_weight": 0.55,
        "coverage_weight": 0.45,
        "jaccard_floor": 0.0,
        "probe_words": 6,
        "probe_min_chars": 18,
        "probe_bonus": 0.12,
        "emit_threshold": 0.5,
        "medium_threshold": 0.5,
        "high_threshold": 0.68,
        "default_max_queries": 6,
        "min_max_queries": 2,
        "max_max_queries": 12,
        "max_matches": 12,
    },
    "aggregate": {
        "suspect_weight": 70,
        "high_weight": 20,
        "score_weight": 10,
        "high_risk_at_or_below": 45,
        "medium_risk_at_or_below": 70,
    },
    "cannibalization": {
        "fingerprint_words": 600,
        "min_token_len": 3,
        "similarity_high": 0.55,
        "similarity_medium": 0.35,
        "combined_similarity_high": 0.6,
        "combined_serp_high": 0.35,
        "combined_similarity_medium": 0.45,
        "combined_serp_medium": 0.3,
        "url_weight": 0.6,
        "domain_weight": 0.4,
        "results_per_post": 10,
        "max_queries": 30,
    },
    "links": {
        "affiliate_host_hints": ["amazon.", "amzn.to", "a.co"],
        "ignored_prefixes": ["mailto:", "tel:", "javascript:"],
        "context_chars": 200,
        "anchor_chars": 255,
        "href_chars": 500,
        "start_cutoff": 0.33,
        "mid_cutoff": 0.66,
        "max_links": 200,
    },
}


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load configuration from YAML, merging with defaults."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    return EngineConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with halves rounded up (``80.5`` gives ``81``)."""

    return int(math.floor(value + 0.5))
