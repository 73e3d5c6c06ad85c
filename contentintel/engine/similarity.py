"""Pairwise similarity scoring between token sets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .config import EngineConfig, round_half_up
from .text import jaccard, normalize, overlap_coverage
from .types import RISK_HIGH, RISK_LOW, RISK_MEDIUM


@dataclass(frozen=True)
class Comparison:
    score: float
    overlap: int


@dataclass(frozen=True)
class SimilarityScorer:
    """Blend of Jaccard similarity and overlap coverage with a phrase-probe boost.

    ``score = jaccard_weight * jaccard + coverage_weight * coverage``; when the
    first ``probe_words`` normalized words of the probed text (at least
    ``probe_min_chars`` long) occur verbatim in the other text, ``probe_bonus``
    is added and the result capped at 1.0. Pairs whose Jaccard similarity is
    under ``jaccard_floor`` score 0.
    """

    jaccard_weight: float
    coverage_weight: float
    probe_words: int
    probe_min_chars: int
    probe_bonus: float
    emit_threshold: float
    medium_threshold: float
    high_threshold: float
    jaccard_floor: float = 0.0

    @classmethod
    def from_config(cls, config: EngineConfig, section: str) -> "SimilarityScorer":
        values = config.section(section)
        return cls(
            jaccard_weight=float(values["jaccard_weight"]),
            coverage_weight=float(values["coverage_weight"]),
            probe_words=int(values["probe_words"]),
            probe_min_chars=int(values["probe_min_chars"]),
            probe_bonus=float(values["probe_bonus"]),
            emit_threshold=float(values["emit_threshold"]),
            medium_threshold=float(values["medium_threshold"]),
            high_threshold=float(values["high_threshold"]),
            jaccard_floor=float(values.get("jaccard_floor", 0.0)),
        )

    def blend(self, tokens_a: Sequence[str], tokens_b: Sequence[str]) -> Comparison:
        """Score two token sequences without the phrase probe."""

        similarity = jaccard(tokens_a, tokens_b)
        if similarity < self.jaccard_floor:
            return Comparison(score=0.0, overlap=0)
        overlap, coverage = overlap_coverage(tokens_a, tokens_b)
        return Comparison(
            score=similarity * self.jaccard_weight + coverage * self.coverage_weight,
            overlap=overlap,
        )

    def compare(
        self,
        text_a: str,
        tokens_a: Sequence[str],
        text_b: str,
        tokens_b: Sequence[str],
    ) -> Comparison:
        """Score A against B, boosting exact copies of A's opening phrase."""

        base = self.blend(tokens_a, tokens_b)
        if base.score <= 0.0:
            return base
        if self.has_phrase_copy(text_a, text_b):
            return Comparison(score=min(1.0, base.score + self.probe_bonus), overlap=base.overlap)
        return base

    def has_phrase_copy(self, text_a: str, text_b: str) -> bool:
        probe = " ".join(normalize(text_a).split(" ")[: self.probe_words])
        if len(probe) <= self.probe_min_chars:
            return False
        return probe in normalize(text_b)

    def is_reportable(self, score: float) -> bool:
        return score >= self.emit_threshold

    def classify(self, score: float) -> str:
        if score >= self.high_threshold:
            return RISK_HIGH
        if score >= self.medium_threshold:
            return RISK_MEDIUM
        return RISK_LOW


def uniqueness_score(
    checked: int,
    suspect: int,
    high: int,
    scores: Sequence[float],
    config: EngineConfig,
) -> int:
    """Return ``100 - penalty`` where the penalty grows with suspect ratios and scores."""

    weights = config.section("aggregate")
    suspect_ratio = suspect / checked if checked else 0.0
    high_ratio = high / checked if checked else 0.0
    average = sum(scores) / len(scores) if scores else 0.0
    penalty = (
        suspect_ratio * weights["suspect_weight"]
        + high_ratio * weights["high_weight"]
        + average * weights["score_weight"]
    )
    return round_half_up(max(0.0, min(100.0, 100.0 - penalty)))


def global_risk(score: int, config: EngineConfig) -> str:
    weights = config.section("aggregate")
    if score <= weights["high_risk_at_or_below"]:
        return RISK_HIGH
    if score <= weights["medium_risk_at_or_below"]:
        return RISK_MEDIUM
    return RISK_LOW
