"""Window chunking and similarity scoring."""

from __future__ import annotations

import pytest

from contentintel.engine.chunking import CURRENT_PRESET, build_preset_windows, build_windows
from contentintel.engine.similarity import SimilarityScorer, global_risk, uniqueness_score
from contentintel.engine.text import tokenize
from contentintel.engine.types import RISK_HIGH, RISK_LOW, RISK_MEDIUM

from .conftest import filler


def test_windows_slide_with_step_and_drop_short_tail():
    text = filler("a", 30)
    windows = build_windows(text, 18, 11, 140, tokenize)
    # starts at 0, 11 and 22; the last one has 8 words and is kept
    assert [len(window.text.split()) for window in windows] == [18, 18, 8]
    assert windows[1].text.split()[0] == "termoa11"
    assert windows[0].tokens == tuple(text.split()[:18])


def test_windows_respect_cap_and_minimum():
    assert build_windows(filler("a", 7), 18, 11, 140, tokenize) == []
    assert len(build_windows(filler("a", 500), 18, 11, 5, tokenize)) == 5


def test_windows_need_enough_tokens():
    sparse = " ".join(["de a o e um"] * 4)
    assert build_preset_windows(sparse, CURRENT_PRESET, tokenize) == []


def test_scorer_blends_and_applies_floor(engine_config):
    scorer = SimilarityScorer.from_config(engine_config, "internal")
    identical = scorer.blend(["a", "b", "c"], ["a", "b", "c"])
    assert identical.score == pytest.approx(1.0)
    assert identical.overlap == 3
    assert scorer.blend(["a"] + [f"x{i}" for i in range(9)], ["a"] + [f"y{i}" for i in range(9)]).score == 0.0


def test_scorer_is_monotonic_in_overlap(engine_config):
    scorer = SimilarityScorer.from_config(engine_config, "external")
    base = [f"t{i}" for i in range(10)]
    scores = []
    for shared in range(2, 11):
        other = base[:shared] + [f"o{i}" for i in range(10 - shared)]
        scores.append(scorer.blend(base, other).score)
    assert scores == sorted(scores)
    assert scores[-1] == pytest.approx(1.0)


def test_phrase_probe_adds_bonus(engine_config):
    scorer = SimilarityScorer.from_config(engine_config, "internal")
    text_a = "cafeteira italiana prepara espresso encorpado hoje"
    tokens_a = tokenize(text_a)
    copied = "ontem cafeteira italiana prepara espresso encorpado hoje"
    shuffled = "hoje encorpado espresso prepara italiana cafeteira ontem"
    with_probe = scorer.compare(text_a, tokens_a, copied, tokenize(copied))
    without_probe = scorer.compare(text_a, tokens_a, shuffled, tokenize(shuffled))
    assert round(with_probe.score - without_probe.score, 6) == 0.08


def test_short_probe_is_ignored(engine_config):
    scorer = SimilarityScorer.from_config(engine_config, "internal")
    assert not scorer.has_phrase_copy("um dois tres", "um dois tres quatro")


def test_classify_thresholds(engine_config):
    internal = SimilarityScorer.from_config(engine_config, "internal")
    assert internal.classify(0.72) == RISK_HIGH
    assert internal.classify(0.6) == RISK_MEDIUM
    assert internal.classify(0.55) == RISK_LOW
    assert not internal.is_reportable(0.51)

    external = SimilarityScorer.from_config(engine_config, "external")
    assert external.classify(0.68) == RISK_HIGH
    assert external.classify(0.5) == RISK_MEDIUM
    assert external.is_reportable(0.5)


def test_uniqueness_score_and_global_risk(engine_config):
    assert uniqueness_score(0, 0, 0, [], engine_config) == 100
    assert uniqueness_score(10, 10, 10, [1.0] * 10, engine_config) == 0
    assert uniqueness_score(10, 2, 1, [0.8, 0.6], engine_config) == 77
    # penalty of 17.5 leaves 82.5, rounded up
    assert uniqueness_score(4, 1, 0, [0.0], engine_config) == 83
    assert global_risk(45, engine_config) == RISK_HIGH
    assert global_risk(70, engine_config) == RISK_MEDIUM
    assert global_risk(71, engine_config) == RISK_LOW
