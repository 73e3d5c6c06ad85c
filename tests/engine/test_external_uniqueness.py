"""Search-snippet based uniqueness inspection."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from contentintel.engine.external_uniqueness import (
    FAILED_BEFORE_ANY,
    INTERRUPTED,
    NO_SIGNAL,
    NOT_ENOUGH_TEXT,
    build_excerpt,
    build_query_candidates,
    extract_domain,
    inspect_external_uniqueness,
    search_items,
    split_sentences,
)
from contentintel.engine.types import RISK_HIGH, RISK_LOW, SearchItem

from .conftest import filler

PREFIXES = ["sa", "sb", "sc", "sd", "se", "sf", "sg", "sh"]


def article() -> str:
    return " ".join(f"{filler(prefix, 10)}." for prefix in PREFIXES)


class FakeSearch:
    """Answers queries from a fixed table and records every call."""

    def __init__(self, responses=None, fail_on_call=None):
        self.responses = responses or {}
        self.fail_on_call = fail_on_call
        self.queries = []

    def __call__(self, query):
        self.queries.append(query)
        if self.fail_on_call is not None and len(self.queries) == self.fail_on_call:
            raise RuntimeError("quota exceeded")
        return self.responses.get(query, {"items": []})


def test_split_sentences_keeps_long_unique_sentences():
    long_sentence = filler("sa", 10)
    text = f"{long_sentence}. Curta demais! {long_sentence}? {filler('sb', 10)}"
    assert split_sentences(text) == [long_sentence, filler("sb", 10)]


def test_build_excerpt_honours_word_and_char_budgets(engine_config):
    settings = engine_config.section("external")
    assert build_excerpt("poucas palavras aqui", settings) == ""
    excerpt = build_excerpt(filler("aa", 30), settings)
    assert 8 <= len(excerpt.split()) <= 16
    assert len(excerpt) <= 114


def test_query_candidates_fall_back_to_word_chunks(engine_config):
    settings = engine_config.section("external")
    candidates = build_query_candidates(filler("aa", 100), 12, settings)
    assert len(candidates) == 5
    for candidate in candidates:
        assert candidate.query == f'"{candidate.excerpt}"'
        assert len(candidate.excerpt) <= 114


def test_query_candidates_prefer_sentences(engine_config):
    settings = engine_config.section("external")
    candidates = build_query_candidates(article(), 6, settings)
    assert [candidate.excerpt for candidate in candidates] == [filler(prefix, 10) for prefix in PREFIXES[:6]]


def test_short_text_never_queries(engine_config):
    search = FakeSearch()
    report = inspect_external_uniqueness(filler("aa", 50), search, config=engine_config)
    assert search.queries == []
    assert report.uniqueness_score == 100
    assert report.risk_level == RISK_LOW
    assert report.summary == NOT_ENOUGH_TEXT


def test_copied_sentence_is_detected(engine_config):
    copied = filler("sa", 10)
    search = FakeSearch(
        {
            f'"{copied}"': {
                "items": [
                    {"title": "Outro", "link": "https://other.example/a", "snippet": "nada a ver"},
                    {
                        "title": "Copia",
                        "link": "https://www.copia.example/post",
                        "snippet": copied,
                        "displayLink": "www.copia.example",
                    },
                ]
            }
        }
    )

    report = inspect_external_uniqueness(article(), search, config=engine_config)

    assert len(search.queries) == 6
    assert report.completed is True
    assert report.total_words == 80
    assert report.checked_chunks == 6
    assert report.compared_count == 6
    assert report.suspect_chunks == 1
    assert report.high_risk_chunks == 1
    assert report.uniqueness_score == 75
    assert report.summary.startswith("1 trecho(s) com risco alto de copia")

    match = report.matches[0]
    assert match.score == 1.0
    assert match.risk_level == RISK_HIGH
    assert match.source_id == "https://www.copia.example/post"
    assert match.source_title == "Copia"
    assert match.source_domain == "copia.example"
    assert match.source_excerpt == copied
    assert match.query == f'"{copied}"'
    assert match.overlap_token_count == 10


def test_clean_results_report_no_signal(engine_config):
    report = inspect_external_uniqueness(article(), FakeSearch(), max_queries=3, config=engine_config)
    assert report.checked_chunks == 3
    assert report.matches == []
    assert report.uniqueness_score == 100
    assert report.summary == NO_SIGNAL


def test_search_failure_returns_partial_report(engine_config, caplog):
    search = FakeSearch(fail_on_call=3)
    report = inspect_external_uniqueness(article(), search, config=engine_config)
    assert len(search.queries) == 3
    assert report.completed is False
    assert report.checked_chunks == 2
    assert report.summary == f"{NO_SIGNAL} {INTERRUPTED}"
    assert "Search failed" in caplog.text


def test_search_failure_on_first_query(engine_config):
    report = inspect_external_uniqueness(article(), FakeSearch(fail_on_call=1), config=engine_config)
    assert report.completed is False
    assert report.checked_chunks == 0
    assert report.uniqueness_score == 100
    assert report.summary == FAILED_BEFORE_ANY


@pytest.mark.parametrize(
    "response",
    [
        {"items": [{"title": "T", "link": "https://a.example", "snippet": "s"}]},
        SimpleNamespace(items=[SearchItem(title="T", link="https://a.example", snippet="s")]),
    ],
)
def test_search_items_accepts_mappings_and_objects(response):
    assert search_items(response) == [SearchItem(title="T", link="https://a.example", snippet="s")]


def test_search_items_ignores_malformed_responses():
    assert search_items(None) == []
    assert search_items({"items": "nope"}) == []


def test_extract_domain_strips_www():
    assert extract_domain("https://www.example.com/path") == "example.com"
    assert extract_domain("example.org/path") == "example.org"


def test_zero_query_limit_is_clamped_to_minimum(engine_config):
    search = FakeSearch()
    inspect_external_uniqueness(article(), search, max_queries=0, config=engine_config)
    assert len(search.queries) == engine_config.value("external", "min_max_queries")
