"""Keyword cannibalization analysis across the posts of a silo."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

from .config import EngineConfig, load_config
from .external_uniqueness import SearchFn, search_items
from .text import jaccard, normalize
from .types import RISK_HIGH, RISK_LOW, RISK_MEDIUM, CandidateDocument, CannibalizationPair, SearchItem, SerpOverlap

logger = logging.getLogger(__name__)

RECOMMENDATIONS = {
    RISK_HIGH: (
        "Separar intencoes: ajuste H2/H3 para subtemas exclusivos, revise o foco da keyword "
        "e considere formatos diferentes (guia vs comparativo)."
    ),
    RISK_MEDIUM: "Refinar angulo e headings para reduzir sobreposicao. Use exemplos, FAQ ou comparativos distintos.",
    RISK_LOW: "Sem canibalizacao forte detectada. Mantenha monitoramento conforme novos posts entrarem no silo.",
}


def build_fingerprint(post: CandidateDocument, words: int = 600) -> str:
    """Title, headings and the opening ``words`` normalized words of the body."""

    snippet = " ".join(normalize(post.raw_text).split()[:words])
    return normalize(" ".join([post.title or "", " ".join(post.headings), snippet]))


def fingerprint_tokens(fingerprint: str, min_len: int = 3) -> List[str]:
    if not fingerprint:
        return []
    return [token for token in fingerprint.split(" ") if len(token) >= min_len]


def post_query(post: CandidateDocument) -> str:
    """Search query representing a post: focus keyword, then target keyword, then title."""

    for value in (post.focus_keyword, post.target_keyword, post.title):
        if value and value.strip():
            return value.strip()
    return ""


def derive_risk_level(
    similarity: float,
    serp_overlap: Optional[float] = None,
    config: EngineConfig | None = None,
) -> str:
    settings = (config or load_config(None)).section("cannibalization")
    if serp_overlap is not None:
        if similarity >= settings["combined_similarity_high"] and serp_overlap >= settings["combined_serp_high"]:
            return RISK_HIGH
        if similarity >= settings["combined_similarity_medium"] or serp_overlap >= settings["combined_serp_medium"]:
            return RISK_MEDIUM
        return RISK_LOW
    if similarity >= settings["similarity_high"]:
        return RISK_HIGH
    if similarity >= settings["similarity_medium"]:
        return RISK_MEDIUM
    return RISK_LOW


def build_recommendation(risk_level: str) -> str:
    return RECOMMENDATIONS.get(risk_level, RECOMMENDATIONS[RISK_LOW])


def build_internal_similarity(
    posts: Sequence[CandidateDocument],
    config: EngineConfig | None = None,
) -> List[CannibalizationPair]:
    """Score every unordered pair of posts by fingerprint Jaccard similarity."""

    engine_config = config or load_config(None)
    settings = engine_config.section("cannibalization")
    fingerprints = {
        post.id: fingerprint_tokens(build_fingerprint(post, settings["fingerprint_words"]), settings["min_token_len"])
        for post in posts
    }

    pairs: List[CannibalizationPair] = []
    for index, first in enumerate(posts):
        for second in posts[index + 1 :]:
            if first.id == second.id:
                continue
            score = jaccard(fingerprints.get(first.id, []), fingerprints.get(second.id, []))
            risk = derive_risk_level(score, None, engine_config)
            pairs.append(
                CannibalizationPair(
                    doc_a_id=first.id,
                    doc_b_id=second.id,
                    similarity_score=round(score, 3),
                    risk_level=risk,
                    recommendation=build_recommendation(risk),
                )
            )

    pairs.sort(key=lambda pair: pair.similarity_score, reverse=True)
    return pairs


def normalize_serp_url(link: str) -> str:
    """Host (without ``www.``) plus path without trailing slash."""

    try:
        parsed = urlparse(link)
    except ValueError:
        parsed = None
    if parsed is None or not parsed.hostname:
        return re.sub(r"/$", "", re.sub(r"^https?://", "", link, flags=re.IGNORECASE))
    host = re.sub(r"^www\.", "", parsed.hostname, flags=re.IGNORECASE)
    return f"{host}{re.sub(r'/$', '', parsed.path)}"


def _item_domain(item: SearchItem) -> str:
    if item.display_link:
        return re.sub(r"^www\.", "", item.display_link, flags=re.IGNORECASE)
    try:
        host = urlparse(item.link).hostname or ""
    except ValueError:
        host = ""
    if host:
        return re.sub(r"^www\.", "", host, flags=re.IGNORECASE)
    return re.sub(r"^https?://", "", item.link, flags=re.IGNORECASE).split("/")[0]


def compute_serp_overlap(
    items_a: Sequence[SearchItem],
    items_b: Sequence[SearchItem],
    config: EngineConfig | None = None,
) -> SerpOverlap:
    """Blend URL and domain overlap of two result pages, each over the smaller set."""

    settings = (config or load_config(None)).section("cannibalization")
    urls_a = {normalize_serp_url(item.link) for item in items_a}
    urls_b = {normalize_serp_url(item.link) for item in items_b}
    domains_a = {_item_domain(item) for item in items_a}
    domains_b = {_item_domain(item) for item in items_b}

    url_overlap = len(urls_a & urls_b) / max(1, min(len(urls_a), len(urls_b)))
    domain_overlap = len(domains_a & domains_b) / max(1, min(len(domains_a), len(domains_b)))
    score = url_overlap * settings["url_weight"] + domain_overlap * settings["domain_weight"]
    return SerpOverlap(
        url_overlap=round(url_overlap, 3),
        domain_overlap=round(domain_overlap, 3),
        score=round(score, 3),
    )


def apply_serp_overlap(
    pairs: Sequence[CannibalizationPair],
    results_by_post: Mapping[str, Any],
    config: EngineConfig | None = None,
) -> List[CannibalizationPair]:
    """Re-rate pairs once both posts have a result page available."""

    engine_config = config or load_config(None)
    updated: List[CannibalizationPair] = []
    for pair in pairs:
        first = results_by_post.get(pair.doc_a_id)
        second = results_by_post.get(pair.doc_b_id)
        serp_score: Optional[float] = None
        if first is not None and second is not None:
            serp_score = compute_serp_overlap(_as_items(first), _as_items(second), engine_config).score
        risk = derive_risk_level(pair.similarity_score, serp_score, engine_config)
        updated.append(
            replace(
                pair,
                serp_overlap_score=serp_score,
                risk_level=risk,
                recommendation=build_recommendation(risk),
            )
        )
    return updated


def _as_items(value: Any) -> List[SearchItem]:
    if isinstance(value, (list, tuple)):
        return search_items({"items": list(value)})
    return search_items(value)


def analyze_cannibalization(
    posts: Sequence[CandidateDocument],
    search: SearchFn | None = None,
    config: EngineConfig | None = None,
) -> List[CannibalizationPair]:
    """Score all pairs of ``posts``; with a search collaborator, blend in result overlap.

    Queries are issued one at a time, one per post, capped by
    ``cannibalization.max_queries``; each result page is cut to
    ``results_per_post`` items. Search failures propagate to the caller.
    """

    engine_config = config or load_config(None)
    settings = engine_config.section("cannibalization")
    pairs = build_internal_similarity(posts, engine_config)
    if search is None or not pairs:
        return pairs

    results: Dict[str, List[SearchItem]] = {}
    for post in posts[: settings["max_queries"]]:
        query = post_query(post)
        if not query or post.id in results:
            continue
        results[post.id] = search_items(search(query))[: settings["results_per_post"]]

    logger.debug("Cannibalization: %s pairs, %s result pages", len(pairs), len(results))
    return apply_serp_overlap(pairs, results, engine_config)
