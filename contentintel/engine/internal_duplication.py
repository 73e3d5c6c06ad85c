"""Detection of passages duplicated from sibling documents of the same silo.

Every window of the current document is compared with every window of every
candidate and only the best-scoring candidate window is kept. The scan is
O(chunks x candidates x windows per candidate); fine for a silo of a few
dozen posts, not meant for site-wide corpora.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import List, Optional, Sequence

from .chunking import WindowPreset, build_preset_windows, word_count
from .config import EngineConfig, clamp, load_config, round_half_up
from .semantics import SemanticAnalyzer
from .similarity import Comparison, SimilarityScorer, global_risk, uniqueness_score
from .text import DEFAULT_TOKENIZER, Tokenizer, collapse_spaces, normalize
from .types import RISK_HIGH, RISK_LOW, CandidateDocument, DuplicationReport, SimilarityMatch, TextWindow

logger = logging.getLogger(__name__)

NO_SIBLINGS = "Nao ha outros posts no silo para comparar."
NOT_ENOUGH_TEXT = "Sem texto suficiente para comparar com os posts do silo."
NO_OVERLAP = "Nao encontramos sobreposicao forte com posts do mesmo silo."
RELEVANT_OVERLAP = "Foram encontrados trechos muito parecidos com posts do silo. Ajuste o angulo e exemplos."
MODERATE_OVERLAP = "Existe sobreposicao moderada. Diferencie narrativa e foco para reduzir canibalizacao."
STRUCTURE_HINT = "Estrutura PNL incompleta; inclua secoes de intencao e resposta direta."


def inspect_internal_duplication(
    text: str,
    candidates: Sequence[CandidateDocument],
    *,
    target_keyword: Optional[str] = None,
    max_matches: Optional[int] = None,
    config: EngineConfig | None = None,
    tokenizer: Tokenizer | None = None,
) -> DuplicationReport:
    """Compare ``text`` against sibling documents and report duplicated chunks."""

    engine_config = config or load_config(None)
    settings = engine_config.section("internal")
    tokenizer = tokenizer or DEFAULT_TOKENIZER
    scorer = SimilarityScorer.from_config(engine_config, "internal")

    body = collapse_spaces(text)
    total_words = word_count(body)
    diagnostics = SemanticAnalyzer(tokenizer.language).diagnose(body, keyword=target_keyword or "")
    requested = settings["default_max_matches"] if max_matches is None else max_matches
    limit = int(clamp(round_half_up(requested), settings["min_max_matches"], settings["max_max_matches"]))

    def tokenize(value: str) -> List[str]:
        return tokenizer.tokenize(value, min_len=settings["min_word_len"], remove_stop_words=True, stem=True)

    prepared = _prepare_candidates(candidates, settings, tokenize)
    compared = len(prepared)

    if not body or total_words < settings["min_total_words"]:
        return _neutral_report(total_words, 0, compared, diagnostics)

    current_preset = WindowPreset(
        words=settings["current_window_words"],
        step=settings["current_window_step"],
        max_windows=settings["current_max_windows"],
    )
    chunks = build_preset_windows(body, current_preset, tokenize, min_chunk_words=settings["min_chunk_words"])
    if not chunks or not compared:
        return _neutral_report(total_words, len(chunks), compared, diagnostics)

    raw_matches: List[SimilarityMatch] = []
    for chunk in chunks:
        best_score: Optional[Comparison] = None
        best_source: Optional[CandidateDocument] = None
        best_window: Optional[TextWindow] = None
        for candidate in prepared:
            for window in candidate.windows:
                comparison = scorer.compare(chunk.text, chunk.tokens, window.text, window.tokens)
                if comparison.score <= 0.0:
                    continue
                if best_score is None or comparison.score > best_score.score:
                    best_score, best_source, best_window = comparison, candidate, window

        if best_score is None or best_source is None or best_window is None:
            continue
        if not scorer.is_reportable(best_score.score):
            continue

        raw_matches.append(
            SimilarityMatch(
                chunk_text=chunk.text,
                score=round(best_score.score, 3),
                overlap_token_count=best_score.overlap,
                risk_level=scorer.classify(best_score.score),
                source_id=best_source.id,
                source_title=best_source.title,
                source_slug=best_source.slug,
                source_excerpt=best_window.text,
                alternatives=build_alternatives(chunk.text, target_keyword, tokenizer),
            )
        )

    matches = _dedupe(raw_matches, settings["dedupe_prefix_chars"])[:limit]

    checked = len(chunks)
    suspect = len(raw_matches)
    high = sum(1 for match in raw_matches if match.risk_level == RISK_HIGH)
    score = uniqueness_score(checked, suspect, high, [match.score for match in raw_matches], engine_config)

    summary = build_summary(checked, suspect, high, score, compared)
    if diagnostics.structure.coverage_score < settings["structure_hint_below"]:
        summary = f"{summary} {STRUCTURE_HINT}"

    logger.debug(
        "Internal duplication: %s chunks checked against %s posts, %s suspect, score %s",
        checked,
        compared,
        suspect,
        score,
    )

    return DuplicationReport(
        uniqueness_score=score,
        risk_level=global_risk(score, engine_config),
        total_words=total_words,
        checked_chunks=checked,
        suspect_chunks=suspect,
        high_risk_chunks=high,
        compared_count=compared,
        summary=summary,
        matches=matches,
        semantic_diagnostics=diagnostics,
    )


def _prepare_candidates(candidates, settings, tokenize) -> List[CandidateDocument]:
    preset = WindowPreset(
        words=settings["source_window_words"],
        step=settings["source_window_step"],
        max_windows=settings["source_max_windows"],
    )
    prepared: List[CandidateDocument] = []
    for candidate in candidates or []:
        source_text = collapse_spaces(candidate.raw_text)
        if word_count(source_text) < settings["min_source_words"]:
            continue
        windows = build_preset_windows(source_text, preset, tokenize, min_chunk_words=settings["min_chunk_words"])
        if not windows:
            continue
        prepared.append(replace(candidate, windows=tuple(windows)))
    return prepared


def _neutral_report(total_words, checked, compared, diagnostics) -> DuplicationReport:
    return DuplicationReport(
        uniqueness_score=100,
        risk_level=RISK_LOW,
        total_words=total_words,
        checked_chunks=checked,
        suspect_chunks=0,
        high_risk_chunks=0,
        compared_count=compared,
        summary=build_summary(checked, 0, 0, 100, compared),
        matches=[],
        semantic_diagnostics=diagnostics,
    )


def _dedupe(matches: List[SimilarityMatch], prefix_chars: int) -> List[SimilarityMatch]:
    seen: set[str] = set()
    unique: List[SimilarityMatch] = []
    for match in sorted(matches, key=lambda item: item.score, reverse=True):
        key = f"{normalize(match.chunk_text)[:prefix_chars]}::{match.source_id}"
        if key in seen:
            continue
        seen.add(key)
        unique.append(match)
    return unique


def build_summary(checked: int, suspect: int, high: int, score: int, compared: int) -> str:
    if not compared:
        return NO_SIBLINGS
    if not checked:
        return NOT_ENOUGH_TEXT
    if not suspect:
        return NO_OVERLAP
    if high > 0:
        return f"{high} trecho(s) com risco alto de duplicacao interna. Reescreva antes de publicar."
    if score < 70:
        return RELEVANT_OVERLAP
    return MODERATE_OVERLAP


def build_alternatives(chunk_text: str, target_keyword: Optional[str], tokenizer: Tokenizer) -> List[str]:
    """Return three templated rewrite prompts for a duplicated chunk."""

    rewritten = chunk_text
    for word, replacement in tokenizer.language.synonyms:
        rewritten = re.sub(rf"\b{re.escape(word)}\b", replacement, rewritten, flags=re.IGNORECASE)
    short = " ".join(rewritten.split()[:14])
    focus = (target_keyword or "").strip() or "tema central"
    return [
        f"No contexto deste guia sobre {focus}, priorize exemplo proprio: {short}.",
        "Troque a estrutura: comece pelo resultado pratico e depois explique o motivo com linguagem nova.",
        "Mantenha a ideia, mas inclua um dado/teste proprio e evite repetir termos identicos do trecho original.",
    ]
