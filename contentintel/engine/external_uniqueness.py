"""External uniqueness inspection through search-engine snippets.

Sentences of the document are turned into quoted search phrases, each phrase
is sent once to a search collaborator and the best returned result (title plus
snippet) is scored against the phrase. The engine never crawls: it only scores
what the collaborator hands back.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

from .config import EngineConfig, clamp, load_config, round_half_up
from .similarity import SimilarityScorer, global_risk, uniqueness_score
from .text import DEFAULT_TOKENIZER, Tokenizer, collapse_spaces, normalize
from .types import RISK_HIGH, RISK_LOW, DuplicationReport, SearchItem, SimilarityMatch

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Any]

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+(?:\s+|$)")

NOT_ENOUGH_TEXT = "Sem texto suficiente para inspecao externa."
NO_SIGNAL = "Nao encontramos sinais fortes de copia nos trechos avaliados."
RELEVANT_OVERLAP = "Foram detectadas sobreposicoes relevantes. Reescreva trechos para elevar unicidade."
MODERATE_OVERLAP = "Existem sobreposicoes moderadas. Ajuste linguagem e exemplos para diferenciar."
INTERRUPTED = "Inspecao interrompida por falha na busca; resultados parciais."
FAILED_BEFORE_ANY = "A busca externa falhou antes de concluir qualquer consulta."
UNTITLED = "Sem titulo"


@dataclass(frozen=True)
class QueryCandidate:
    query: str
    excerpt: str


def split_sentences(text: str, min_chars: int = 80) -> List[str]:
    """Split text into sentences of at least ``min_chars`` characters, deduplicated."""

    base = collapse_spaces(text.replace("\r", " ").replace("\n", " "))
    if not base:
        return []
    sentences = [sentence.strip() for sentence in _SENTENCE_SPLIT_RE.split(base)]
    return _unique_normalized(sentence for sentence in sentences if len(sentence) >= min_chars)


def _unique_normalized(values) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for value in values:
        key = normalize(value)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(value.strip())
    return result


def build_excerpt(sentence: str, settings: Mapping[str, Any]) -> str:
    """Trim a sentence to a literal search phrase within the character and word budgets."""

    words = sentence.split()
    if len(words) < settings["min_chunk_words"]:
        return ""

    selected: List[str] = []
    for word in words:
        candidate = " ".join([*selected, word])
        if len(candidate) > settings["max_query_chars"] - 4:
            break
        selected.append(word)
        if len(selected) >= settings["max_chunk_words"]:
            break

    if len(selected) < settings["min_chunk_words"]:
        return ""
    return " ".join(selected)


def build_query_candidates(text: str, max_queries: int, settings: Mapping[str, Any]) -> List[QueryCandidate]:
    """Return up to ``max_queries`` quoted phrases, sentences first, word chunks as filler."""

    candidates: List[QueryCandidate] = []
    seen: set[str] = set()

    def push(raw: str) -> None:
        excerpt = build_excerpt(raw, settings)
        if not excerpt:
            return
        key = normalize(excerpt)
        if not key or key in seen:
            return
        seen.add(key)
        candidates.append(QueryCandidate(query=f'"{excerpt}"', excerpt=excerpt))

    for sentence in split_sentences(text, settings["min_sentence_chars"]):
        push(sentence)

    if len(candidates) < max_queries:
        words = collapse_spaces(text).split()
        for index in range(0, len(words), settings["fallback_step"]):
            if len(candidates) >= max_queries:
                break
            push(" ".join(words[index : index + settings["fallback_width"]]))

    return candidates[:max_queries]


def extract_domain(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        host = ""
    if not host:
        host = re.sub(r"^https?://", "", url, flags=re.IGNORECASE).split("/")[0] or url
    return re.sub(r"^www\.", "", host, flags=re.IGNORECASE)


def search_items(response: Any) -> List[SearchItem]:
    """Read the ``items`` list of a search response; anything else means no evidence."""

    if isinstance(response, Mapping):
        raw_items = response.get("items")
    else:
        raw_items = getattr(response, "items", None)
    if not isinstance(raw_items, (list, tuple)):
        return []
    items: List[SearchItem] = []
    for raw in raw_items:
        if isinstance(raw, SearchItem):
            items.append(raw)
        elif isinstance(raw, Mapping):
            items.append(SearchItem.from_mapping(raw))
    return items


def inspect_external_uniqueness(
    text: str,
    search: SearchFn,
    *,
    max_queries: Optional[int] = None,
    config: EngineConfig | None = None,
    tokenizer: Tokenizer | None = None,
) -> DuplicationReport:
    """Query the search collaborator with phrases of ``text`` and score the snippets."""

    engine_config = config or load_config(None)
    settings = engine_config.section("external")
    tokenizer = tokenizer or DEFAULT_TOKENIZER
    scorer = SimilarityScorer.from_config(engine_config, "external")

    def tokenize(value: str) -> List[str]:
        return tokenizer.tokenize(value, min_len=settings["min_word_len"])

    body = (text or "").strip()
    total_words = len(tokenize(body))
    if not body or total_words < settings["min_total_tokens"]:
        return _neutral_report(total_words)

    requested = settings["default_max_queries"] if max_queries is None else max_queries
    limit = int(clamp(round_half_up(requested), settings["min_max_queries"], settings["max_max_queries"]))
    candidates = build_query_candidates(body, limit, settings)
    if not candidates:
        return _neutral_report(total_words)

    matches: List[SimilarityMatch] = []
    answered = 0
    completed = True
    for candidate in candidates:
        try:
            response = search(candidate.query)
        except Exception:
            logger.warning(
                "Search failed for query %r; stopping after %s of %s queries",
                candidate.query,
                answered,
                len(candidates),
                exc_info=True,
            )
            completed = False
            break
        answered += 1

        best = _best_match(candidate, search_items(response), scorer, tokenize)
        if best is not None and scorer.is_reportable(best.score):
            matches.append(best)

    suspect = len(matches)
    high = sum(1 for match in matches if match.risk_level == RISK_HIGH)
    score = uniqueness_score(answered, suspect, high, [match.score for match in matches], engine_config)
    summary = build_summary(answered, suspect, high, score, completed)

    logger.debug("External uniqueness: %s queries answered, %s suspect, score %s", answered, suspect, score)

    matches.sort(key=lambda item: item.score, reverse=True)
    return DuplicationReport(
        uniqueness_score=score,
        risk_level=global_risk(score, engine_config),
        total_words=total_words,
        checked_chunks=answered,
        suspect_chunks=suspect,
        high_risk_chunks=high,
        compared_count=answered,
        summary=summary,
        matches=matches[: settings["max_matches"]],
        completed=completed,
    )


def _best_match(
    candidate: QueryCandidate,
    items: Sequence[SearchItem],
    scorer: SimilarityScorer,
    tokenize: Callable[[str], List[str]],
) -> Optional[SimilarityMatch]:
    excerpt_tokens = tokenize(candidate.excerpt)
    best: Optional[SimilarityMatch] = None
    for item in items:
        source_text = f"{item.title} {item.snippet}"
        comparison = scorer.compare(candidate.excerpt, excerpt_tokens, source_text, tokenize(source_text))
        score = round(comparison.score, 3)
        if best is not None and score <= best.score:
            continue
        best = SimilarityMatch(
            chunk_text=candidate.excerpt,
            score=score,
            overlap_token_count=comparison.overlap,
            risk_level=scorer.classify(score),
            source_id=item.link,
            source_title=item.title or UNTITLED,
            source_excerpt=item.snippet,
            source_domain=extract_domain(item.link),
            query=candidate.query,
        )
    return best


def _neutral_report(total_words: int) -> DuplicationReport:
    return DuplicationReport(
        uniqueness_score=100,
        risk_level=RISK_LOW,
        total_words=total_words,
        checked_chunks=0,
        suspect_chunks=0,
        high_risk_chunks=0,
        compared_count=0,
        summary=NOT_ENOUGH_TEXT,
        matches=[],
    )


def build_summary(checked: int, suspect: int, high: int, score: int, completed: bool = True) -> str:
    if not checked:
        return NOT_ENOUGH_TEXT if completed else FAILED_BEFORE_ANY
    if not suspect:
        summary = NO_SIGNAL
    elif high > 0:
        summary = f"{high} trecho(s) com risco alto de copia detectado(s). Revise antes de publicar."
    elif score < 70:
        summary = RELEVANT_OVERLAP
    else:
        summary = MODERATE_OVERLAP
    return summary if completed else f"{summary} {INTERRUPTED}"
