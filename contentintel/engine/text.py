"""Language-aware text utilities: normalization, tokenization and stemming.

Every analyzer in the engine compares texts through the same pipeline:
``normalize`` folds case and diacritics and keeps only ``[a-z0-9 ]``,
``Tokenizer.tokenize`` splits the normalized text and optionally removes stop
words and applies a light suffix-stripping stemmer. Language specifics live in
an immutable :class:`LanguagePack` handed to the tokenizer at construction.
"""

from __future__ import annotations

import re
import unicodedata
from collections import Counter
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Sequence, Tuple

from .config import round_half_up

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_SPACES_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class LanguagePack:
    """Immutable language resources used by the tokenizer and diagnostics."""

    code: str
    stop_words: FrozenSet[str]
    suffixes: Tuple[str, ...]
    plural_rewrites: Tuple[Tuple[str, str], ...]
    synonyms: Tuple[Tuple[str, str], ...]
    section_patterns: Tuple[Tuple[str, Tuple[str, ...]], ...]


PT_BR = LanguagePack(
    code="pt-BR",
    stop_words=frozenset(
        {
            "de", "da", "do", "das", "dos", "e", "em", "para", "por", "com",
            "sem", "um", "uma", "uns", "umas", "o", "a", "os", "as", "na",
            "no", "nas", "nos", "que", "como", "sobre", "mais", "menos", "se",
            "ao", "aos", "ainda", "ja", "ou", "tambem", "isso", "essa", "esse",
            "este", "esta", "sao", "ser", "estar", "foi", "foram", "tem", "ter",
            "tendo", "pode", "podem", "deve", "devem", "muito", "muita",
            "muitos", "muitas",
        }
    ),
    suffixes=(
        "izacao",
        "izacoes",
        "izador",
        "izadores",
        "amento",
        "amentos",
        "imento",
        "imentos",
        "mente",
        "idade",
        "idades",
        "cao",
        "coes",
        "s",
    ),
    plural_rewrites=(("oes", "ao"), ("ais", "al"), ("eis", "el")),
    synonyms=(
        ("melhor", "mais indicado"),
        ("importante", "essencial"),
        ("deve", "vale"),
        ("necessario", "fundamental"),
        ("ajuda", "contribui"),
    ),
    section_patterns=(
        ("definition", (r"\bo que e\b", r"\bdefinicao\b", r"\bconceito\b")),
        ("for_who", (r"\bpara quem\b", r"\bindicado para\b", r"\bquem deve\b", r"\bideal para\b")),
        ("how_it_works", (r"\bcomo funciona\b", r"\bcomo fazer\b", r"\bpasso a passo\b", r"\betapas\b")),
        ("pros_cons", (r"\bvantagens\b", r"\bdesvantagens\b", r"\bpros\b", r"\bcontras\b", r"\bbeneficios\b")),
        ("mistakes", (r"\berros comuns\b", r"\bo que evitar\b", r"\bfalhas\b", r"\bcontraindicacoes\b")),
        ("checklist", (r"\bchecklist\b", r"\blista de verificacao\b", r"\blista pratica\b")),
        ("faq", (r"\bfaq\b", r"\bperguntas frequentes\b", r"\bduvidas frequentes\b", r"\bpergunta\b")),
    ),
)


def normalize(text: str | None) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace."""

    value = unicodedata.normalize("NFD", str(text or "").lower())
    value = "".join(char for char in value if not unicodedata.combining(char))
    value = _NON_ALNUM_RE.sub(" ", value)
    return _SPACES_RE.sub(" ", value).strip()


def collapse_spaces(text: str | None) -> str:
    """Collapse runs of whitespace without touching the characters themselves."""

    return _SPACES_RE.sub(" ", str(text or "")).strip()


class Tokenizer:
    """Tokenizer bound to a language pack."""

    def __init__(self, language: LanguagePack = PT_BR) -> None:
        self.language = language

    def stem(self, token: str) -> str:
        """Strip the first matching suffix, then rewrite irregular plurals."""

        value = token
        for suffix in self.language.suffixes:
            if len(value) > len(suffix) + 2 and value.endswith(suffix):
                value = value[: -len(suffix)]
                break

        for ending, replacement in self.language.plural_rewrites:
            if value.endswith(ending) and len(value) > 5:
                value = value[: -len(ending)] + replacement

        return value.strip()

    def tokenize(
        self,
        text: str | None,
        *,
        min_len: int = 3,
        remove_stop_words: bool = False,
        stem: bool = False,
    ) -> List[str]:
        """Return normalized tokens of at least ``min_len`` characters."""

        min_len = max(2, min_len)
        tokens = [token for token in normalize(text).split(" ") if len(token) >= min_len]
        if stem:
            tokens = [self.stem(token) for token in tokens]
        tokens = [token for token in tokens if len(token) >= min_len]
        if remove_stop_words:
            tokens = [token for token in tokens if token not in self.language.stop_words]
        return tokens

    def extract_frequent_terms(
        self,
        text: str | None,
        limit: int = 12,
        *,
        min_unigram_count: int = 3,
        min_bigram_count: int = 2,
    ) -> List[str]:
        """Return the most frequent bigrams and unigrams, bigrams first."""

        limit = int(max(3, min(80, round_half_up(limit))))
        min_unigram_count = int(max(1, min(20, round_half_up(min_unigram_count))))
        min_bigram_count = int(max(1, min(20, round_half_up(min_bigram_count))))

        tokens = self.tokenize(text, min_len=4, remove_stop_words=True, stem=True)
        unigrams = Counter(tokens)
        bigrams = Counter(f"{current} {following}" for current, following in zip(tokens, tokens[1:]))

        ranked_bigrams = [
            term
            for term, count in sorted(bigrams.items(), key=lambda item: item[1], reverse=True)
            if count >= min_bigram_count
        ][:limit]
        ranked_unigrams = [
            term
            for term, count in sorted(unigrams.items(), key=lambda item: item[1], reverse=True)
            if count >= min_unigram_count
        ][:limit]

        return dedupe_terms(ranked_bigrams + ranked_unigrams)[:limit]


DEFAULT_TOKENIZER = Tokenizer(PT_BR)


def tokenize(
    text: str | None,
    *,
    min_len: int = 3,
    remove_stop_words: bool = False,
    stem: bool = False,
) -> List[str]:
    """Tokenize with the default (pt-BR) language pack."""

    return DEFAULT_TOKENIZER.tokenize(
        text,
        min_len=min_len,
        remove_stop_words=remove_stop_words,
        stem=stem,
    )


def stem(token: str) -> str:
    return DEFAULT_TOKENIZER.stem(token)


def extract_frequent_terms(text: str | None, limit: int = 12) -> List[str]:
    return DEFAULT_TOKENIZER.extract_frequent_terms(text, limit)


def dedupe_terms(terms: Iterable[str]) -> List[str]:
    """Drop short and duplicate terms, comparing by normalized form."""

    seen: set[str] = set()
    result: List[str] = []
    for raw in terms:
        cleaned = collapse_spaces(raw)
        if len(cleaned) < 3:
            continue
        key = normalize(cleaned)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


def jaccard(set_a: Iterable[str], set_b: Iterable[str]) -> float:
    """Return Jaccard similarity for two iterables."""

    set_a = set(set_a)
    set_b = set(set_b)
    if not set_a or not set_b:
        return 0.0
    intersection = set_a & set_b
    union = set_a | set_b
    if not union:
        return 0.0
    return len(intersection) / len(union)


def overlap_coverage(tokens_a: Sequence[str], tokens_b: Iterable[str]) -> Tuple[int, float]:
    """Return how many unique tokens of A appear in B, and that fraction."""

    base = set(tokens_a)
    if not base:
        return 0, 0.0
    other = set(tokens_b)
    overlap = len(base & other)
    return overlap, overlap / len(base)
