"""Semantic foundation diagnostics: section structure and related-term coverage."""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import round_half_up
from .text import PT_BR, LanguagePack, Tokenizer, dedupe_terms, normalize
from .types import CoverageDiagnostics, SemanticDiagnostics, StructureDiagnostics

LOW_COVERAGE_BELOW = 45
REPEATED_TERM_MIN_COUNT = 8
REPEATED_TERM_LIMIT = 8


class SemanticAnalyzer:
    """Checks which editorial sections a text covers and how well it covers related terms."""

    def __init__(self, language: LanguagePack = PT_BR) -> None:
        self.language = language
        self.tokenizer = Tokenizer(language)
        self._sections: List[Tuple[str, List[re.Pattern[str]]]] = [
            (name, [re.compile(pattern, re.IGNORECASE) for pattern in patterns])
            for name, patterns in language.section_patterns
        ]

    def assess_structure(self, text: str) -> StructureDiagnostics:
        normalized = normalize(text)
        covered = [
            name for name, patterns in self._sections if any(pattern.search(normalized) for pattern in patterns)
        ]
        missing = [name for name, _ in self._sections if name not in covered]
        total = len(self._sections) or 1
        return StructureDiagnostics(
            coverage_score=round_half_up(len(covered) / total * 100),
            covered_sections=covered,
            missing_sections=missing,
        )

    def assess_coverage(
        self,
        text: str,
        *,
        keyword: Optional[str] = None,
        related_terms: Sequence[str] = (),
        entities: Sequence[str] = (),
        top_terms_limit: int = 10,
    ) -> CoverageDiagnostics:
        requested = dedupe_terms([*([keyword] if keyword else []), *related_terms, *entities])
        covered, missing = _split_covered(text, requested)
        score = round_half_up(len(covered) / len(requested) * 100) if requested else 100
        return CoverageDiagnostics(
            lsi_coverage_score=score,
            covered_terms=covered,
            missing_terms=missing,
            repeated_terms=self.repeated_terms(text),
            top_terms=self.tokenizer.extract_frequent_terms(text, top_terms_limit),
        )

    def repeated_terms(self, text: str) -> List[Tuple[str, int]]:
        counts = Counter(self.tokenizer.tokenize(text, min_len=4, remove_stop_words=True, stem=True))
        frequent = [(term, count) for term, count in counts.items() if count >= REPEATED_TERM_MIN_COUNT]
        frequent.sort(key=lambda item: item[1], reverse=True)
        return frequent[:REPEATED_TERM_LIMIT]

    def diagnose(
        self,
        text: str,
        *,
        keyword: Optional[str] = None,
        related_terms: Sequence[str] = (),
        entities: Sequence[str] = (),
    ) -> SemanticDiagnostics:
        structure = self.assess_structure(text)
        coverage = self.assess_coverage(text, keyword=keyword, related_terms=related_terms, entities=entities)

        warnings: List[str] = []
        if coverage.lsi_coverage_score < LOW_COVERAGE_BELOW:
            warnings.append("Cobertura semantica baixa para termos relacionados (LSI).")
        if structure.coverage_score < LOW_COVERAGE_BELOW:
            warnings.append("Estrutura PNL incompleta: faltam blocos de intencao e resposta.")
        if coverage.repeated_terms:
            warnings.append("Repeticao excessiva detectada em termos-chave; risco de stuffing.")

        return SemanticDiagnostics(structure=structure, coverage=coverage, warnings=warnings)


def _split_covered(text: str, terms: Iterable[str]) -> Tuple[List[str], List[str]]:
    normalized_text = normalize(text)
    covered: List[str] = []
    missing: List[str] = []
    for term in terms:
        key = normalize(term)
        if not key:
            continue
        if key in normalized_text:
            covered.append(term)
        else:
            missing.append(term)
    return covered, missing
