"""Normalization, tokenization and term helpers."""

from __future__ import annotations

from contentintel.engine.semantics import SemanticAnalyzer
from contentintel.engine.text import (
    PT_BR,
    LanguagePack,
    Tokenizer,
    dedupe_terms,
    extract_frequent_terms,
    jaccard,
    normalize,
    overlap_coverage,
    stem,
    tokenize,
)


def test_normalize_folds_case_accents_and_punctuation():
    assert normalize("  Ação, Café! É   ÓTIMO?  ") == "acao cafe e otimo"
    assert normalize(None) == ""


def test_normalize_is_idempotent():
    samples = ["Olá, mundo!!", "Prós & Contras: 100%", "  já\tvisto\n", "ÇÃO-çao_x"]
    for sample in samples:
        once = normalize(sample)
        assert normalize(once) == once


def test_stem_strips_first_matching_suffix():
    assert stem("organizacao") == "organ"
    assert stem("rapidamente") == "rapida"
    assert stem("livros") == "livro"
    assert stem("sol") == "sol"


def test_tokenize_filters_short_tokens_and_stop_words():
    assert tokenize("O gato de botas e a raposa") == ["gato", "botas", "raposa"]
    assert tokenize("para quem tem pressa", remove_stop_words=True) == ["quem", "pressa"]
    assert tokenize("livros usados", stem=True) == ["livro", "usado"]


def test_tokenize_min_len_never_below_two():
    assert tokenize("a b cd efg", min_len=0) == ["cd", "efg"]


def test_tokenizer_accepts_another_language_pack():
    english = LanguagePack(
        code="en",
        stop_words=frozenset({"the", "and"}),
        suffixes=("ing",),
        plural_rewrites=(),
        synonyms=(),
        section_patterns=(("faq", (r"\bfaq\b",)),),
    )
    tokenizer = Tokenizer(english)
    assert tokenizer.tokenize("the brewing and roasting", remove_stop_words=True, stem=True) == ["brew", "roast"]
    assert SemanticAnalyzer(english).assess_structure("Read the FAQ").coverage_score == 100


def test_extract_frequent_terms_puts_bigrams_first():
    text = " ".join(["moedor manual"] * 4 + ["grao"] * 3 + ["torra"] * 2)
    terms = extract_frequent_terms(text, limit=5)
    assert terms[0] == "moedor manual"
    assert "moedor" in terms
    assert "torra" not in terms


def test_extract_frequent_terms_clamps_limit():
    text = " ".join(f"palavra{index} " * 4 for index in range(100))
    assert len(Tokenizer(PT_BR).extract_frequent_terms(text, limit=500)) == 80
    assert len(Tokenizer(PT_BR).extract_frequent_terms(text, limit=1)) == 3


def test_dedupe_terms_keeps_first_spelling():
    assert dedupe_terms(["Café  Forte", "cafe forte", "ab", "Moagem"]) == ["Café Forte", "Moagem"]


def test_jaccard_and_overlap_coverage():
    assert jaccard([], ["a"]) == 0.0
    assert jaccard(["a", "b"], ["b", "c"]) == 1 / 3
    assert overlap_coverage(["a", "b", "b"], ["b"]) == (1, 0.5)
    assert overlap_coverage([], ["b"]) == (0, 0.0)


def test_semantic_diagnostics_flags_structure_and_repetition():
    text = "O que e um moedor? Vantagens e desvantagens. Perguntas frequentes. " + "moedor " * 9
    diagnostics = SemanticAnalyzer().diagnose(text, keyword="moedor", related_terms=["lamina conica"])
    assert set(diagnostics.structure.covered_sections) == {"definition", "pros_cons", "faq"}
    assert diagnostics.coverage.covered_terms == ["moedor"]
    assert diagnostics.coverage.missing_terms == ["lamina conica"]
    assert diagnostics.coverage.lsi_coverage_score == 50
    assert diagnostics.coverage.repeated_terms[0][0] == "moedor"
    assert any("stuffing" in warning for warning in diagnostics.warnings)


def test_related_term_coverage_rounds_halves_up():
    terms = ["moagem", "pressao", "vapor", "filtro", "chaleira", "balanca", "graos", "torra"]
    coverage = SemanticAnalyzer().assess_coverage("Ajuste a moagem antes de preparar.", related_terms=terms)
    assert coverage.covered_terms == ["moagem"]
    # 1 of 8 terms is 12.5
    assert coverage.lsi_coverage_score == 13
