"""Typed data structures shared by the content intelligence engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"

LINK_INTERNAL = "internal"
LINK_EXTERNAL = "external"
LINK_AFFILIATE = "affiliate"

POSITION_START = "start"
POSITION_MID = "mid"
POSITION_END = "end"


@dataclass(frozen=True)
class TextWindow:
    """Fixed-size slice of words together with its comparison tokens."""

    text: str
    tokens: Tuple[str, ...]


@dataclass(frozen=True)
class CandidateDocument:
    """Sibling or competing article available for comparison."""

    id: str
    title: str
    slug: str
    raw_text: str
    headings: Tuple[str, ...] = ()
    target_keyword: Optional[str] = None
    focus_keyword: Optional[str] = None
    windows: Tuple[TextWindow, ...] = ()


@dataclass(frozen=True)
class SimilarityMatch:
    """Scored pairing between a current-document chunk and a source passage."""

    chunk_text: str
    score: float
    overlap_token_count: int
    risk_level: str
    source_id: str
    source_title: str
    source_excerpt: str
    source_slug: Optional[str] = None
    source_domain: Optional[str] = None
    query: Optional[str] = None
    alternatives: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DuplicationReport:
    """Aggregate uniqueness result for one document."""

    uniqueness_score: int
    risk_level: str
    total_words: int
    checked_chunks: int
    suspect_chunks: int
    high_risk_chunks: int
    compared_count: int
    summary: str
    matches: List[SimilarityMatch] = field(default_factory=list)
    completed: bool = True
    semantic_diagnostics: Optional["SemanticDiagnostics"] = None


@dataclass(frozen=True)
class StructureDiagnostics:
    coverage_score: int
    covered_sections: List[str]
    missing_sections: List[str]


@dataclass(frozen=True)
class CoverageDiagnostics:
    lsi_coverage_score: int
    covered_terms: List[str]
    missing_terms: List[str]
    repeated_terms: List[Tuple[str, int]]
    top_terms: List[str]


@dataclass(frozen=True)
class SemanticDiagnostics:
    """Structure and related-term coverage of a document."""

    structure: StructureDiagnostics
    coverage: CoverageDiagnostics
    warnings: List[str]


@dataclass(frozen=True)
class SearchItem:
    """Single result returned by the search collaborator."""

    title: str
    link: str
    snippet: str
    display_link: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SearchItem":
        return cls(
            title=str(data.get("title") or ""),
            link=str(data.get("link") or ""),
            snippet=str(data.get("snippet") or ""),
            display_link=str(data.get("displayLink") or data.get("display_link") or ""),
        )


@dataclass(frozen=True)
class SerpOverlap:
    url_overlap: float
    domain_overlap: float
    score: float


@dataclass(frozen=True)
class CannibalizationPair:
    """Two documents of a cluster competing for the same intent."""

    doc_a_id: str
    doc_b_id: str
    similarity_score: float
    risk_level: str
    recommendation: str
    serp_overlap_score: Optional[float] = None


@dataclass(frozen=True)
class RelFlags:
    nofollow: bool = False
    sponsored: bool = False
    ugc: bool = False


@dataclass(frozen=True)
class ExtractedLink:
    """Hyperlink or CTA occurrence found in rendered content."""

    href: str
    anchor_text: str
    is_internal: bool
    is_silo_internal: bool
    is_amazon: bool
    rel: RelFlags
    target_blank: bool
    position_bucket: str
    position: int = 0
    end: int = 0
    context: str = ""
    path: Optional[str] = None
    has_image: bool = False

    @property
    def link_type(self) -> str:
        if self.is_amazon:
            return LINK_AFFILIATE
        if self.is_internal:
            return LINK_INTERNAL
        return LINK_EXTERNAL


@dataclass(frozen=True)
class LinkOccurrenceRecord:
    """Persisted, identity-stable version of an extracted link."""

    occurrence_key: str
    source_doc_id: str
    href: str
    anchor_text: str
    link_type: str
    rel: RelFlags
    target_blank: bool
    position_bucket: str
    is_silo_internal: bool = False
    target_doc_id: Optional[str] = None
    context: str = ""
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    silo_id: Optional[str] = None
    id: Optional[Any] = None

    @property
    def is_internal(self) -> bool:
        return self.link_type == LINK_INTERNAL

    @property
    def is_amazon(self) -> bool:
        return self.link_type == LINK_AFFILIATE

    def to_row(self) -> Dict[str, Any]:
        """Return the storage row for this record, keyed by column name."""

        row: Dict[str, Any] = {
            "silo_id": self.silo_id,
            "source_post_id": self.source_doc_id,
            "target_post_id": self.target_doc_id,
            "anchor_text": self.anchor_text,
            "context_snippet": self.context,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "occurrence_key": self.occurrence_key,
            "href_normalized": self.href,
            "position_bucket": self.position_bucket,
            "link_type": self.link_type,
            "is_nofollow": self.rel.nofollow,
            "is_sponsored": self.rel.sponsored,
            "is_ugc": self.rel.ugc,
            "is_blank": self.target_blank,
            "is_silo_internal": self.is_silo_internal,
        }
        if self.id is not None:
            row["id"] = self.id
        return row


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of reconciling fresh links with a stored snapshot."""

    records: List[LinkOccurrenceRecord]
    kept: int
    inserted: int
    deleted: int
    pruned_columns: List[str] = field(default_factory=list)
