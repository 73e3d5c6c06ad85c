"""Extraction and classification of links found in article content."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .config import EngineConfig, load_config
from .content import BLOCK_TAGS, ContainerNode, EmbedNode, LinkNode, Node, TextNode, TreeVisitor, plain_text, to_tree
from .text import collapse_spaces
from .types import POSITION_END, POSITION_MID, POSITION_START, ExtractedLink, RelFlags

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*:", re.IGNORECASE)
_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_host(host: str) -> str:
    return re.sub(r"^www\.", "", host.strip().lower())


def parse_rel(value: str | None) -> RelFlags:
    tokens = {token.lower() for token in re.split(r"\s+", value or "") if token}
    return RelFlags(nofollow="nofollow" in tokens, sponsored="sponsored" in tokens, ugc="ugc" in tokens)


def normalize_path(path: str) -> Optional[str]:
    cleaned = path.strip().split("#")[0].split("?")[0]
    if not cleaned:
        return None
    normalized = cleaned if cleaned.startswith("/") else f"/{cleaned}"
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


@dataclass(frozen=True)
class LinkClassifier:
    """Resolves hrefs against the site and flags affiliate marketplaces."""

    site_url: Optional[str] = None
    silo_slug: Optional[str] = None
    affiliate_hints: Tuple[str, ...] = ("amazon.", "amzn.to", "a.co")
    ignored_prefixes: Tuple[str, ...] = ("mailto:", "tel:", "javascript:")
    site_host: Optional[str] = field(init=False, default=None)

    def __post_init__(self) -> None:
        host = None
        if self.site_url:
            try:
                parsed = urlparse(self.site_url if "//" in self.site_url else f"https://{self.site_url}")
                host = normalize_host(parsed.hostname or "") or None
            except ValueError:
                host = None
        object.__setattr__(self, "site_host", host)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        site_url: Optional[str] = None,
        silo_slug: Optional[str] = None,
    ) -> "LinkClassifier":
        settings = config.section("links")
        return cls(
            site_url=site_url,
            silo_slug=silo_slug,
            affiliate_hints=tuple(settings["affiliate_host_hints"]),
            ignored_prefixes=tuple(settings["ignored_prefixes"]),
        )

    def safe_href(self, href: str | None) -> Optional[str]:
        """Return the trimmed href, or ``None`` for empty, fragment and non-navigational targets."""

        trimmed = (href or "").strip()
        if not trimmed:
            return None
        lowered = trimmed.lower()
        if lowered.startswith("#"):
            return None
        if any(lowered.startswith(prefix) for prefix in self.ignored_prefixes):
            return None
        return trimmed

    def host_of(self, href: str) -> Optional[str]:
        if href.startswith("//"):
            href = f"https:{href}"
        elif not _HTTP_RE.match(href):
            return None
        try:
            host = urlparse(href).hostname
        except ValueError:
            return None
        return normalize_host(host) if host else None

    def site_path(self, href: str) -> Optional[str]:
        """Return the site-relative path of ``href`` or ``None`` when it leaves the site."""

        if href.startswith("//") or _HTTP_RE.match(href):
            host = self.host_of(href)
            if host is None or self.site_host is None or host != self.site_host:
                return None
            absolute = f"https:{href}" if href.startswith("//") else href
            return normalize_path(urlparse(absolute).path or "/")
        if _SCHEME_RE.match(href):
            return None
        return normalize_path(href)

    def is_affiliate(self, href: str) -> bool:
        """Hints ending in a dot match anywhere in the host; other hints name a whole host or its parent domain."""

        host = self.host_of(href)
        if not host:
            return False
        for hint in self.affiliate_hints:
            if hint.endswith("."):
                if hint in host:
                    return True
            elif host == hint or host.endswith(f".{hint}"):
                return True
        return False

    def is_silo_path(self, path: Optional[str]) -> bool:
        if not path or not self.silo_slug:
            return False
        prefix = "/" + self.silo_slug.strip("/")
        return path == prefix or path.startswith(f"{prefix}/")

    def classify(
        self,
        href: str | None,
        anchor_text: str,
        rel: str | None,
        target_blank: bool,
    ) -> Optional[ExtractedLink]:
        """Build a link record (without position) or ``None`` when the href is ignored."""

        safe = self.safe_href(href)
        if safe is None:
            return None
        path = self.site_path(safe)
        is_amazon = self.is_affiliate(safe)
        is_internal = path is not None and not is_amazon
        flags = parse_rel(rel)
        if is_amazon:
            flags = RelFlags(nofollow=flags.nofollow, sponsored=True, ugc=flags.ugc)
        elif is_internal:
            flags = RelFlags()
        return ExtractedLink(
            href=safe,
            anchor_text=anchor_text,
            is_internal=is_internal,
            is_silo_internal=is_internal and self.is_silo_path(path),
            is_amazon=is_amazon,
            rel=flags,
            target_blank=target_blank,
            position_bucket=POSITION_START,
            path=path if is_internal else None,
        )


def position_bucket(position: int, total: int, start_cutoff: float = 0.33, mid_cutoff: float = 0.66) -> str:
    if not total:
        return POSITION_START
    ratio = position / total
    if ratio < start_cutoff:
        return POSITION_START
    if ratio < mid_cutoff:
        return POSITION_MID
    return POSITION_END


class _AnchorText(TreeVisitor):
    def __init__(self) -> None:
        self.parts: List[str] = []
        self.has_image = False

    def visit_text(self, node: TextNode) -> None:
        self.parts.append(node.text)

    def visit_container(self, node: ContainerNode) -> None:
        if node.tag == "img":
            self.has_image = True
        super().visit_container(node)


class LinkExtractor(TreeVisitor):
    """Walks the content tree keeping a running plain-text offset."""

    def __init__(self, classifier: LinkClassifier, *, context_chars: int = 200, max_links: int = 200) -> None:
        self.classifier = classifier
        self.context_chars = context_chars
        self.max_links = max_links
        self.offset = 0
        self.links: List[ExtractedLink] = []
        self._blocks: List[ContainerNode] = []

    def visit_text(self, node: TextNode) -> None:
        self.offset += len(node.text)

    def visit_container(self, node: ContainerNode) -> None:
        is_block = node.tag in BLOCK_TAGS
        if is_block:
            self._blocks.append(node)
        super().visit_container(node)
        if is_block:
            self._blocks.pop()

    def visit_link(self, node: LinkNode) -> None:
        start = self.offset
        collector = _AnchorText()
        collector.visit_children(node.children)
        self.visit_children(node.children)
        self._record(node.href, "".join(collector.parts), node.rel, node.target_blank, start, collector.has_image)

    def visit_embed(self, node: EmbedNode) -> None:
        start = self.offset
        self.offset += len(node.label)
        self._record(node.href, node.label, node.rel, node.target_blank, start, False)

    def _record(self, href: str, text: str, rel: str, target_blank: bool, start: int, has_image: bool) -> None:
        if len(self.links) >= self.max_links:
            return
        link = self.classifier.classify(href, collapse_spaces(text), rel, target_blank)
        if link is None:
            return
        self.links.append(
            replace(link, position=start, end=self.offset, context=self._context(), has_image=has_image)
        )

    def _context(self) -> str:
        if not self._blocks:
            return ""
        return plain_text(self._blocks[-1])[: self.context_chars]


def extract_links(
    content: Any,
    *,
    site_url: Optional[str] = None,
    silo_slug: Optional[str] = None,
    config: EngineConfig | None = None,
) -> List[ExtractedLink]:
    """Return every link occurrence in markup or a structured document, in document order."""

    engine_config = config or load_config(None)
    settings = engine_config.section("links")
    classifier = LinkClassifier.from_config(engine_config, site_url=site_url, silo_slug=silo_slug)
    return extract_links_from_tree(
        to_tree(content),
        classifier,
        context_chars=settings["context_chars"],
        max_links=settings["max_links"],
        cutoffs=(settings["start_cutoff"], settings["mid_cutoff"]),
    )


def extract_links_from_tree(
    tree: Node,
    classifier: LinkClassifier,
    *,
    context_chars: int = 200,
    max_links: int = 200,
    cutoffs: Sequence[float] = (0.33, 0.66),
) -> List[ExtractedLink]:
    extractor = LinkExtractor(classifier, context_chars=context_chars, max_links=max_links)
    extractor.visit(tree)
    total = extractor.offset or 1
    start_cutoff, mid_cutoff = cutoffs
    return [
        _with_bucket(link, position_bucket(link.position, total, start_cutoff, mid_cutoff))
        for link in extractor.links
    ]


def _with_bucket(link: ExtractedLink, bucket: str) -> ExtractedLink:
    return replace(link, position_bucket=bucket)
