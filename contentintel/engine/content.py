"""Unified content tree for serialized markup and structured editor documents.

Both input shapes converge on the same small set of node types before any
analysis runs:

* :class:`TextNode` - a run of plain text.
* :class:`LinkNode` - an anchor (``<a>`` or a text run carrying a link mark)
  whose children hold the anchor text.
* :class:`EmbedNode` - a link-bearing leaf of the structured document
  (mention, affiliate CTA, product card, CTA button) with a label.
* :class:`ContainerNode` - anything else; always walked for children.

:class:`TreeVisitor` implements the single depth-first walk shared by the
plain-text, heading and link extractors.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup, NavigableString, Tag  # type: ignore
from bs4.element import PreformattedString  # type: ignore

from .text import collapse_spaces
from .types import CandidateDocument

SKIPPED_TAGS = {"script", "style", "noscript", "template"}
HEADING_TAGS = {"h1", "h2", "h3", "h4", "heading"}
BLOCK_TAGS = {
    "p", "li", "blockquote", "td", "th", "dd", "dt", "figcaption", "caption",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "paragraph", "heading", "listItem", "tableCell", "tableHeader",
}

AFFILIATE_REL = "nofollow sponsored"


@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class LinkNode:
    href: str
    rel: str
    target_blank: bool
    children: Tuple["Node", ...]


@dataclass(frozen=True)
class EmbedNode:
    kind: str
    href: str
    label: str
    rel: str
    target_blank: bool


@dataclass(frozen=True)
class ContainerNode:
    tag: str
    children: Tuple["Node", ...] = ()


Node = Union[TextNode, LinkNode, EmbedNode, ContainerNode]

EMPTY_TREE = ContainerNode(tag="root")


class TreeVisitor:
    """Depth-first visitor over the unified content tree."""

    def visit(self, node: Node) -> None:
        if isinstance(node, TextNode):
            self.visit_text(node)
        elif isinstance(node, LinkNode):
            self.visit_link(node)
        elif isinstance(node, EmbedNode):
            self.visit_embed(node)
        else:
            self.visit_container(node)

    def visit_children(self, children: Sequence[Node]) -> None:
        for child in children:
            self.visit(child)

    def visit_text(self, node: TextNode) -> None:
        pass

    def visit_link(self, node: LinkNode) -> None:
        self.visit_children(node.children)

    def visit_embed(self, node: EmbedNode) -> None:
        pass

    def visit_container(self, node: ContainerNode) -> None:
        self.visit_children(node.children)


class _TextCollector(TreeVisitor):
    def __init__(self) -> None:
        self.parts: List[str] = []

    def visit_text(self, node: TextNode) -> None:
        self.parts.append(node.text)


class _HeadingCollector(TreeVisitor):
    def __init__(self) -> None:
        self.headings: List[str] = []

    def visit_container(self, node: ContainerNode) -> None:
        if node.tag in HEADING_TAGS:
            text = plain_text(node)
            if text:
                self.headings.append(text)
        super().visit_container(node)


def plain_text(node: Node) -> str:
    """Return the whitespace-collapsed text of ``node`` with segments space-joined."""

    collector = _TextCollector()
    collector.visit(node)
    return collapse_spaces(" ".join(collector.parts))


def headings(node: Node) -> List[str]:
    collector = _HeadingCollector()
    collector.visit(node)
    return collector.headings


def parse_html(html: str | None) -> ContainerNode:
    """Convert serialized markup into the unified tree."""

    if not html:
        return EMPTY_TREE
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception:
        # Fallback to html.parser if lxml isn't installed
        soup = BeautifulSoup(html, "html.parser")
    return ContainerNode(tag="root", children=_html_children(soup))


def _html_children(tag: Tag) -> Tuple[Node, ...]:
    children: List[Node] = []
    for child in tag.children:
        if isinstance(child, PreformattedString):
            continue
        if isinstance(child, NavigableString):
            if str(child):
                children.append(TextNode(text=str(child)))
            continue
        if not isinstance(child, Tag):
            continue
        name = (child.name or "").lower()
        if name in SKIPPED_TAGS:
            continue
        if name == "a":
            children.append(
                LinkNode(
                    href=_attr_text(child.get("href")),
                    rel=_attr_text(child.get("rel")),
                    target_blank=_attr_text(child.get("target")) == "_blank",
                    children=_html_children(child),
                )
            )
            continue
        children.append(ContainerNode(tag=name, children=_html_children(child)))
    return tuple(children)


def _attr_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value)
    return str(value)


def parse_document(doc: Any) -> ContainerNode:
    """Convert a structured editor document (nested ``type``/``content`` dicts) into the unified tree."""

    node = _doc_node(doc)
    if node is None:
        return EMPTY_TREE
    if isinstance(node, ContainerNode):
        return node
    return ContainerNode(tag="root", children=(node,))


def _doc_node(node: Any) -> Optional[Node]:
    if not isinstance(node, Mapping):
        return None
    node_type = str(node.get("type") or "")
    attrs = node.get("attrs") if isinstance(node.get("attrs"), Mapping) else {}

    if node_type == "text":
        text = node.get("text") if isinstance(node.get("text"), str) else ""
        link_mark = _link_mark(node.get("marks"))
        if link_mark is None:
            return TextNode(text=text)
        mark_attrs = link_mark.get("attrs") if isinstance(link_mark.get("attrs"), Mapping) else {}
        return LinkNode(
            href=_string_attr(mark_attrs, "href"),
            rel=_string_attr(mark_attrs, "rel"),
            target_blank=mark_attrs.get("target") == "_blank",
            children=(TextNode(text=text),),
        )

    if node_type == "mention":
        label = attrs.get("label") if isinstance(attrs.get("label"), str) else attrs.get("text")
        return EmbedNode(
            kind="mention",
            href=_string_attr(attrs, "href"),
            label=label if isinstance(label, str) else "",
            rel="",
            target_blank=False,
        )

    if node_type == "affiliateCta":
        return EmbedNode(
            kind="cta",
            href=_string_attr(attrs, "url") or _string_attr(attrs, "href"),
            label=_string_attr(attrs, "label") or "CTA",
            rel=AFFILIATE_REL,
            target_blank=True,
        )

    if node_type in {"affiliateProductCard", "affiliateProduct"}:
        return EmbedNode(
            kind="product",
            href=_string_attr(attrs, "url") or _string_attr(attrs, "href"),
            label=_string_attr(attrs, "title") or "Produto",
            rel=AFFILIATE_REL,
            target_blank=True,
        )

    if node_type == "cta_button":
        return EmbedNode(
            kind="button",
            href=_string_attr(attrs, "href") or _string_attr(attrs, "url"),
            label=_string_attr(attrs, "label") or "CTA",
            rel=_string_attr(attrs, "rel"),
            target_blank=attrs.get("target") == "_blank",
        )

    raw_children = node.get("content")
    children: List[Node] = []
    if isinstance(raw_children, list):
        for raw_child in raw_children:
            child = _doc_node(raw_child)
            if child is not None:
                children.append(child)
    return ContainerNode(tag=node_type or "node", children=_merge_link_runs(children))


def _link_mark(marks: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(marks, list):
        return None
    for mark in marks:
        if isinstance(mark, Mapping) and mark.get("type") == "link":
            return mark
    return None


def _string_attr(attrs: Mapping[str, Any], key: str) -> str:
    value = attrs.get(key)
    return value if isinstance(value, str) else ""


def _merge_link_runs(children: List[Node]) -> Tuple[Node, ...]:
    """Merge adjacent text runs that carry the same link into one anchor."""

    merged: List[Node] = []
    for child in children:
        previous = merged[-1] if merged else None
        if (
            isinstance(child, LinkNode)
            and isinstance(previous, LinkNode)
            and _run_key(previous) == _run_key(child)
        ):
            merged[-1] = LinkNode(
                href=previous.href,
                rel=previous.rel,
                target_blank=previous.target_blank,
                children=previous.children + child.children,
            )
            continue
        merged.append(child)
    return tuple(merged)


def _run_key(node: LinkNode) -> Tuple[str, bool, frozenset]:
    rel_tokens = frozenset(token for token in re.split(r"\s+", node.rel.lower()) if token)
    return node.href.strip(), node.target_blank, rel_tokens & {"nofollow", "sponsored", "ugc"}


def to_tree(content: Any) -> ContainerNode:
    """Build the unified tree from markup (``str``) or a structured document."""

    if not content:
        return EMPTY_TREE
    if isinstance(content, str):
        return parse_html(content)
    return parse_document(content)


def extract_plain_text(html: str | None = None, doc: Any = None) -> str:
    """Return the plain text of the markup, falling back to the structured document."""

    text = plain_text(parse_html(html)) if isinstance(html, str) else ""
    if text:
        return text
    return plain_text(parse_document(doc))


def build_candidate(
    id: str,
    title: str,
    slug: str,
    *,
    text: str | None = None,
    html: str | None = None,
    doc: Any = None,
    target_keyword: str | None = None,
    focus_keyword: str | None = None,
) -> CandidateDocument:
    """Derive plain text and headings once for a candidate supplied by the corpus."""

    html_tree = parse_html(html) if isinstance(html, str) and html.strip() else None
    tree = html_tree if html_tree is not None and plain_text(html_tree) else parse_document(doc)
    raw_text = (text or "").strip() or plain_text(tree)
    return CandidateDocument(
        id=str(id),
        title=title or "",
        slug=slug or "",
        raw_text=raw_text,
        headings=tuple(headings(tree)),
        target_keyword=target_keyword,
        focus_keyword=focus_keyword,
    )
