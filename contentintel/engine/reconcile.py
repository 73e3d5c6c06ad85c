"""Identity-preserving persistence of extracted link occurrences."""

from __future__ import annotations

import hashlib
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, replace
from typing import Any, Deque, Dict, FrozenSet, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from .config import EngineConfig, load_config
from .exceptions import PersistenceError, UnknownColumnError
from .types import ExtractedLink, LinkOccurrenceRecord, ReconcileResult

logger = logging.getLogger(__name__)

EMPTY_ANCHOR = "[Sem texto]"
IMAGE_ANCHOR = "[Imagem]"

REQUIRED_COLUMNS: FrozenSet[str] = frozenset({"id", "source_post_id", "href_normalized", "anchor_text"})
OPTIONAL_COLUMNS: FrozenSet[str] = frozenset(
    {
        "silo_id",
        "target_post_id",
        "context_snippet",
        "start_index",
        "end_index",
        "occurrence_key",
        "position_bucket",
        "link_type",
        "is_nofollow",
        "is_sponsored",
        "is_ugc",
        "is_blank",
        "is_silo_internal",
    }
)


class LinkOccurrenceStore(Protocol):
    """Persistence collaborator for link occurrences of one source document."""

    def load_existing(self, source_doc_id: str) -> List[Dict[str, Any]]:
        ...

    def delete_by_ids(self, ids: Sequence[Any]) -> None:
        ...

    def upsert_by_key(self, rows: Sequence[Dict[str, Any]]) -> List[Any]:
        """Update rows carrying an ``id``, insert the rest; return ids in input order."""
        ...


def occurrence_key(anchor_text: str, href: str, context: str = "") -> str:
    return hashlib.sha1(f"{anchor_text}|{href}|{context}".encode("utf-8")).hexdigest()


def normalize_slug(value: str) -> str:
    return value.strip().strip("/").lower()


def resolve_target(path: Optional[str], slug_map: Mapping[str, str]) -> Optional[str]:
    """Find the document a site path points at: full path first, then its last segment."""

    if not path or not slug_map:
        return None
    normalized = normalize_slug(path)
    if not normalized:
        return None
    target = slug_map.get(normalized)
    if target is None:
        target = slug_map.get(normalized.rsplit("/", 1)[-1])
    return target


def build_slug_map(documents: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """Map normalized slugs to document ids from ``(id, slug)`` pairs."""

    slug_map: Dict[str, str] = {}
    for doc_id, slug in documents:
        if slug:
            slug_map[normalize_slug(slug)] = str(doc_id)
    return slug_map


def build_records(
    links: Sequence[ExtractedLink],
    source_doc_id: str,
    *,
    silo_id: Optional[str] = None,
    slug_map: Optional[Mapping[str, str]] = None,
    config: EngineConfig | None = None,
) -> List[LinkOccurrenceRecord]:
    settings = (config or load_config(None)).section("links")
    anchor_chars = settings["anchor_chars"]
    href_chars = settings["href_chars"]
    context_chars = settings["context_chars"]

    records: List[LinkOccurrenceRecord] = []
    for link in links:
        anchor = link.anchor_text.strip()
        if not anchor:
            anchor = IMAGE_ANCHOR if link.has_image else EMPTY_ANCHOR
        anchor = anchor[:anchor_chars]
        href = link.href[:href_chars]
        context = link.context[:context_chars]
        target = resolve_target(link.path, slug_map or {}) if link.is_internal else None
        records.append(
            LinkOccurrenceRecord(
                occurrence_key=occurrence_key(anchor, href, context),
                source_doc_id=str(source_doc_id),
                href=href,
                anchor_text=anchor,
                link_type=link.link_type,
                rel=link.rel,
                target_blank=link.target_blank,
                position_bucket=link.position_bucket,
                is_silo_internal=link.is_silo_internal,
                target_doc_id=target,
                context=context,
                start_index=link.position,
                end_index=link.end,
                silo_id=silo_id,
            )
        )
    return records


@dataclass(frozen=True)
class ColumnPruningPolicy:
    """Which columns may be dropped from a write when the store rejects them."""

    droppable: FrozenSet[str] = OPTIONAL_COLUMNS

    def can_drop(self, column: str) -> bool:
        return column in self.droppable and column not in REQUIRED_COLUMNS

    def prune(self, rows: Sequence[Dict[str, Any]], column: str) -> List[Dict[str, Any]]:
        return [{key: value for key, value in row.items() if key != column} for row in rows]


def _columns(rows: Sequence[Mapping[str, Any]]) -> set:
    columns: set = set()
    for row in rows:
        columns.update(row.keys())
    return columns


def upsert_with_pruning(
    store: LinkOccurrenceStore,
    rows: Sequence[Dict[str, Any]],
    policy: ColumnPruningPolicy,
) -> Tuple[List[Any], List[str]]:
    """Write rows, dropping each column the store reports as unknown and retrying."""

    payload = [dict(row) for row in rows]
    max_attempts = len(_columns(payload))
    pruned: List[str] = []
    while True:
        try:
            return store.upsert_by_key(payload), pruned
        except UnknownColumnError as exc:
            column = exc.column
            if len(pruned) >= max_attempts:
                raise PersistenceError(f"Gave up after pruning {len(pruned)} columns") from exc
            if column not in _columns(payload) or not policy.can_drop(column):
                raise PersistenceError(f"Store rejected column '{column}' which cannot be pruned") from exc
            logger.info("Store has no column %s; retrying link occurrence write without it", column)
            payload = policy.prune(payload, column)
            pruned.append(column)


def stored_match_key(row: Mapping[str, Any]) -> str:
    """Key for a stored row, composed from raw columns when no key column is present."""

    stored = row.get("occurrence_key")
    if stored:
        return str(stored)
    return occurrence_key(
        str(row.get("anchor_text") or ""),
        str(row.get("href_normalized") or ""),
        str(row.get("context_snippet") or "") if "context_snippet" in row else "",
    )


def reconcile_link_occurrences(
    store: LinkOccurrenceStore,
    source_doc_id: str,
    records: Sequence[LinkOccurrenceRecord],
    policy: ColumnPruningPolicy | None = None,
) -> ReconcileResult:
    """Match fresh records to stored rows by occurrence key and persist the difference.

    Stored rows are consumed first-in first-out per key, so repeated identical
    links keep their own identities. A matched row donates its id, and its
    resolved target when the fresh record has none. Unmatched records are
    inserted before unmatched stored rows are deleted.
    """

    existing = store.load_existing(source_doc_id)
    queues: Dict[str, Deque[Mapping[str, Any]]] = defaultdict(deque)
    for row in existing:
        queues[stored_match_key(row)].append(row)

    merged: List[LinkOccurrenceRecord] = []
    kept = 0
    for record in records:
        match = None
        for key in (record.occurrence_key, occurrence_key(record.anchor_text, record.href, "")):
            queue = queues.get(key)
            if queue:
                match = queue.popleft()
                break
        if match is None:
            merged.append(record)
            continue
        kept += 1
        target = record.target_doc_id
        if target is None and match.get("target_post_id") is not None:
            target = str(match["target_post_id"])
        merged.append(replace(record, id=match.get("id"), target_doc_id=target))

    pruned: List[str] = []
    if merged:
        ids, pruned = upsert_with_pruning(store, [record.to_row() for record in merged], policy or ColumnPruningPolicy())
        merged = [
            record if record.id is not None or index >= len(ids) else replace(record, id=ids[index])
            for index, record in enumerate(merged)
        ]

    stale_ids = [row.get("id") for queue in queues.values() for row in queue if row.get("id") is not None]
    if stale_ids:
        store.delete_by_ids(stale_ids)

    inserted = len(merged) - kept
    logger.info(
        "Reconciled links for %s: %s kept, %s inserted, %s deleted",
        source_doc_id,
        kept,
        inserted,
        len(stale_ids),
    )
    return ReconcileResult(
        records=merged,
        kept=kept,
        inserted=inserted,
        deleted=len(stale_ids),
        pruned_columns=pruned,
    )
