"""Shared fixtures and builders for engine tests."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

from contentintel.engine.config import load_config
from contentintel.engine.exceptions import UnknownColumnError
from contentintel.engine.types import CandidateDocument

SHARED_SENTENCE = (
    "cafeteira italiana prepara espresso encorpado usando pressao constante vapor quente "
    "atravessando camada compacta moagem fina durante minutos exatos"
)


@pytest.fixture()
def engine_config():
    """Provide a fresh copy of the default engine configuration."""

    return load_config(None)


def filler(prefix: str, count: int) -> str:
    """Words that never collide with each other or with another prefix."""

    return " ".join(f"termo{prefix}{index}" for index in range(count))


def make_candidate(
    id: str,
    text: str,
    *,
    title: str = "",
    slug: str = "",
    headings: Iterable[str] = (),
    target_keyword: str | None = None,
    focus_keyword: str | None = None,
) -> CandidateDocument:
    return CandidateDocument(
        id=id,
        title=title or f"Post {id}",
        slug=slug or f"post-{id}",
        raw_text=text,
        headings=tuple(headings),
        target_keyword=target_keyword,
        focus_keyword=focus_keyword,
    )


class MemoryStore:
    """In-memory link occurrence store that can reject a set of columns."""

    def __init__(self, rows: Sequence[Dict[str, Any]] = (), unknown_columns: Iterable[str] = ()) -> None:
        self.rows: Dict[Any, Dict[str, Any]] = {row["id"]: dict(row) for row in rows}
        self.unknown_columns = set(unknown_columns)
        self.next_id = max(self.rows, default=0) + 1
        self.deleted: List[Any] = []
        self.inserted: List[Any] = []
        self.updated: List[Any] = []
        self.upsert_calls = 0

    def load_existing(self, source_doc_id: str) -> List[Dict[str, Any]]:
        return [
            dict(row)
            for row_id, row in sorted(self.rows.items())
            if str(row.get("source_post_id")) == str(source_doc_id)
        ]

    def delete_by_ids(self, ids: Sequence[Any]) -> None:
        for row_id in ids:
            self.rows.pop(row_id, None)
            self.deleted.append(row_id)

    def upsert_by_key(self, rows: Sequence[Dict[str, Any]]) -> List[Any]:
        self.upsert_calls += 1
        for row in rows:
            for column in row:
                if column in self.unknown_columns:
                    raise UnknownColumnError(column)
        ids: List[Any] = []
        for row in rows:
            row_id: Optional[Any] = row.get("id")
            if row_id is None:
                row_id = self.next_id
                self.next_id += 1
                self.inserted.append(row_id)
            else:
                self.updated.append(row_id)
            self.rows[row_id] = {**row, "id": row_id}
            ids.append(row_id)
        return ids
