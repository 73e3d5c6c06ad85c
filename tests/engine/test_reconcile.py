"""Identity-preserving reconciliation of link occurrences."""

from __future__ import annotations

import pytest

from contentintel.engine.exceptions import PersistenceError, UnknownColumnError
from contentintel.engine.links import extract_links
from contentintel.engine.reconcile import (
    EMPTY_ANCHOR,
    IMAGE_ANCHOR,
    ColumnPruningPolicy,
    build_records,
    build_slug_map,
    occurrence_key,
    reconcile_link_occurrences,
    resolve_target,
    stored_match_key,
)
from contentintel.engine.types import LINK_INTERNAL

from .conftest import MemoryStore

SITE = "https://blog.example.com"


def paragraphs(*hrefs: str) -> str:
    return "".join(f'<p>Leia <a href="{href}">{href.strip("/")}</a> agora.</p>' for href in hrefs)


def records_for(html, engine_config, slug_map=None, source="post-1"):
    links = extract_links(html, site_url=SITE, silo_slug="cafe", config=engine_config)
    return build_records(links, source, silo_id="silo-1", slug_map=slug_map, config=engine_config)


def test_build_records_resolves_targets_and_placeholders(engine_config):
    slug_map = build_slug_map([(10, "/cafe/moedor/"), (11, "guia")])
    html = (
        '<p><a href="/cafe/moedor">moedor</a> <a href="/outra/pasta/guia"> </a>'
        '<a href="https://fora.com/x"><img src="x.png"></a></p>'
    )
    records = records_for(html, engine_config, slug_map=slug_map)

    assert [record.target_doc_id for record in records] == ["10", "11", None]
    assert [record.anchor_text for record in records] == ["moedor", EMPTY_ANCHOR, IMAGE_ANCHOR]
    assert records[0].link_type == LINK_INTERNAL
    assert records[0].silo_id == "silo-1"
    assert records[0].occurrence_key == occurrence_key("moedor", "/cafe/moedor", records[0].context)
    assert records[0].start_index == 0
    assert records[0].end_index == 6


def test_resolve_target_falls_back_to_last_segment():
    slug_map = {"cafe/moedor": "1", "guia": "2"}
    assert resolve_target("/cafe/moedor", slug_map) == "1"
    assert resolve_target("/blog/guia", slug_map) == "2"
    assert resolve_target("/nada", slug_map) is None
    assert resolve_target(None, slug_map) is None


def test_records_are_capped(engine_config):
    long_href = "/" + "x" * 600
    records = records_for(f'<p><a href="{long_href}">{"a" * 300}</a></p>', engine_config)
    assert len(records[0].href) == 500
    assert len(records[0].anchor_text) == 255
    assert len(records[0].context) == 200


def test_second_pass_over_unchanged_content_keeps_identities(engine_config):
    store = MemoryStore()
    html = paragraphs("/cafe/a", "/cafe/b", "https://fora.com/c")

    first = reconcile_link_occurrences(store, "post-1", records_for(html, engine_config))
    assert (first.kept, first.inserted, first.deleted) == (0, 3, 0)
    first_ids = [record.id for record in first.records]
    assert first_ids == [1, 2, 3]

    second = reconcile_link_occurrences(store, "post-1", records_for(html, engine_config))
    assert (second.kept, second.inserted, second.deleted) == (3, 0, 0)
    assert [record.id for record in second.records] == first_ids
    assert store.deleted == []
    assert sorted(store.rows) == first_ids


def test_churn_deletes_one_and_inserts_one(engine_config):
    store = MemoryStore()
    first = reconcile_link_occurrences(
        store, "post-1", records_for(paragraphs("/cafe/a", "/cafe/b", "/cafe/c"), engine_config)
    )
    ids = {record.href: record.id for record in first.records}

    second = reconcile_link_occurrences(
        store, "post-1", records_for(paragraphs("/cafe/a", "/cafe/c", "/cafe/d"), engine_config)
    )

    assert (second.kept, second.inserted, second.deleted) == (2, 1, 1)
    assert store.deleted == [ids["/cafe/b"]]
    new_ids = {record.href: record.id for record in second.records}
    assert new_ids["/cafe/a"] == ids["/cafe/a"]
    assert new_ids["/cafe/c"] == ids["/cafe/c"]
    assert new_ids["/cafe/d"] not in ids.values()


def test_identical_links_match_first_in_first_out(engine_config):
    store = MemoryStore()
    html = paragraphs("/cafe/a", "/cafe/a")
    first = reconcile_link_occurrences(store, "post-1", records_for(html, engine_config))
    assert first.records[0].occurrence_key == first.records[1].occurrence_key

    second = reconcile_link_occurrences(store, "post-1", records_for(paragraphs("/cafe/a"), engine_config))
    assert [record.id for record in second.records] == [first.records[0].id]
    assert store.deleted == [first.records[1].id]


def test_matched_row_donates_previous_target(engine_config):
    records = records_for(paragraphs("/cafe/sumiu"), engine_config)
    stored = {**records[0].to_row(), "id": 7, "target_post_id": "99"}
    store = MemoryStore([stored])

    result = reconcile_link_occurrences(store, "post-1", records)

    assert result.records[0].id == 7
    assert result.records[0].target_doc_id == "99"


def test_rows_without_key_column_are_matched_from_raw_columns(engine_config):
    records = records_for(paragraphs("/cafe/a", "/cafe/b"), engine_config)
    with_context = {**records[0].to_row(), "id": 1}
    del with_context["occurrence_key"]
    without_context = {**records[1].to_row(), "id": 2}
    del without_context["occurrence_key"]
    del without_context["context_snippet"]
    store = MemoryStore([with_context, without_context])

    assert stored_match_key(with_context) == records[0].occurrence_key
    result = reconcile_link_occurrences(store, "post-1", records)

    assert (result.kept, result.inserted, result.deleted) == (2, 0, 0)
    assert [record.id for record in result.records] == [1, 2]


def test_unknown_columns_are_pruned_and_retried(engine_config, caplog):
    caplog.set_level("INFO", logger="contentintel")
    store = MemoryStore(unknown_columns={"occurrence_key", "is_silo_internal"})

    result = reconcile_link_occurrences(store, "post-1", records_for(paragraphs("/cafe/a"), engine_config))

    assert result.pruned_columns == ["occurrence_key", "is_silo_internal"]
    assert store.upsert_calls == 3
    row = store.rows[result.records[0].id]
    assert "occurrence_key" not in row
    assert "is_silo_internal" not in row
    assert "occurrence_key" in caplog.text


def test_required_column_cannot_be_pruned(engine_config):
    store = MemoryStore(unknown_columns={"anchor_text"})
    with pytest.raises(PersistenceError):
        reconcile_link_occurrences(store, "post-1", records_for(paragraphs("/cafe/a"), engine_config))


def test_policy_limits_droppable_columns(engine_config):
    store = MemoryStore(unknown_columns={"is_ugc"})
    policy = ColumnPruningPolicy(droppable=frozenset({"occurrence_key"}))
    with pytest.raises(PersistenceError):
        reconcile_link_occurrences(store, "post-1", records_for(paragraphs("/cafe/a"), engine_config), policy)


def test_unknown_column_outside_payload_is_not_retried(engine_config):
    class GhostStore(MemoryStore):
        def upsert_by_key(self, rows):
            self.upsert_calls += 1
            raise UnknownColumnError("ghost")

    store = GhostStore()
    with pytest.raises(PersistenceError):
        reconcile_link_occurrences(store, "post-1", records_for(paragraphs("/cafe/a"), engine_config))
    assert store.upsert_calls == 1


def test_empty_content_deletes_everything(engine_config):
    store = MemoryStore()
    reconcile_link_occurrences(store, "post-1", records_for(paragraphs("/cafe/a", "/cafe/b"), engine_config))

    result = reconcile_link_occurrences(store, "post-1", records_for("", engine_config))

    assert (result.kept, result.inserted, result.deleted) == (0, 0, 2)
    assert store.rows == {}


def test_failed_upsert_keeps_stale_rows(engine_config):
    store = MemoryStore()
    reconcile_link_occurrences(store, "post-1", records_for(paragraphs("/cafe/a", "/cafe/b"), engine_config))
    before = {row_id: dict(row) for row_id, row in store.rows.items()}

    store.unknown_columns = {"anchor_text"}
    with pytest.raises(PersistenceError):
        reconcile_link_occurrences(store, "post-1", records_for(paragraphs("/cafe/a", "/cafe/c"), engine_config))

    assert store.deleted == []
    assert store.rows == before
