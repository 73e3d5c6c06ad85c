"""Django-side services for the content intelligence engine.

This module wires the pure engine in :mod:`contentintel.engine` to the
project database:

* :func:`engine_config` loads the engine thresholds, applying the YAML file
  named by ``settings.CONTENTINTEL_ENGINE_CONFIG`` when present.
* :class:`DjangoLinkOccurrenceStore` implements the link occurrence store on
  top of the ``LinkOccurrence`` table using raw SQL, so that it keeps working
  against databases whose table lags behind the model.
* :func:`sync_link_occurrences` extracts the links of a post and reconciles
  them with what was stored for it before.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from django.conf import settings
from django.db import DatabaseError, connection, transaction
from django.utils import timezone

from .engine.config import EngineConfig, load_config
from .engine.exceptions import UnknownColumnError
from .engine.links import extract_links
from .engine.reconcile import ColumnPruningPolicy, LinkOccurrenceStore, build_records, reconcile_link_occurrences
from .engine.types import ReconcileResult
from .models import LinkOccurrence

logger = logging.getLogger(__name__)

_MISSING_COLUMN_PATTERNS = (
    re.compile(r'column "?([\w.]+)"? (?:of relation "?[\w.]+"? )?does not exist', re.IGNORECASE),
    re.compile(r"could not find the '([\w.]+)' column", re.IGNORECASE),
    re.compile(r"missing column:? ['\"]?([\w.]+)", re.IGNORECASE),
    re.compile(r"no such column:? ['\"]?([\w.]+)", re.IGNORECASE),
    re.compile(r"has no column named ['\"]?([\w.]+)", re.IGNORECASE),
    re.compile(r"unknown column '([\w.]+)'", re.IGNORECASE),
)


def missing_column_from_error(message: str) -> Optional[str]:
    """Return the column a database error complains about, if any."""

    for pattern in _MISSING_COLUMN_PATTERNS:
        match = pattern.search(message or '')
        if match:
            return match.group(1).split('.')[-1]
    return None


def engine_config() -> EngineConfig:
    return load_config(getattr(settings, 'CONTENTINTEL_ENGINE_CONFIG', None))


class DjangoLinkOccurrenceStore:
    """Link occurrence store backed by the ``LinkOccurrence`` table."""

    timestamp_columns = ('created_at', 'updated_at')

    def __init__(self, silo_id: Optional[str] = None, table: Optional[str] = None) -> None:
        self.silo_id = silo_id
        self.table = table or LinkOccurrence._meta.db_table
        self._table_columns: Optional[set] = None

    def _quote(self, name: str) -> str:
        return connection.ops.quote_name(name)

    def _columns_in_table(self) -> set:
        if self._table_columns is None:
            with connection.cursor() as cursor:
                description = connection.introspection.get_table_description(cursor, self.table)
            self._table_columns = {column.name for column in description}
        return self._table_columns

    def _execute(self, sql: str, params: Sequence[Any], *, returning: bool = False) -> Any:
        try:
            with transaction.atomic():
                with connection.cursor() as cursor:
                    cursor.execute(sql, params)
                    if returning:
                        return cursor.fetchone()[0]
                    return cursor.lastrowid
        except DatabaseError as exc:
            column = missing_column_from_error(str(exc))
            if column:
                raise UnknownColumnError(column, str(exc)) from exc
            raise

    def load_existing(self, source_doc_id: str) -> List[Dict[str, Any]]:
        sql = f'SELECT * FROM {self._quote(self.table)} WHERE {self._quote("source_post_id")} = %s'
        params: List[Any] = [str(source_doc_id)]
        if self.silo_id is not None:
            sql += f' AND {self._quote("silo_id")} = %s'
            params.append(self.silo_id)
        sql += f' ORDER BY {self._quote("id")}'
        with connection.cursor() as cursor:
            cursor.execute(sql, params)
            names = [column[0] for column in cursor.description]
            return [dict(zip(names, row)) for row in cursor.fetchall()]

    def delete_by_ids(self, ids: Sequence[Any]) -> None:
        if not ids:
            return
        placeholders = ', '.join(['%s'] * len(ids))
        self._execute(
            f'DELETE FROM {self._quote(self.table)} WHERE {self._quote("id")} IN ({placeholders})',
            list(ids),
        )

    def upsert_by_key(self, rows: Sequence[Mapping[str, Any]]) -> List[Any]:
        ids: List[Any] = []
        for row in rows:
            values = {key: value for key, value in row.items() if key != 'id'}
            if row.get('id') is not None:
                self._update(row['id'], values)
                ids.append(row['id'])
            else:
                ids.append(self._insert(values))
        return ids

    def _timestamps(self, *names: str) -> Dict[str, Any]:
        now = connection.ops.adapt_datetimefield_value(timezone.now())
        present = self._columns_in_table()
        return {name: now for name in names if name in present}

    def _update(self, row_id: Any, values: Mapping[str, Any]) -> None:
        values = {**values, **self._timestamps('updated_at')}
        assignments = ', '.join(f'{self._quote(column)} = %s' for column in values)
        self._execute(
            f'UPDATE {self._quote(self.table)} SET {assignments} WHERE {self._quote("id")} = %s',
            [*values.values(), row_id],
        )

    def _insert(self, values: Mapping[str, Any]) -> Any:
        values = {**values, **self._timestamps(*self.timestamp_columns)}
        columns = ', '.join(self._quote(column) for column in values)
        placeholders = ', '.join(['%s'] * len(values))
        sql = f'INSERT INTO {self._quote(self.table)} ({columns}) VALUES ({placeholders})'
        returning = connection.features.can_return_columns_from_insert
        if returning:
            sql += f' RETURNING {self._quote("id")}'
        return self._execute(sql, list(values.values()), returning=returning)


def sync_link_occurrences(
    silo_id: Optional[str],
    source_post_id: str,
    content: Any,
    *,
    site_url: Optional[str] = None,
    silo_slug: Optional[str] = None,
    slug_map: Optional[Mapping[str, str]] = None,
    store: Optional[LinkOccurrenceStore] = None,
    policy: Optional[ColumnPruningPolicy] = None,
    config: Optional[EngineConfig] = None,
) -> ReconcileResult:
    """Extract the links of ``content`` and persist them for ``source_post_id``.

    The reconciliation runs in one transaction: if any write fails, the rows
    stored for the post are left as they were.
    """

    config = config or engine_config()
    links = extract_links(content, site_url=site_url, silo_slug=silo_slug, config=config)
    records = build_records(links, source_post_id, silo_id=silo_id, slug_map=slug_map, config=config)
    store = store or DjangoLinkOccurrenceStore(silo_id=silo_id)
    with transaction.atomic():
        result = reconcile_link_occurrences(store, source_post_id, records, policy)
    logger.debug('Synced %s link occurrences for post %s', len(result.records), source_post_id)
    return result
