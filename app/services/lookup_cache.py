from __future__ import annotations

import asyncio
import logging
from threading import Lock
from typing import Any, Iterable, Protocol

from app.core.config import settings

_LOG = logging.getLogger("app.lookup")

LookupKey = tuple[str, str, str, tuple[str, ...], str, str]


class LookupFetcher(Protocol):
    def __call__(
        self,
        table: str,
        value_column: str,
        label_column: str,
        display_columns: list[str],
        filter_column: str | None = None,
        filter_value: str | None = None,
    ) -> list[dict[str, Any]]:
        ...


def lookup_key(
    table: str,
    value_column: str,
    label_column: str,
    display_columns: Iterable[str] = (),
    filter_column: str | None = None,
    filter_value: str | None = None,
) -> LookupKey:
    columns = tuple(sorted({str(c).strip() for c in display_columns if str(c or "").strip()}))
    return (
        str(table or "").strip(),
        str(value_column or "").strip(),
        str(label_column or "").strip(),
        columns,
        str(filter_column or "").strip(),
        "" if filter_value is None else str(filter_value).strip(),
    )


class LookupCache:
    """Reference-table rows memoized for the lifetime of one form session.

    Entries are never invalidated; a new session builds a new cache. Concurrent
    misses for the same key may both fetch, the last write wins.
    """

    def __init__(self, fetcher: LookupFetcher | None = None, *, limit: int | None = None):
        self._fetcher = fetcher
        self._limit = max(int(limit if limit is not None else settings.LOOKUP_ROW_LIMIT), 0)
        self._rows: dict[LookupKey, list[dict[str, Any]]] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def cached(self, key: LookupKey) -> list[dict[str, Any]] | None:
        with self._lock:
            rows = self._rows.get(key)
        return list(rows) if rows is not None else None

    def _fetch(self, key: LookupKey) -> list[dict[str, Any]] | None:
        table, value_column, label_column, display_columns, filter_column, filter_value = key
        if self._fetcher is None or not table:
            return []
        try:
            rows = self._fetcher(
                table,
                value_column,
                label_column,
                list(display_columns),
                filter_column or None,
                filter_value or None,
            )
        except Exception:
            _LOG.warning("lookup fetch failed table=%s; using empty option list", table, exc_info=True)
            return None
        return [dict(row) for row in (rows or [])[: self._limit]]

    def _store(self, key: LookupKey, rows: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
        if rows is None:
            return []
        with self._lock:
            self._rows[key] = rows
        return list(rows)

    def get_rows(
        self,
        table: str,
        value_column: str,
        label_column: str,
        display_columns: Iterable[str] = (),
        filter_column: str | None = None,
        filter_value: str | None = None,
    ) -> list[dict[str, Any]]:
        key = lookup_key(table, value_column, label_column, display_columns, filter_column, filter_value)
        rows = self.cached(key)
        if rows is not None:
            return rows
        return self._store(key, self._fetch(key))

    async def get_rows_async(
        self,
        table: str,
        value_column: str,
        label_column: str,
        display_columns: Iterable[str] = (),
        filter_column: str | None = None,
        filter_value: str | None = None,
    ) -> list[dict[str, Any]]:
        key = lookup_key(table, value_column, label_column, display_columns, filter_column, filter_value)
        rows = self.cached(key)
        if rows is not None:
            return rows
        # A cancelled caller never reaches _store, the fetched rows are dropped.
        fetched = await asyncio.to_thread(self._fetch, key)
        return self._store(key, fetched)
