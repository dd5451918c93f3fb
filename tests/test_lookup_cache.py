import asyncio
import os
import threading
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.services.lookup_cache import LookupCache, lookup_key


class RecordingFetcher:
    def __init__(self, rows=None, error=None):
        self.rows = rows if rows is not None else []
        self.error = error
        self.calls = []

    def __call__(self, table, value_column, label_column, display_columns, filter_column=None, filter_value=None):
        self.calls.append((table, value_column, label_column, list(display_columns), filter_column, filter_value))
        if self.error is not None:
            raise self.error
        return self.rows


class LookupKeyTests(unittest.TestCase):
    def test_display_columns_order_does_not_matter(self):
        self.assertEqual(
            lookup_key("companies", "id", "name", ["city", "siret"]),
            lookup_key("companies", "id", "name", ["siret", "city", "city"]),
        )

    def test_filter_is_part_of_the_key(self):
        self.assertNotEqual(
            lookup_key("companies", "id", "name", [], "country", "FR"),
            lookup_key("companies", "id", "name", [], "country", "DE"),
        )


class LookupCacheTests(unittest.TestCase):
    def test_second_request_is_served_from_cache(self):
        fetcher = RecordingFetcher([{"id": 1, "name": "Acme"}])
        cache = LookupCache(fetcher)
        first = cache.get_rows("companies", "id", "name", ["name", "city"])
        second = cache.get_rows("companies", "id", "name", ["city", "name"])
        self.assertEqual(first, [{"id": 1, "name": "Acme"}])
        self.assertEqual(second, first)
        self.assertEqual(len(fetcher.calls), 1)
        self.assertEqual(len(cache), 1)

    def test_rows_are_capped(self):
        fetcher = RecordingFetcher([{"id": i, "name": f"n{i}"} for i in range(20)])
        cache = LookupCache(fetcher, limit=5)
        self.assertEqual(len(cache.get_rows("companies", "id", "name")), 5)

    def test_failure_yields_empty_list_and_is_not_cached(self):
        fetcher = RecordingFetcher(error=RuntimeError("db down"))
        cache = LookupCache(fetcher)
        with self.assertLogs("app.lookup", level="WARNING"):
            self.assertEqual(cache.get_rows("companies", "id", "name"), [])
        self.assertEqual(len(cache), 0)

        fetcher.error = None
        fetcher.rows = [{"id": 1, "name": "Acme"}]
        self.assertEqual(cache.get_rows("companies", "id", "name"), [{"id": 1, "name": "Acme"}])
        self.assertEqual(len(fetcher.calls), 2)

    def test_without_fetcher_or_table_returns_empty(self):
        self.assertEqual(LookupCache().get_rows("companies", "id", "name"), [])
        fetcher = RecordingFetcher([{"id": 1}])
        self.assertEqual(LookupCache(fetcher).get_rows("", "id", "name"), [])
        self.assertEqual(fetcher.calls, [])

    def test_returned_rows_do_not_alias_cache(self):
        cache = LookupCache(RecordingFetcher([{"id": 1, "name": "Acme"}]))
        rows = cache.get_rows("companies", "id", "name")
        rows.clear()
        self.assertEqual(len(cache.get_rows("companies", "id", "name")), 1)


class LookupCacheAsyncTests(unittest.IsolatedAsyncioTestCase):
    async def test_async_fetch_populates_cache(self):
        fetcher = RecordingFetcher([{"id": 1, "name": "Acme"}])
        cache = LookupCache(fetcher)
        rows = await cache.get_rows_async("companies", "id", "name")
        self.assertEqual(rows, [{"id": 1, "name": "Acme"}])
        self.assertEqual(cache.get_rows("companies", "id", "name"), rows)
        self.assertEqual(len(fetcher.calls), 1)

    async def test_cancelled_fetch_is_not_stored(self):
        started = threading.Event()
        release = threading.Event()

        def slow_fetcher(*args, **kwargs):
            started.set()
            release.wait(timeout=5)
            return [{"id": 1, "name": "Acme"}]

        cache = LookupCache(slow_fetcher)
        task = asyncio.create_task(cache.get_rows_async("companies", "id", "name"))
        while not started.is_set():
            await asyncio.sleep(0.01)
        task.cancel()
        release.set()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertEqual(len(cache), 0)


class LookupFilterTests(unittest.TestCase):
    def test_falsy_filter_value_is_kept(self):
        self.assertNotEqual(
            lookup_key("companies", "id", "name", [], "active", 0),
            lookup_key("companies", "id", "name", [], "active", None),
        )
        fetcher = RecordingFetcher([{"id": 1, "name": "Acme"}])
        LookupCache(fetcher).get_rows("companies", "id", "name", [], "active", 0)
        self.assertEqual(fetcher.calls, [("companies", "id", "name", [], "active", "0")])
