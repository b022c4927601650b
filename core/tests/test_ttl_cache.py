import tempfile
from pathlib import Path

from django.test import SimpleTestCase

from core.services.ttl_cache import (
    CacheEntry,
    InMemoryStore,
    JsonFileStore,
    TTLCache,
    cache_key,
    is_valid,
)


class FailingStore(InMemoryStore):
    def set_item(self, key: str, value: str) -> None:
        raise OSError('quota exceeded')


class CacheKeyTest(SimpleTestCase):
    def test_keys_follow_dashboard_naming(self) -> None:
        key = cache_key('sentimentData', 2024, 2)
        self.assertEqual(key.data, 'sentimentData_2024_2')
        self.assertEqual(key.timestamp, 'sentimentDataTimestamp_2024_2')

    def test_quarters_of_the_same_year_use_distinct_keys(self) -> None:
        keys = {cache_key('sentimentData', 2024, quarter) for quarter in (None, 1, 2, 3, 4)}
        self.assertEqual(len(keys), 5)

    def test_absent_filters_render_as_none(self) -> None:
        self.assertEqual(cache_key('sentimentData').data, 'sentimentData_None_None')


class TTLCacheTest(SimpleTestCase):
    def setUp(self) -> None:
        self.now = [1000.0]
        self.store = InMemoryStore()
        self.cache = TTLCache(self.store, ttl_seconds=30, clock=lambda: self.now[0])
        self.key = cache_key('sentimentData', 2024, 2)

    def test_entry_is_fresh_until_ttl_elapses(self) -> None:
        self.assertTrue(self.cache.set(self.key, {'counts': {'positive': '1'}}))
        self.now[0] = 1029.999
        self.assertEqual(self.cache.get(self.key), {'counts': {'positive': '1'}})
        self.now[0] = 1030.0
        self.assertIsNone(self.cache.get(self.key))

    def test_timestamp_is_stored_in_milliseconds(self) -> None:
        self.cache.set(self.key, {'a': 1})
        self.assertEqual(self.store.get_item(self.key.timestamp), '1000000')

    def test_expired_entry_is_still_readable(self) -> None:
        self.cache.set(self.key, [1, 2])
        self.now[0] = 5000.0
        self.assertIsNone(self.cache.get(self.key))
        self.assertEqual(self.cache.read(self.key), CacheEntry(value=[1, 2], written_at=1000.0))

    def test_quarters_do_not_share_entries(self) -> None:
        self.cache.set(cache_key('sentimentData', 2024, 1), 'q1')
        self.cache.set(cache_key('sentimentData', 2024, 2), 'q2')
        self.assertEqual(self.cache.get(cache_key('sentimentData', 2024, 1)), 'q1')
        self.assertEqual(self.cache.get(cache_key('sentimentData', 2024, 2)), 'q2')
        self.assertIsNone(self.cache.get(cache_key('sentimentData', 2024, 3)))

    def test_missing_timestamp_is_a_miss(self) -> None:
        self.store.set_item(self.key.data, '{"a": 1}')
        self.assertIsNone(self.cache.get(self.key))

    def test_corrupt_payload_is_a_miss(self) -> None:
        self.store.set_item(self.key.data, '{not json')
        self.store.set_item(self.key.timestamp, '1000000')
        self.assertIsNone(self.cache.get(self.key))

    def test_failed_write_is_swallowed(self) -> None:
        cache = TTLCache(FailingStore(), ttl_seconds=30, clock=lambda: 1000.0)
        self.assertFalse(cache.set(self.key, {'a': 1}))
        self.assertIsNone(cache.get(self.key))

    def test_invalidate_removes_both_keys(self) -> None:
        self.cache.set(self.key, {'a': 1})
        self.cache.invalidate(self.key)
        self.assertEqual(len(self.store), 0)

    def test_is_valid_rejects_missing_entry(self) -> None:
        self.assertFalse(is_valid(None, 0, 30))


class JsonFileStoreTest(SimpleTestCase):
    def test_values_persist_across_store_instances(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            TTLCache(JsonFileStore(tmp), clock=lambda: 10.0).set(cache_key('sentimentData', 2023, 4), {'x': 1})
            cache = TTLCache(JsonFileStore(tmp), clock=lambda: 20.0)
            self.assertEqual(cache.get(cache_key('sentimentData', 2023, 4)), {'x': 1})

    def test_unreadable_file_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = JsonFileStore(tmp)
            store.set_item('sentimentData_1_1', 'value')
            Path(tmp, 'sentimentData_1_1.json').write_text('garbage', encoding='utf-8')
            self.assertIsNone(store.get_item('sentimentData_1_1'))

    def test_clear_removes_every_entry(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = JsonFileStore(tmp)
            store.set_item('a', '1')
            store.set_item('b', '2')
            store.clear()
            self.assertIsNone(store.get_item('a'))
            self.assertIsNone(store.get_item('b'))
