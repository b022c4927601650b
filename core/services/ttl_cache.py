"""Time-boxed cache for dashboard analytics payloads.

The dashboard keeps the last response of each analytics query together
with the time it was written, under two keys per query::

    sentimentData_<year>_<quarter>           -> JSON payload
    sentimentDataTimestamp_<year>_<quarter>  -> write time in milliseconds

An entry is trusted only while ``now - written_at < ttl``.  Anything older,
missing or unreadable is treated as a miss and replaced wholesale by the
next successful fetch.  Writes are best-effort: if the backing store
refuses a write the cache simply keeps missing.

Stores are injectable.  ``InMemoryStore`` lives as long as the process
(one dashboard session); ``JsonFileStore`` persists one small JSON file
per key underneath ``DASHBOARD_CACHE_ROOT``.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30


class CacheKey(NamedTuple):
    """Storage keys for one cached query."""

    data: str
    timestamp: str


def cache_key(kind: str, year: Optional[int] = None, quarter: Optional[int] = None) -> CacheKey:
    """Derive the storage keys for ``kind`` filtered by year and quarter.

    Absent filters render as ``None`` so "all quarters of 2024" and
    "quarter 2 of 2024" can never share an entry.
    """

    suffix = f"{year}_{quarter}"
    return CacheKey(data=f"{kind}_{suffix}", timestamp=f"{kind}Timestamp_{suffix}")


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    written_at: float


def is_valid(entry: Optional[CacheEntry], now: float, ttl: float) -> bool:
    """Return True when ``entry`` is younger than ``ttl`` seconds at ``now``."""

    if entry is None:
        return False
    return now - entry.written_at < ttl


class KeyValueStore:
    """String key/value storage used by ``TTLCache``."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemoryStore(KeyValueStore):
    """Process-local store; contents vanish with the process."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


def _safe_segment(value: str) -> str:
    cleaned = re.sub(r'[^A-Za-z0-9_.-]+', '_', str(value).strip())
    return cleaned or 'entry'


class JsonFileStore(KeyValueStore):
    """Persistent store keeping one JSON document per key on disk."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{_safe_segment(key)}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            with path.open('r', encoding='utf-8') as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug('Ignoring unreadable cache file %s: %s', path, exc)
            return None
        value = data.get('value') if isinstance(data, dict) else None
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix('.tmp')
        with tmp_path.open('w', encoding='utf-8') as fh:
            json.dump({'key': key, 'value': str(value)}, fh, ensure_ascii=False)
        tmp_path.replace(path)

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            return

    def clear(self) -> None:
        if not self.root.exists():
            return
        for path in self.root.glob('*.json'):
            try:
                path.unlink()
            except FileNotFoundError:
                continue


class TTLCache:
    """Read-through helper enforcing the time-to-live on a store."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store if store is not None else InMemoryStore()
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def read(self, key: CacheKey) -> Optional[CacheEntry]:
        """Return the stored entry regardless of its age."""

        raw_value = self.store.get_item(key.data)
        raw_timestamp = self.store.get_item(key.timestamp)
        if raw_value is None or raw_timestamp is None:
            return None
        try:
            written_at = float(raw_timestamp) / 1000.0
            value = json.loads(raw_value)
        except (TypeError, ValueError):
            return None
        return CacheEntry(value=value, written_at=written_at)

    def get(self, key: CacheKey, now: Optional[float] = None) -> Optional[Any]:
        """Return the cached value when it is still fresh, else ``None``."""

        entry = self.read(key)
        current = self.clock() if now is None else now
        if not is_valid(entry, current, self.ttl_seconds):
            return None
        return entry.value

    def set(self, key: CacheKey, value: Any, written_at: Optional[float] = None) -> bool:
        """Store ``value``; returns False instead of raising when the store fails."""

        timestamp = self.clock() if written_at is None else written_at
        try:
            serialised = json.dumps(value)
            self.store.set_item(key.data, serialised)
            self.store.set_item(key.timestamp, str(int(timestamp * 1000)))
        except (OSError, TypeError, ValueError) as exc:
            logger.debug('Cache write for %s failed: %s', key.data, exc)
            return False
        return True

    def invalidate(self, key: CacheKey) -> None:
        try:
            self.store.remove_item(key.data)
            self.store.remove_item(key.timestamp)
        except OSError as exc:
            logger.debug('Cache invalidation for %s failed: %s', key.data, exc)


__all__ = [
    'CacheEntry',
    'CacheKey',
    'DEFAULT_TTL_SECONDS',
    'InMemoryStore',
    'JsonFileStore',
    'KeyValueStore',
    'TTLCache',
    'cache_key',
    'is_valid',
]
