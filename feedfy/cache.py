"""
Query cache - cached reads keyed by tuples, invalidated by key prefix.

Reads go through fetch(); after a successful write the caller invalidates
the dependent keys, e.g. invalidate(('lessons', module_id)). Invalidated
entries are refetched on the next read.

Entries nobody has read for `gc_time` seconds are dropped, and past
`max_entries` the least recently used ones go first.
"""

import threading
import time
from typing import Any, Callable


class QueryCache:
    def __init__(self, stale_time: float = 60, gc_time: float = 300, max_entries: int = 5000):
        self.stale_time = stale_time
        self.gc_time = gc_time
        self.max_entries = max_entries
        self._entries: dict[tuple, dict] = {}
        # keys with a fetch in flight -> [generation, running fetches]
        self._pending: dict[tuple, list] = {}
        self._last_sweep = time.time()
        self._lock = threading.Lock()

    @staticmethod
    def _matches(key: tuple, prefix: tuple) -> bool:
        return key[:len(prefix)] == tuple(prefix)

    def fetch(self, key: tuple, fn: Callable[[], Any], stale_time: float = None) -> Any:
        """Cached data for `key` while fresh, otherwise fn() (stored).

        The result is not stored when the key was invalidated while fn() ran.
        """
        key = tuple(key)
        stale_time = self.stale_time if stale_time is None else stale_time
        with self._lock:
            entry = self._entries.get(key)
            now = time.time()
            if entry and not entry['invalidated'] and now - entry['updated_at'] < stale_time:
                entry['used_at'] = now
                return entry['data']
            pending = self._pending.setdefault(key, [0, 0])
            pending[1] += 1
            generation = pending[0]
        try:
            data = fn()
        finally:
            with self._lock:
                pending[1] -= 1
                if not pending[1]:
                    self._pending.pop(key, None)
        with self._lock:
            if pending[0] == generation:
                self._store(key, data)
        return data

    def get_data(self, key: tuple, default=None) -> Any:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry['data'] if entry else default

    def set_data(self, key: tuple, value) -> Any:
        """Store `value`, or call it with the old data when it is callable."""
        key = tuple(key)
        with self._lock:
            if callable(value):
                old = self._entries.get(key)
                value = value(old['data'] if old else None)
            self._store(key, value)
            return value

    def _store(self, key: tuple, value):
        now = time.time()
        self._entries[key] = {'data': value, 'updated_at': now, 'used_at': now, 'invalidated': False}
        if len(self._entries) > self.max_entries or now - self._last_sweep >= self.gc_time:
            self._sweep(now)

    def _sweep(self, now: float) -> int:
        """Drops unused entries, then the least recently used beyond max_entries"""
        self._last_sweep = now
        before = len(self._entries)
        for key in [k for k, e in self._entries.items() if now - e['used_at'] >= self.gc_time]:
            del self._entries[key]
        overflow = len(self._entries) - self.max_entries
        if overflow > 0:
            for key in sorted(self._entries, key=lambda k: self._entries[k]['used_at'])[:overflow]:
                del self._entries[key]
        return before - len(self._entries)

    def sweep(self) -> int:
        with self._lock:
            return self._sweep(time.time())

    def update_matching(self, prefix: tuple, updater: Callable[[Any], Any]) -> int:
        """Rewrite the data of every key under `prefix` (optimistic updates)."""
        with self._lock:
            keys = [k for k in self._entries if self._matches(k, prefix)]
            for k in keys:
                self._entries[k]['data'] = updater(self._entries[k]['data'])
            return len(keys)

    def invalidate(self, prefix: tuple) -> int:
        with self._lock:
            now = time.time()
            hits = 0
            for key in list(self._entries):
                entry = self._entries[key]
                if now - entry['used_at'] >= self.gc_time:
                    del self._entries[key]
                elif self._matches(key, prefix):
                    entry['invalidated'] = True
                    hits += 1
            for key, pending in self._pending.items():
                if self._matches(key, prefix):
                    pending[0] += 1
            return hits

    def is_stale(self, key: tuple) -> bool:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry is None or entry['invalidated'] or time.time() - entry['updated_at'] >= self.stale_time

    def remove(self, prefix: tuple) -> None:
        with self._lock:
            for key in [k for k in self._entries if self._matches(k, prefix)]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[tuple]:
        with self._lock:
            return list(self._entries)
