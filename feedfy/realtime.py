"""
Change feeds - realtime subscriptions on table changes.

The hosted backend pushes row changes as database webhooks
({"type", "table", "schema", "record", "old_record"}) to
POST /api/realtime/webhook; ChangeFeed.dispatch() hands them to every
subscribed channel binding whose event, table and filter match.
No ordering, dedup or backpressure: callbacks run in arrival order.
Channels that nobody asked for within the idle timeout are removed.
"""

import threading
import time
from typing import Callable

EVENTS = ('INSERT', 'UPDATE', 'DELETE', '*')
FILTER_OPS = ('eq', 'neq', 'lt', 'lte', 'gt', 'gte', 'in')


def parse_filter(expr: str) -> tuple[str, str, str]:
    """'user_id=eq.abc' -> ('user_id', 'eq', 'abc')"""
    column, _, rest = expr.partition('=')
    op, _, value = rest.partition('.')
    if not column or op not in FILTER_OPS:
        raise ValueError(f'Invalid change feed filter: {expr}')
    return column, op, value


def _compare(op: str, actual, expected: str) -> bool:
    if actual is None:
        return False
    if op == 'in':
        return str(actual) in [v.strip() for v in expected.strip('()').split(',')]
    if op in ('eq', 'neq'):
        equal = str(actual) == expected or (isinstance(actual, bool) and str(actual).lower() == expected)
        return equal if op == 'eq' else not equal
    try:
        a, b = float(actual), float(expected)
    except (TypeError, ValueError):
        a, b = str(actual), expected
    return {'lt': a < b, 'lte': a <= b, 'gt': a > b, 'gte': a >= b}[op]


class Binding:
    def __init__(self, event: str, table: str, callback: Callable, filter: str = None, schema: str = 'public'):
        if event not in EVENTS:
            raise ValueError(f'Invalid event: {event}')
        self.event = event
        self.table = table
        self.schema = schema
        self.callback = callback
        self.filter = parse_filter(filter) if filter else None

    def matches(self, payload: dict) -> bool:
        if self.event != '*' and payload.get('type') != self.event:
            return False
        if payload.get('table') != self.table or payload.get('schema', 'public') != self.schema:
            return False
        if self.filter:
            column, op, value = self.filter
            row = payload.get('old_record') if payload.get('type') == 'DELETE' else payload.get('record')
            return _compare(op, (row or {}).get(column), value)
        return True


class Channel:
    def __init__(self, feed: 'ChangeFeed', name: str):
        self.feed = feed
        self.name = name
        self.bindings: list[Binding] = []
        self.subscribed = False
        self.state: dict = {}
        self.used_at = time.time()

    def on(self, event: str, table: str, callback: Callable, filter: str = None,
           schema: str = 'public') -> 'Channel':
        self.bindings.append(Binding(event, table, callback, filter, schema))
        return self

    def subscribe(self) -> 'Channel':
        self.subscribed = True
        return self


class ChangeFeed:
    def __init__(self, idle_timeout: float = 1800):
        self.idle_timeout = idle_timeout
        self.channels: dict[str, Channel] = {}
        self._lock = threading.Lock()

    def channel(self, name: str) -> Channel:
        """The named channel (created on first use). Each call counts as use."""
        with self._lock:
            now = time.time()
            if name not in self.channels:
                self._sweep(now)
                self.channels[name] = Channel(self, name)
            channel = self.channels[name]
            channel.used_at = now
            return channel

    def has_channel(self, name: str) -> bool:
        ch = self.channels.get(name)
        return bool(ch and ch.subscribed)

    def remove_channel(self, channel) -> None:
        name = channel if isinstance(channel, str) else channel.name
        with self._lock:
            self.channels.pop(name, None)

    def _sweep(self, now: float) -> int:
        idle = [name for name, ch in self.channels.items() if now - ch.used_at >= self.idle_timeout]
        for name in idle:
            del self.channels[name]
        return len(idle)

    def sweep(self) -> int:
        """Removes channels nobody asked for within idle_timeout"""
        with self._lock:
            return self._sweep(time.time())

    def dispatch(self, payload: dict) -> int:
        """Run every matching callback. Returns the number of callbacks run."""
        with self._lock:
            self._sweep(time.time())
            bindings = [b for ch in self.channels.values() if ch.subscribed for b in ch.bindings]
        hits = 0
        for binding in bindings:
            if binding.matches(payload):
                binding.callback(payload)
                hits += 1
        return hits
