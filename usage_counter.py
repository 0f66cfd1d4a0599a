"""
Anonymous usage counters.

Every accepted event bumps two counters:

    day:<YYYY-MM-DD>:<event>   count for that UTC day
    total:<event>              all-time count

Clients are rate limited per minute with a short-lived counter stored at
rl:<client>:<minute>. Nothing about the client is kept past that.
"""

from __future__ import annotations
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple


RATE_LIMIT_PER_MINUTE = 60
RATE_KEY_TTL = 120
MAX_EVENT_LEN = 64

Clock = Callable[[], float]


class InvalidEvent(ValueError):
    pass


class RateLimited(Exception):
    pass


class CounterStore:
    """In-process key/value store with optional per-key expiry (seconds)."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires = item
        if expires is not None and expires <= self._clock():
            del self._data[key]
            return None
        return value

    def _sweep(self) -> None:
        now = self._clock()
        for key in [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]:
            del self._data[key]

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def incr(self, key: str, ttl: Optional[float] = None) -> int:
        with self._lock:
            self._sweep()
            count = int(self._live(key) or "0") + 1
            expires = self._clock() + ttl if ttl else None
            self._data[key] = (str(count), expires)
            return count

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            self._sweep()
            return sorted(k for k in self._data if k.startswith(prefix))

    def __len__(self) -> int:
        with self._lock:
            self._sweep()
            return len(self._data)


def day_stamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")


class UsageCounter:
    def __init__(
        self,
        store: Optional[CounterStore] = None,
        clock: Clock = time.time,
        limit: int = RATE_LIMIT_PER_MINUTE,
    ):
        self.clock = clock
        self.store = store if store is not None else CounterStore(clock)
        self.limit = limit

    def record_event(self, event, client_id: str = "unknown") -> Dict[str, int]:
        """
        Count one event for a client.

        Raises InvalidEvent for an empty name and RateLimited once the client
        has sent more than `limit` events in the current minute. Returns the
        new day and total counts.
        """
        name = str(event or "")[:MAX_EVENT_LEN]
        if not name:
            raise InvalidEvent("missing event name")

        now = self.clock()
        minute = int(now // 60)
        count = self.store.incr(f"rl:{client_id or 'unknown'}:{minute}", ttl=RATE_KEY_TTL)
        if count > self.limit:
            raise RateLimited(f"more than {self.limit} events this minute")

        day = day_stamp(now)
        return {
            "day": self.store.incr(f"day:{day}:{name}"),
            "total": self.store.incr(f"total:{name}"),
        }

    def stats_for_day(self) -> Dict[str, object]:
        day = day_stamp(self.clock())
        prefix = f"day:{day}:"
        stats: Dict[str, int] = {}
        for key in self.store.keys(prefix):
            stats[key[len(prefix):]] = int(self.store.get(key) or "0")
        return {"day": day, "stats": stats}
