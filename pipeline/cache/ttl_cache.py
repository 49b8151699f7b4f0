"""
In-memory TTL cache.

Generic key -> value store with optional per-entry expiration. Expiry is
tracked in a single min-heap ordered by monotonic deadline; expired entries
are dropped lazily on access and swept from the heap head on every call,
so no timer object is held per entry.

Keys are opaque strings built by callers (page keys, description keys).
Not thread-safe: the service runs on one asyncio loop and never suspends
inside a cache call.
"""

import heapq
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Pass as get(key, MISSING) to tell a cached None apart from a miss
MISSING = object()


@dataclass
class CacheEntry:
    """A single cached value and its absolute monotonic deadline (if any)."""
    key: str
    value: Any
    expires_at: Optional[float] = None
    seq: int = 0

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class TTLCache:
    """
    Key -> value mapping with optional expiry, in seconds.

    Args:
        clock: Zero-argument callable returning monotonic seconds.
               Injected by tests to control time.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._deadlines: List[Tuple[float, int, str]] = []
        self._seq = itertools.count()

    # ── Internal ──────────────────────────────────────────────────────────────

    def _sweep(self) -> None:
        """Pop every heap item whose deadline has passed."""
        now = self._clock()
        while self._deadlines and self._deadlines[0][0] <= now:
            _, seq, key = heapq.heappop(self._deadlines)
            entry = self._entries.get(key)
            # Superseded by a later set() or already deleted
            if entry is None or entry.seq != seq:
                continue
            del self._entries[key]
            logger.debug("Cache entry expired: %s", key)

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        self._sweep()
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    # ── Public API ────────────────────────────────────────────────────────────

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Insert or replace `key`.

        A positive `ttl` (seconds) makes the entry expire that long from now.
        Omitting it, or passing a non-positive value, keeps the entry until it
        is deleted or the cache is cleared. Any expiry scheduled by an earlier
        set() of the same key no longer applies.
        """
        self._sweep()
        seq = next(self._seq)
        expires_at = None
        if ttl is not None and ttl > 0:
            expires_at = self._clock() + ttl
            heapq.heappush(self._deadlines, (expires_at, seq, key))
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at, seq=seq)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or `default` when absent or expired. Does not extend TTL."""
        entry = self._live_entry(key)
        if entry is None:
            return default
        return entry.value

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        """Remove `key`. Returns True iff it was present."""
        entry = self._live_entry(key)
        if entry is None:
            return False
        del self._entries[key]
        return True

    def clear(self) -> None:
        """Drop every entry and every pending expiry."""
        self._entries.clear()
        self._deadlines.clear()

    def stats(self) -> dict:
        """Snapshot of live keys, for observability only."""
        self._sweep()
        now = self._clock()
        keys = [k for k, e in self._entries.items() if not e.is_expired(now)]
        return {"size": len(keys), "keys": keys}

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return self.stats()["size"]
