"""In-process result cache for on-demand views.

One instance is built by the caller and passed to whatever needs it. Entries
expire after ``ttl_s`` seconds and the oldest entry goes once ``max_entries``
is exceeded. Each entry remembers the trade date it was computed for so a
rewrite of that date's raw tables can drop it.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 300
DEFAULT_MAX_ENTRIES = 512

_MISSING = object()


class ResultCache:
    def __init__(
        self,
        ttl_s: float = DEFAULT_TTL_S,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, str | None, Any]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return default
        expires_at, _, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, key: Hashable, value: Any, trade_date: str | None = None) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + self.ttl_s, trade_date, value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def get_or_compute(
        self,
        key: Hashable,
        compute: Callable[[], Any],
        trade_date: str | None = None,
    ) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = compute()
            self.set(key, value, trade_date)
        return value

    def invalidate_date(self, trade_date: str) -> int:
        """Drop entries for ``trade_date``, later dates, and undated entries.

        Views for later dates read history that includes ``trade_date``.
        """
        stale = [
            key
            for key, (_, entry_date, _) in self._entries.items()
            if entry_date is None or entry_date >= trade_date
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Invalidated %d cache entries for %s", len(stale), trade_date)
        return len(stale)
