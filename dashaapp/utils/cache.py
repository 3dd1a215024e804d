# dashaapp/utils/cache.py
from __future__ import annotations
from collections import OrderedDict
import logging, threading
from datetime import datetime
from typing import Any, Optional, Union
from decimal import Decimal

from prometheus_client import Counter

from dashaapp.core.constants import MAX_MAHADASHAS
from dashaapp.core.dasha import Timeline, as_utc, compute_timeline
from dashaapp.core.precision import to_decimal
from dashaapp.core.weights import VIMSHOTTARI, WeightTable

log = logging.getLogger(__name__)

MET_CACHE = Counter("dasha_timeline_cache_total", "Timeline cache lookups", ["result"])

class LRUCache:
    def __init__(self, capacity: int = 1024):
        if int(capacity) < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = int(capacity)
        self.store: "OrderedDict[str, Any]" = OrderedDict()
        self.lock = threading.Lock()

    def get(self, key: str):
        with self.lock:
            if key in self.store:
                self.store.move_to_end(key)
                return self.store[key]
            return None

    def set(self, key: str, value: Any):
        with self.lock:
            self.store[key] = value
            self.store.move_to_end(key)
            if len(self.store) > self.capacity:
                self.store.popitem(last=False)

    def clear(self) -> None:
        with self.lock:
            self.store.clear()

    def __len__(self) -> int:
        with self.lock:
            return len(self.store)

    def __contains__(self, key: str) -> bool:
        with self.lock:
            return key in self.store

class TimelineCache:
    """
    Memoizes whole top-level timelines by chart identity. Timelines are
    immutable, so a cached value is shared freely between threads; a race on
    the same key just computes the same value twice.
    """
    def __init__(self, capacity: int = 256):
        self.lru = LRUCache(capacity)

    @staticmethod
    def key_for(birth: datetime, longitude: Union[float, Decimal, int, str],
                table: WeightTable = VIMSHOTTARI, max_periods: int = MAX_MAHADASHAS) -> str:
        return "|".join((
            as_utc(birth, "birth").isoformat(),
            str(to_decimal(longitude)),
            table.name,
            str(int(max_periods)),
        ))

    def get(self, key: str) -> Optional[Timeline]:
        return self.lru.get(key)

    def get_or_compute(self, birth: datetime, longitude: Union[float, Decimal, int, str],
                       table: WeightTable = VIMSHOTTARI, max_periods: int = MAX_MAHADASHAS) -> Timeline:
        key = self.key_for(birth, longitude, table, max_periods)
        hit = self.lru.get(key)
        if hit is not None:
            MET_CACHE.labels(result="hit").inc()
            log.debug("timeline cache hit %s", key)
            return hit
        MET_CACHE.labels(result="miss").inc()
        log.debug("timeline cache miss %s", key)
        tl = compute_timeline(birth, longitude, table, max_periods)
        self.lru.set(key, tl)
        return tl

    def __len__(self) -> int:
        return len(self.lru)
