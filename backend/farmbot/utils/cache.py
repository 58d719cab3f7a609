# backend/farmbot/utils/cache.py
"""
In-process result cache. Market quotes are keyed by location, requested
commodities and IST calendar day; weather and geocoding share the same store
under their own prefixes ('weather:', 'geo:').
"""
import time
import threading
import asyncio
import logging
import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Iterable, Sequence, List
from zoneinfo import ZoneInfo

from farmbot.config import settings

log = logging.getLogger("farmbot.cache")

IST = ZoneInfo("Asia/Kolkata")

_MISSING = object()


class SimpleTTLCache:
    """Thread-safe dict with per-key expiry. `default_ttl=None` keeps entries forever."""

    def __init__(self, default_ttl: Optional[float] = 600):
        # key -> (value, expiry_ts or None)
        self._data: Dict[str, tuple] = {}
        self._default_ttl = default_ttl
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _now(self) -> float:
        return time.time()

    def get(self, key: str, default: Any = None) -> Any:
        now = self._now()
        with self._lock:
            value, expiry = self._data.get(key, (_MISSING, None))
            if value is not _MISSING and expiry is not None and expiry <= now:
                self._data.pop(key, None)
                value = _MISSING
            if value is _MISSING:
                self.misses += 1
                return default
            self.hits += 1
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Per-key TTL overrides the default; rewriting a key replaces it."""
        eff_ttl = ttl if ttl is not None else self._default_ttl
        with self._lock:
            self._data[key] = (value, None if eff_ttl is None else self._now() + eff_ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def sweep(self) -> int:
        """Drop expired keys now instead of on next read; returns how many went."""
        now = self._now()
        with self._lock:
            expired = [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]
            for k in expired:
                del self._data[k]
        return len(expired)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"keys": len(self._data), "hits": self.hits, "misses": self.misses}


# Process-wide instance shared by the market, weather and geocoding layers
cache = SimpleTTLCache(default_ttl=settings.MARKET_CACHE_TTL_SEC)


# -----------------------------
# Day-scoped keys for market quotes
# -----------------------------

@dataclass(frozen=True)
class QuoteCacheEntry:
    quotes: List[Any]
    created_at: float = field(default_factory=time.time)
    synthetic: bool = False


def today_ist(now: Optional[dt.datetime] = None) -> dt.date:
    now = now or dt.datetime.now(IST)
    return now.astimezone(IST).date()

def seconds_until_end_of_day(now: Optional[dt.datetime] = None) -> int:
    """Seconds left in the current IST calendar day (at least 1)."""
    now = (now or dt.datetime.now(IST)).astimezone(IST)
    midnight = dt.datetime.combine(now.date() + dt.timedelta(days=1), dt.time.min, tzinfo=IST)
    return max(1, int((midnight - now).total_seconds()))

def market_cache_key(location_key: str, commodity_keys: Sequence[str], day: dt.date) -> str:
    commodities = "+".join(sorted(set(commodity_keys))) if commodity_keys else "all"
    return f"market:{location_key}:{commodities}:{day.isoformat()}"


# -----------------------------
# Lifecycle
# -----------------------------

_sweeper: Optional[asyncio.Task] = None

async def init_cache():
    """Start the periodic sweeper; the cache itself is in-memory only."""
    global _sweeper
    log.info("💾 Cache initialized (in-memory mode)")
    if _sweeper is None or _sweeper.done():
        _sweeper = asyncio.create_task(_cleanup_task())

async def close_cache():
    global _sweeper
    if _sweeper is not None:
        _sweeper.cancel()
        _sweeper = None

async def _cleanup_task():
    while True:
        await asyncio.sleep(settings.CACHE_SWEEP_SEC)
        n = cache.sweep()
        if n:
            log.info("🧹 Cache sweep removed %d expired keys", n)


# -----------------------------
# Flush utilities
# -----------------------------

def flush_all() -> int:
    """Clear entire cache; returns count of keys flushed."""
    n = len(cache)
    cache.clear()
    return n

def flush_prefix(prefix: str) -> int:
    """Remove only keys starting with `prefix` (e.g. 'market:', 'weather:', 'geo:')."""
    removed = 0
    for k in list(cache.keys()):
        if str(k).startswith(prefix):
            cache.delete(k)
            removed += 1
    return removed
