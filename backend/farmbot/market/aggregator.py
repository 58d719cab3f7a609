# backend/farmbot/market/aggregator.py
import json
import time
import asyncio
import logging
import datetime as dt
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from farmbot.config import settings
from farmbot.models.domain import Location, MarketQuote, Trend
from farmbot.tools.commodity import canonicalize
from farmbot.utils.cache import (
    QuoteCacheEntry, SimpleTTLCache, cache as default_cache, market_cache_key,
    seconds_until_end_of_day, today_ist,
)
from . import synthetic
from .base import MarketSource, SourceUnavailable

log = logging.getLogger("farmbot.market")

def t(): return time.perf_counter()

_TREND_RANK = {Trend.UP: 0, Trend.STABLE: 1, Trend.DOWN: 2}

# Expected provider failures; anything else gets a traceback in the log
PROVIDER_ERRORS = (httpx.HTTPError, SourceUnavailable, TimeoutError, ValueError)


class SourceAggregator:
    """
    Fans a quote request out to every enabled provider, tolerates any subset
    of them failing, and merges what comes back into one ordered list.
    Falls back to synthetic regional estimates so callers never get nothing
    for a commodity we have a baseline for.
    """

    def __init__(self, sources: Sequence[MarketSource], cache: Optional[SimpleTTLCache] = None,
                 live_ttl: Optional[int] = None):
        self.sources = sorted(sources, key=lambda s: s.priority)
        self.cache = cache if cache is not None else default_cache
        self.live_ttl = live_ttl if live_ttl is not None else settings.MARKET_CACHE_TTL_SEC

    async def fetch_quotes(self, location: Location, commodity_keys: Optional[Sequence[str]] = None,
                           limit: Optional[int] = None, day: Optional[dt.date] = None) -> List[MarketQuote]:
        start = t()
        limit = limit or settings.MARKET_QUOTE_LIMIT
        keys = list(dict.fromkeys(k for k in (commodity_keys or []) if k))
        day = day or today_ist()

        key = market_cache_key(location.key, keys, day)
        hit = self.cache.get(key)
        if hit is not None:
            log.info("💾 Market cache hit: %s (%d quotes)", key, len(hit.quotes))
            return list(hit.quotes[:limit])

        merged = await self._collect(location, keys, limit)
        if keys:
            wanted = set(keys)
            merged = [q for q in merged if q.commodity in wanted or canonicalize(q.commodity) in wanted]

        is_synthetic = not merged
        if is_synthetic:
            log.warning("No live quotes for %s %s; using regional estimates",
                        location.label, keys or "(all)")
            merged = synthetic.generate(location, keys, day)

        ordered = sorted(merged, key=lambda q: self._rank(q, location, keys))

        ttl = seconds_until_end_of_day() if is_synthetic else self.live_ttl
        self.cache.set(key, QuoteCacheEntry(quotes=ordered, synthetic=is_synthetic), ttl=ttl)
        log.info("⏱️  Market quotes for %s: %dms (%d quotes%s)", location.label,
                 round((t() - start) * 1000), len(ordered), ", synthetic" if is_synthetic else "")
        return ordered[:limit]

    async def _collect(self, location: Location, keys: List[str], limit: int) -> List[MarketQuote]:
        jobs: List[Tuple[MarketSource, Optional[str]]] = []
        for src in self.sources:
            if not src.enabled:
                log.debug("%s disabled; skipping", src.name)
                continue
            for commodity in (keys or [None]):
                jobs.append((src, commodity))
        if not jobs:
            return []

        results = await asyncio.gather(
            *(src.fetch(location, commodity, limit) for src, commodity in jobs),
            return_exceptions=True,
        )

        merged: Dict[Tuple[str, str, str, str], MarketQuote] = {}
        for (src, commodity), res in zip(jobs, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                log.warning("%s failed for %s: %s", src.name, commodity or "all", res,
                            exc_info=not isinstance(res, PROVIDER_ERRORS))
                continue
            if not res:
                log.info("%s returned nothing for %s", src.name, commodity or "all")
                continue
            try:
                quotes = src.parse(res, location)
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                log.warning("%s returned an unreadable payload: %s", src.name, e)
                continue
            for q in quotes:
                # first seen wins; jobs are already in priority order
                merged.setdefault(q.dedup_key(), q)
        return list(merged.values())

    @staticmethod
    def _rank(q: MarketQuote, location: Location, keys: List[str]):
        return (
            q.commodity not in keys,
            not location.matches(q),
            _TREND_RANK[q.trend],
            q.commodity,
        )


def market_insights(quotes: Sequence[MarketQuote], language: str = "en") -> Dict[str, Any]:
    """Rising / falling counts and a one-line summary for the prompt."""
    rising = [q.commodity for q in quotes if q.trend is Trend.UP]
    falling = [q.commodity for q in quotes if q.trend is Trend.DOWN]
    if language.lower().startswith("hi") and not language.endswith("Latn"):
        summary = f"{len(rising)} फसलों के भाव बढ़ रहे हैं, {len(falling)} के घट रहे हैं।"
    else:
        summary = f"{len(rising)} commodities rising, {len(falling)} falling."
    return {
        "rising": rising,
        "falling": falling,
        "summary": summary,
        "synthetic": any(q.synthetic for q in quotes),
    }


if __name__ == "__main__":
    import argparse
    from farmbot.http import init_http, close_http
    from farmbot.market.sources import default_sources
    from farmbot.tools.commodity import query_commodities

    ap = argparse.ArgumentParser(description="Aggregated mandi quotes for a location")
    ap.add_argument("--state", default=None)
    ap.add_argument("--city", default=None)
    ap.add_argument("--crop", default="", help="Free text, e.g. 'tamatar aur pyaz'")
    ap.add_argument("--limit", type=int, default=settings.MARKET_QUOTE_LIMIT)
    args = ap.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    async def _run():
        await init_http()
        try:
            agg = SourceAggregator(default_sources())
            quotes = await agg.fetch_quotes(
                Location(city=args.city, state=args.state),
                query_commodities(args.crop),
                limit=args.limit,
            )
            print(json.dumps([q.model_dump(mode="json") for q in quotes], indent=2, ensure_ascii=False))
        finally:
            await close_http()

    asyncio.run(_run())
