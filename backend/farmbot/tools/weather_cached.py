# backend/farmbot/tools/weather_cached.py
import logging
from time import perf_counter
from typing import Optional

import httpx

from farmbot.config import settings
from farmbot.models.domain import Location, WeatherSnapshot
from farmbot.utils.cache import cache, today_ist
from .geocode import geocode_text
from .weather import current_conditions

log = logging.getLogger("farmbot.weather")

def t(): return perf_counter()

def _key(lat: float, lon: float) -> str:
    # round to ~1km cell to increase hit-rate
    return f"weather:{round(lat, 2)}:{round(lon, 2)}:{today_ist().isoformat()}"

async def weather_for(location: Location) -> Optional[WeatherSnapshot]:
    """
    Weather snapshot for a city/state, or None when it cannot be had.
    Advice still goes out without weather, so failures end here.
    """
    if not location.city and not location.state:
        return None
    start = t()
    try:
        point = await geocode_text(location.label)
        if point is None:
            log.info("No coordinates for %s; skipping weather", location.label)
            return None
        key = _key(*point)
        hit = cache.get(key)
        if hit is not None:
            log.info("💾 Weather cache hit: %s", key)
            return hit
        snap = await current_conditions(*point)
    except (httpx.HTTPError, ValueError, KeyError) as e:
        log.warning("Weather unavailable for %s: %s", location.label, e)
        return None

    cache.set(key, snap, ttl=settings.WEATHER_CACHE_TTL_SEC)
    log.info("⏱️  Weather for %s: %dms (fresh)", location.label, round((t() - start) * 1000))
    return snap
