# backend/farmbot/tools/geocode.py
import time
import logging
from typing import Optional, Tuple

from farmbot.http import get_http_client, USER_AGENT
from farmbot.utils.cache import cache

log = logging.getLogger("farmbot.geocode")

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
GEO_TTL_SEC = 30 * 24 * 3600   # villages do not move

def t(): return time.perf_counter()

async def geocode_text(q: str) -> Optional[Tuple[float, float]]:
    """'Pune, Maharashtra' -> (lat, lon), or None when Nominatim has nothing."""
    key = f"geo:{q.strip().lower()}"
    hit = cache.get(key)
    if hit is not None:
        return tuple(hit)

    start = t()
    params = {"q": q, "format": "json", "limit": 1, "countrycodes": "in"}
    headers = {"User-Agent": USER_AGENT, "Accept-Language": "en-IN"}
    client = get_http_client()
    r = await client.get(NOMINATIM_URL, params=params, headers=headers)
    r.raise_for_status()
    arr = r.json()
    result = None if not arr else (float(arr[0]["lat"]), float(arr[0]["lon"]))
    log.info("⏱️  Geocoding '%s': %dms -> %s", q, round((t() - start) * 1000), result)
    if result is not None:
        cache.set(key, result, ttl=GEO_TTL_SEC)
    return result
