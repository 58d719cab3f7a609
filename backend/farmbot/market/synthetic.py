# backend/farmbot/market/synthetic.py
"""
Deterministic regional estimates used when every live feed comes back empty.

Prices wobble around a static base by a seeded pseudo-random amount, so the
same commodity on the same day always reads the same and the figures move
from one day to the next. Every quote is flagged synthetic.
"""
import math
import logging
import datetime as dt
from typing import Dict, List, Optional, Sequence, Tuple

from farmbot.models.domain import Location, MarketQuote, Trend
from farmbot.utils.cache import today_ist

log = logging.getLogger("farmbot.market")

SOURCE_LABEL = "Regional Market Estimate (synthetic)"
MODE_TAG = "regional"

# Used when the caller did not ask for anything specific
DEFAULT_BASKET = ("wheat", "tomato")

# canonical key -> (base price INR, variation INR, unit)
BASE_PRICES: Dict[str, Tuple[int, int, str]] = {
    "rice":      (2400, 300, "quintal"),
    "wheat":     (2100, 250, "quintal"),
    "cotton":    (6200, 500, "quintal"),
    "sugarcane": (310, 40, "quintal"),
    "maize":     (1850, 200, "quintal"),
    "bajra":     (1700, 180, "quintal"),
    "jowar":     (1650, 170, "quintal"),
    "gram":      (4500, 400, "quintal"),
    "turmeric":  (8500, 800, "quintal"),
    "groundnut": (4800, 450, "quintal"),
    "mustard":   (4200, 380, "quintal"),
    "soybean":   (3800, 350, "quintal"),
    "arhar":     (5500, 400, "quintal"),
    "moong":     (6800, 500, "quintal"),
    "urad":      (7200, 600, "quintal"),
    "sesame":    (8000, 700, "quintal"),
    "coriander": (15000, 1200, "quintal"),
    "fenugreek": (6500, 500, "quintal"),
    "onion":     (25, 8, "kg"),
    "potato":    (18, 5, "kg"),
    "tomato":    (35, 12, "kg"),
    "garlic":    (180, 40, "kg"),
    "ginger":    (120, 30, "kg"),
    "chilli":    (45, 15, "kg"),
}


def seed_for(text: str) -> int:
    """31-multiplier string hash folded into a signed 32-bit int, then abs()."""
    h = 0
    for ch in text:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)

def seeded_random(seed: int) -> float:
    """Deterministic value in [0, 1)."""
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def _labels(location: Location) -> Tuple[str, str, str]:
    place = location.city or location.state
    market = f"{place} Regional Mandi" if place else "Nearby Regional Mandi"
    district = location.city or location.state or "Regional"
    state = location.state or "India"
    return market, district, state


def generate(location: Location, commodity_keys: Sequence[str], day: Optional[dt.date] = None) -> List[MarketQuote]:
    """
    One synthetic quote per requested commodity (default basket if none).
    Pure in (location, commodity_keys, day).
    """
    day = day or today_ist()
    iso = day.isoformat()
    keys = list(dict.fromkeys(commodity_keys)) if commodity_keys else list(DEFAULT_BASKET)
    market, district, state = _labels(location)

    out: List[MarketQuote] = []
    for key in keys:
        baseline = BASE_PRICES.get(key)
        if baseline is None:
            log.info("No regional baseline for %r; not estimating it", key)
            continue
        base, variation, unit = baseline

        r = seeded_random(seed_for(f"{key}{MODE_TAG}{iso}"))
        r_trend = seeded_random(seed_for(f"{key}{MODE_TAG}{iso}_trend"))
        r_change = seeded_random(seed_for(f"{key}{MODE_TAG}{iso}_change"))

        price = round(base + (r - 0.5) * variation * 0.6)
        out.append(MarketQuote(
            commodity=key,
            price=max(price, 1),
            unit=unit,
            market=market,
            district=district,
            state=state,
            trend=Trend.UP if r_trend > 0.45 else Trend.DOWN,
            change_percent=round(r_change * 8 + 1, 1),
            date=iso,
            source=SOURCE_LABEL,
            synthetic=True,
        ))
    return out
