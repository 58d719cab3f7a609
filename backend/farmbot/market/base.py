# backend/farmbot/market/base.py
"""
Provider interface for market price feeds plus the parsing helpers every
provider shares. A provider only knows how to fetch its raw records and
turn them into MarketQuote objects; merging, filtering and fallback live in
the aggregator.
"""
import re
import logging
import datetime as dt
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from farmbot.http import get_http_client
from farmbot.models.domain import Location, MarketQuote, Trend
from farmbot.tools.commodity import canonicalize
from farmbot.utils.cache import today_ist

log = logging.getLogger("farmbot.market")

UNIT_ALIASES = {
    "qtl": "quintal",
    "quintal": "quintal",
    "quintals": "quintal",
    "rs/quintal": "quintal",
    "inr/quintal": "quintal",
    "kg": "kg",
    "kgs": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "rs/kg": "kg",
    "ton": "tonne",
    "tons": "tonne",
    "tonne": "tonne",
    "mt": "tonne",
    "dozen": "dozen",
    "nos": "piece",
}

# first number in the string wins; "Rs." carries its own dot
_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


class SourceUnavailable(RuntimeError):
    """Provider cannot be queried (missing key, malformed payload, ...)."""


# -------------------------------
# Helper Functions
# -------------------------------
def parse_price(value: Any) -> float:
    """'₹ 2,150.50/qtl' or 'Rs. 2,150' -> first number in the text; nothing numeric -> 0.0."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    m = _PRICE_RE.search(str(value))
    if not m:
        return 0.0
    return float(m.group(0).replace(",", ""))

def normalize_unit(value: Optional[str], default: str = "quintal") -> str:
    u = (value or "").strip().lower()
    if not u:
        return default
    return UNIT_ALIASES.get(u, u)

def trend_from_range(modal: float, low: float, high: float) -> Trend:
    """Modal above the min/max midpoint reads as a rising market."""
    if low <= 0 or high <= 0:
        return Trend.STABLE
    mid = (low + high) / 2
    if modal > mid:
        return Trend.UP
    if modal < mid:
        return Trend.DOWN
    return Trend.STABLE

def change_from_range(modal: float, low: float, high: float) -> float:
    if low <= 0 or high <= 0:
        return 0.0
    mid = (low + high) / 2
    return round(abs(modal - mid) / mid * 100, 1)

def parse_date(value: Optional[str]) -> str:
    """dd/mm/yyyy, dd-mm-yyyy or ISO -> ISO date string; today (IST) otherwise."""
    s = (value or "").strip()
    for fmt in ("%d/%m/%Y", "%d-%m-%Y", "%Y-%m-%d", "%d/%m/%y"):
        try:
            return dt.datetime.strptime(s[:10], fmt).date().isoformat()
        except ValueError:
            continue
    return today_ist().isoformat()

def build_quote(**fields) -> Optional[MarketQuote]:
    """MarketQuote or None for records that fail validation (price <= 0, ...)."""
    try:
        return MarketQuote(**fields)
    except ValidationError as e:
        log.debug("Dropping invalid quote %s: %s", fields.get("commodity"), e.errors()[0].get("msg"))
        return None


# -------------------------------
# Provider interface
# -------------------------------
class MarketSource:
    """Base class: subclasses set `name`/`priority` and implement fetch/parse."""

    name: str = "source"
    priority: int = 100

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client()

    @property
    def enabled(self) -> bool:
        return True

    async def fetch(self, location: Location, commodity: Optional[str], limit: int) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def parse(self, records: List[Dict[str, Any]], location: Location) -> List[MarketQuote]:
        out: List[MarketQuote] = []
        for rec in records or []:
            if not isinstance(rec, dict):
                continue
            q = self.parse_record(rec, location)
            if q is not None:
                out.append(q)
        return out

    def parse_record(self, rec: Dict[str, Any], location: Location) -> Optional[MarketQuote]:
        raise NotImplementedError

    # shared by the data.gov.in style parsers
    def _range_quote(self, *, commodity: Any, modal: Any, low: Any, high: Any, unit: Any,
                     market: Any, district: Any, state: Any, date: Any,
                     default_unit: str = "quintal") -> Optional[MarketQuote]:
        modal_p, low_p, high_p = parse_price(modal), parse_price(low), parse_price(high)
        return build_quote(
            commodity=canonicalize(commodity),
            price=modal_p,
            unit=normalize_unit(unit, default=default_unit),
            market=market,
            district=district,
            state=state,
            trend=trend_from_range(modal_p, low_p, high_p),
            change_percent=change_from_range(modal_p, low_p, high_p),
            date=parse_date(date),
            source=self.name,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} priority={self.priority}>"
