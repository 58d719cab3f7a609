# backend/farmbot/market/sources.py
import time
import logging
from typing import Any, Dict, List, Optional

from farmbot.config import settings
from farmbot.models.domain import Location, MarketQuote
from farmbot.tools.commodity import api_name, canonicalize
from .base import (
    MarketSource, SourceUnavailable, build_quote, normalize_unit, parse_date, parse_price,
)

log = logging.getLogger("farmbot.market")

def t(): return time.perf_counter()

API_BASE = "https://api.data.gov.in/resource"


class DataGovSource(MarketSource):
    """Common fetch path for the data.gov.in open-data resources."""

    resource_id: str = ""
    state_field: str = "state"
    commodity_field: str = "commodity"

    def __init__(self, client=None, api_key: Optional[str] = None):
        super().__init__(client)
        self.api_key = settings.DATA_GOV_IN_API_KEY if api_key is None else api_key

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def fetch(self, location: Location, commodity: Optional[str], limit: int) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise SourceUnavailable(f"{self.name}: DATA_GOV_IN_API_KEY not set")
        start = t()
        params = {
            "api-key": self.api_key,
            "format": "json",
            "limit": str(max(limit, 1) * 4),
            "offset": "0",
        }
        if location.state:
            params[f"filters[{self.state_field}]"] = location.state
        if commodity:
            params[f"filters[{self.commodity_field}]"] = api_name(commodity)

        r = await self.client.get(f"{API_BASE}/{self.resource_id}", params=params,
                                  headers={"Accept": "application/json"})
        r.raise_for_status()
        payload = r.json()
        records = payload.get("records") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            raise SourceUnavailable(f"{self.name}: response has no records list")
        log.info("⏱️  %s fetch (%s): %dms, %d records",
                 self.name, commodity or "all", round((t() - start) * 1000), len(records))
        return records


class AgmarknetSource(DataGovSource):
    """Current daily mandi prices (AGMARKNET via data.gov.in)."""

    name = "AGMARKNET"
    priority = 1
    resource_id = "9ef84268-d588-465a-a308-a864a43d0070"

    def parse_record(self, rec: Dict[str, Any], location: Location) -> Optional[MarketQuote]:
        return self._range_quote(
            commodity=rec.get("commodity"),
            modal=rec.get("modal_price"),
            low=rec.get("min_price"),
            high=rec.get("max_price"),
            unit=rec.get("unit"),
            market=rec.get("market"),
            district=rec.get("district"),
            state=rec.get("state"),
            date=rec.get("arrival_date"),
        )


class EnamSource(DataGovSource):
    """e-NAM trade prices. Field names differ from AGMARKNET."""

    name = "e-NAM"
    priority = 2
    resource_id = "eb348ba4-4d79-40cd-913c-c8e1081c7b67"
    state_field = "state_name"
    commodity_field = "commodity_name"

    def parse_record(self, rec: Dict[str, Any], location: Location) -> Optional[MarketQuote]:
        return self._range_quote(
            commodity=rec.get("commodity_name") or rec.get("commodity"),
            modal=rec.get("modal_rate") or rec.get("modal_price"),
            low=rec.get("min_rate"),
            high=rec.get("max_rate"),
            unit=rec.get("unit_name"),
            market=rec.get("mandi_name"),
            district=rec.get("district_name") or location.city,
            state=rec.get("state_name"),
            date=rec.get("price_date"),
        )


class NhbSource(DataGovSource):
    """
    National Horticulture Board wholesale/retail series (fruit and vegetables).
    There is no min/max here; a thin retail margin over wholesale is read as a
    tightening (rising) market.
    """

    name = "NHB"
    priority = 3
    resource_id = "35985678-0d79-46b4-9ed6-6f13308a1d24"

    def parse_record(self, rec: Dict[str, Any], location: Location) -> Optional[MarketQuote]:
        wholesale = parse_price(rec.get("wholesale_price"))
        retail = parse_price(rec.get("retail_price"))
        margin = (retail - wholesale) / wholesale * 100 if wholesale > 0 and retail > 0 else None
        if margin is None:
            trend, change = "stable", 0.0
        else:
            trend = "up" if margin < 20 else "down"
            change = round(abs(margin), 1)
        return build_quote(
            commodity=canonicalize(rec.get("commodity")),
            price=wholesale,
            unit=normalize_unit(rec.get("unit"), default="quintal"),
            market=rec.get("centre"),
            district=rec.get("centre"),
            state=rec.get("state"),
            trend=trend,
            change_percent=change,
            date=parse_date(rec.get("date")),
            source=self.name,
        )


class RelaySource(MarketSource):
    """
    Optional self-hosted relay that scrapes portals without an open API.
    GET {MARKET_RELAY_URL}/market-prices/{state}/{crop} -> {"data": [quote, ...]}
    """

    name = "Market Relay"
    priority = 4

    def __init__(self, client=None, base_url: Optional[str] = None):
        super().__init__(client)
        self.base_url = (settings.MARKET_RELAY_URL if base_url is None else base_url).rstrip("/")

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def fetch(self, location: Location, commodity: Optional[str], limit: int) -> List[Dict[str, Any]]:
        if not self.base_url:
            raise SourceUnavailable("relay: MARKET_RELAY_URL not set")
        start = t()
        state = location.state or "all"
        url = f"{self.base_url}/market-prices/{state}/{commodity or 'all'}"
        r = await self.client.get(url, params={"limit": limit})
        r.raise_for_status()
        payload = r.json()
        data = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(data, list):
            raise SourceUnavailable("relay: response has no data list")
        log.info("⏱️  relay fetch (%s): %dms, %d records", commodity or "all", round((t() - start) * 1000), len(data))
        return data

    def parse_record(self, rec: Dict[str, Any], location: Location) -> Optional[MarketQuote]:
        return build_quote(
            commodity=canonicalize(rec.get("commodity")),
            price=parse_price(rec.get("price")),
            unit=normalize_unit(rec.get("unit")),
            market=rec.get("market"),
            district=rec.get("district"),
            state=rec.get("state"),
            trend=rec.get("trend"),
            change_percent=abs(parse_price(rec.get("changePercent", rec.get("change")))),
            date=parse_date(rec.get("date")),
            source=rec.get("source") or self.name,
        )


def default_sources(client=None) -> List[MarketSource]:
    """All providers in priority order; disabled ones are skipped at fetch time."""
    return [
        AgmarknetSource(client),
        EnamSource(client),
        NhbSource(client),
        RelaySource(client),
    ]
