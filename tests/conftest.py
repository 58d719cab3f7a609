import datetime as dt
from typing import Any, Dict, List, Optional

import pytest

from farmbot.market.base import MarketSource, build_quote
from farmbot.models.domain import Location
from farmbot.rag.index import KnowledgeStore
from farmbot.utils.cache import SimpleTTLCache


class FakeSource(MarketSource):
    """In-memory provider: returns canned records or raises the given error."""

    def __init__(self, name: str, priority: int, records: Optional[List[Dict[str, Any]]] = None,
                 error: Optional[Exception] = None):
        super().__init__(client=None)
        self.name = name
        self.priority = priority
        self.records = records or []
        self.error = error
        self.calls = 0

    async def fetch(self, location, commodity, limit):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if commodity is None:
            return list(self.records)
        return [r for r in self.records if r.get("commodity") == commodity]

    def parse_record(self, rec, location):
        return build_quote(source=self.name, **rec)


def quote_record(commodity: str, price: float, market: str = "Delhi Mandi", district: str = "Delhi",
                 state: str = "Delhi", date: str = "2024-01-01", trend: str = "stable", **extra) -> Dict[str, Any]:
    rec = dict(commodity=commodity, price=price, unit="quintal", market=market, district=district,
               state=state, date=date, trend=trend, change_percent=1.0)
    rec.update(extra)
    return rec


@pytest.fixture
def ttl_cache():
    return SimpleTTLCache(default_ttl=60)


@pytest.fixture
def pune():
    return Location(city="Pune", state="Maharashtra")


@pytest.fixture
def day():
    return dt.date(2024, 1, 15)


@pytest.fixture
def store():
    return KnowledgeStore.from_file()
