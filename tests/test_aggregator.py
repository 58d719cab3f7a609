import httpx
import pytest

from conftest import FakeSource, quote_record
from farmbot.market import synthetic
from farmbot.market.aggregator import SourceAggregator, market_insights
from farmbot.market.base import SourceUnavailable
from farmbot.models.domain import Location, Trend


def _agg(sources, ttl_cache):
    return SourceAggregator(sources, cache=ttl_cache, live_ttl=600)


class SloppySource(FakeSource):
    """Ignores the commodity it was asked for."""

    async def fetch(self, location, commodity, limit):
        return list(self.records)


class TestFanOut:
    """Partial failures, merge order and dedup"""

    @pytest.mark.asyncio
    async def test_two_of_three_sources_failing(self, ttl_cache, pune, day):
        good = FakeSource("good", 3, [quote_record("tomato", 1800, market="Pune", state="Maharashtra")])
        sources = [
            FakeSource("down", 1, error=httpx.ConnectError("boom")),
            FakeSource("broken", 2, error=SourceUnavailable("no key")),
            good,
        ]
        quotes = await _agg(sources, ttl_cache).fetch_quotes(pune, ["tomato"], day=day)
        assert len(quotes) == 1
        assert quotes[0].source == "good"
        assert not quotes[0].synthetic

    @pytest.mark.asyncio
    async def test_unexpected_error_is_tolerated(self, ttl_cache, pune, day):
        sources = [
            FakeSource("weird", 1, error=RuntimeError("provider bug")),
            FakeSource("good", 2, [quote_record("onion", 2000)]),
        ]
        quotes = await _agg(sources, ttl_cache).fetch_quotes(pune, ["onion"], day=day)
        assert [q.source for q in quotes] == ["good"]

    @pytest.mark.asyncio
    async def test_duplicates_keep_higher_priority(self, ttl_cache, pune, day):
        rec = dict(market="Delhi Mandi", date="2024-01-01")
        sources = [
            FakeSource("second", 2, [quote_record("rice", 2500, **rec)]),
            FakeSource("first", 1, [quote_record("rice", 2400, **rec)]),
        ]
        quotes = await _agg(sources, ttl_cache).fetch_quotes(pune, ["rice"], day=day)
        assert len(quotes) == 1
        assert (quotes[0].source, quotes[0].price) == ("first", 2400)

    @pytest.mark.asyncio
    async def test_invalid_records_dropped(self, ttl_cache, pune, day):
        src = FakeSource("s", 1, [quote_record("wheat", 0), quote_record("wheat", 2100, market="Pune")])
        quotes = await _agg([src], ttl_cache).fetch_quotes(pune, ["wheat"], day=day)
        assert [q.price for q in quotes] == [2100]

    @pytest.mark.asyncio
    async def test_disabled_sources_not_called(self, ttl_cache, pune, day):
        class Off(FakeSource):
            @property
            def enabled(self):
                return False

        off = Off("off", 1, [quote_record("wheat", 2100)])
        await _agg([off], ttl_cache).fetch_quotes(pune, ["wheat"], day=day)
        assert off.calls == 0


class TestFiltering:
    @pytest.mark.asyncio
    async def test_no_substitute_commodity(self, ttl_cache, pune, day):
        src = SloppySource("sloppy", 1, [quote_record("potato", 18), quote_record("wheat", 2100)])
        quotes = await _agg([src], ttl_cache).fetch_quotes(pune, ["tomato"], day=day)
        assert [q.commodity for q in quotes] == ["tomato"]
        assert quotes[0].synthetic

    @pytest.mark.asyncio
    async def test_filter_drops_other_commodities(self, ttl_cache, pune, day):
        src = SloppySource("sloppy", 1, [quote_record("wheat", 2100), quote_record("onion", 20)])
        quotes = await _agg([src], ttl_cache).fetch_quotes(pune, ["onion"], day=day)
        assert [q.commodity for q in quotes] == ["onion"]


class TestSyntheticFallback:
    @pytest.mark.asyncio
    async def test_all_sources_fail(self, ttl_cache, pune, day):
        sources = [FakeSource(f"s{i}", i, error=httpx.ReadTimeout("slow")) for i in range(3)]
        quotes = await _agg(sources, ttl_cache).fetch_quotes(pune, ["wheat", "onion"], day=day)
        assert {q.commodity for q in quotes} == {"wheat", "onion"}
        assert all(q.synthetic for q in quotes)

    @pytest.mark.asyncio
    async def test_unresolved_commodity_gets_nothing(self, ttl_cache, pune, day):
        other = SloppySource("other", 1, [quote_record("wheat", 2100)])
        sources = [other, FakeSource("down", 2, error=httpx.ConnectError("down"))]
        assert await _agg(sources, ttl_cache).fetch_quotes(pune, ["dragon", "fruit"], day=day) == []

    @pytest.mark.asyncio
    async def test_no_sources_at_all(self, ttl_cache, pune, day):
        quotes = await _agg([], ttl_cache).fetch_quotes(pune, [], day=day)
        assert {q.commodity for q in quotes} == set(synthetic.DEFAULT_BASKET)

    @pytest.mark.asyncio
    async def test_pune_tomato_stable_across_calls(self, pune, day):
        from farmbot.utils.cache import SimpleTTLCache

        failing = [FakeSource("s", 1, error=httpx.ConnectError("down"))]
        first = await SourceAggregator(failing, cache=SimpleTTLCache()).fetch_quotes(pune, ["tomato"], day=day)
        second = await SourceAggregator(failing, cache=SimpleTTLCache()).fetch_quotes(pune, ["tomato"], day=day)
        assert len(first) == 1
        assert first[0].commodity == "tomato"
        assert first[0].price > 0
        assert first == second


class TestCaching:
    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, ttl_cache, pune, day):
        src = FakeSource("s", 1, [quote_record("wheat", 2100)])
        agg = _agg([src], ttl_cache)
        a = await agg.fetch_quotes(pune, ["wheat"], day=day)
        b = await agg.fetch_quotes(pune, ["wheat"], day=day)
        assert a == b
        assert src.calls == 1

    @pytest.mark.asyncio
    async def test_limit_applies_to_cached_list(self, ttl_cache, pune, day):
        src = FakeSource("s", 1, [quote_record("wheat", 2100 + i, market=f"M{i}") for i in range(5)])
        agg = _agg([src], ttl_cache)
        assert len(await agg.fetch_quotes(pune, ["wheat"], limit=2, day=day)) == 2
        assert len(await agg.fetch_quotes(pune, ["wheat"], limit=4, day=day)) == 4
        assert src.calls == 1

    @pytest.mark.asyncio
    async def test_location_is_part_of_the_key(self, ttl_cache, pune, day):
        src = FakeSource("s", 1, [quote_record("wheat", 2100)])
        agg = _agg([src], ttl_cache)
        await agg.fetch_quotes(pune, ["wheat"], day=day)
        await agg.fetch_quotes(Location(city="Indore", state="Madhya Pradesh"), ["wheat"], day=day)
        assert src.calls == 2


class TestOrdering:
    @pytest.mark.asyncio
    async def test_requested_first_then_local_then_trend(self, ttl_cache, pune, day):
        src = FakeSource("s", 1, [
            quote_record("wheat", 2100, market="Delhi", trend="up"),
            quote_record("onion", 20, market="Lasalgaon", district="Nashik", state="Maharashtra", trend="down"),
            quote_record("onion", 22, market="Pune", district="Pune", state="Maharashtra", trend="up"),
            quote_record("onion", 21, market="Azadpur", district="Delhi", state="Delhi", trend="up"),
        ])
        agg = _agg([src], ttl_cache)
        quotes = await agg.fetch_quotes(pune, [], day=day)
        # nothing requested: local first, then up before down, then commodity name
        assert [(q.commodity, q.market) for q in quotes] == [
            ("onion", "Pune"),
            ("onion", "Lasalgaon"),
            ("onion", "Azadpur"),
            ("wheat", "Delhi"),
        ]

    @pytest.mark.asyncio
    async def test_deterministic_order(self, pune, day):
        from farmbot.utils.cache import SimpleTTLCache

        recs = [quote_record("wheat", 2100, market=m) for m in ("A", "B", "C")]
        runs = []
        for _ in range(2):
            agg = SourceAggregator([FakeSource("s", 1, recs)], cache=SimpleTTLCache())
            runs.append([q.market for q in await agg.fetch_quotes(pune, ["wheat"], day=day)])
        assert runs[0] == runs[1] == ["A", "B", "C"]


def test_market_insights(pune, day):
    quotes = synthetic.generate(pune, ["wheat", "onion", "rice"], day)
    info = market_insights(quotes, "en-IN")
    assert len(info["rising"]) + len(info["falling"]) == 3
    assert info["synthetic"] is True
    assert "rising" in info["summary"]
    assert "बढ़" in market_insights(quotes, "hi-IN")["summary"]
    assert all(t in (Trend.UP, Trend.DOWN) for t in (q.trend for q in quotes))
