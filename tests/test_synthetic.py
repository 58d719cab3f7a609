import datetime as dt

from farmbot.market import synthetic
from farmbot.models.domain import Location, Trend


class TestSeededRandom:
    def test_seed_is_stable_and_non_negative(self):
        assert synthetic.seed_for("tomato") == synthetic.seed_for("tomato")
        assert synthetic.seed_for("x" * 200) >= 0

    def test_seed_wraps_to_32_bits(self):
        assert synthetic.seed_for("a long commodity name" * 10) < 2 ** 31 + 1

    def test_random_in_unit_interval(self):
        for seed in (0, 1, 42, 2 ** 31 - 1):
            r = synthetic.seeded_random(seed)
            assert 0.0 <= r < 1.0


class TestGenerate:
    """Deterministic regional estimates"""

    def test_same_day_same_quotes(self, pune, day):
        a = synthetic.generate(pune, ["tomato"], day)
        b = synthetic.generate(pune, ["tomato"], day)
        assert a == b

    def test_values_move_across_days(self, pune):
        start = dt.date(2024, 3, 1)
        seen = {
            (q.price, q.trend, q.change_percent)
            for i in range(10)
            for q in synthetic.generate(pune, ["wheat"], start + dt.timedelta(days=i))
        }
        assert len(seen) > 1

    def test_only_requested_commodities(self, pune, day):
        quotes = synthetic.generate(pune, ["wheat", "onion"], day)
        assert {q.commodity for q in quotes} == {"wheat", "onion"}

    def test_default_basket_when_nothing_requested(self, pune, day):
        quotes = synthetic.generate(pune, [], day)
        assert [q.commodity for q in quotes] == list(synthetic.DEFAULT_BASKET)

    def test_unknown_commodity_is_skipped(self, pune, day):
        assert synthetic.generate(pune, ["xyzxyz"], day) == []

    def test_price_within_band(self, pune, day):
        for key, (base, variation, unit) in synthetic.BASE_PRICES.items():
            q = synthetic.generate(pune, [key], day)[0]
            assert q.price > 0
            assert abs(q.price - base) <= variation * 0.3 + 1
            assert q.unit == unit

    def test_trend_and_change(self, pune, day):
        q = synthetic.generate(pune, ["rice"], day)[0]
        assert q.trend in (Trend.UP, Trend.DOWN)
        assert 1.0 <= q.change_percent <= 9.0

    def test_labels_and_flags(self, pune, day):
        q = synthetic.generate(pune, ["tomato"], day)[0]
        assert q.synthetic is True
        assert q.source == synthetic.SOURCE_LABEL
        assert q.market == "Pune Regional Mandi"
        assert q.state == "Maharashtra"
        assert q.date == "2024-01-15"

    def test_labels_without_location(self, day):
        q = synthetic.generate(Location(city="Unknown"), ["tomato"], day)[0]
        assert "unknown" not in q.market.lower()
        assert q.market == "Nearby Regional Mandi"
        assert q.state == "India"
