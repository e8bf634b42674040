from decimal import Decimal

import pytest

from chronoprice.db.repos.price_store import PriceStore
from chronoprice.domain.enums import PriceSource
from chronoprice.domain.models.price import PriceKey, PricePoint
from chronoprice.oracle.interpolation import InterpolationEngine, calculate_confidence, linear_interpolate

TOKEN = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
NETWORK = "ethereum"
HOUR = 3600
DAY = 86400


async def _seed(session, *points: tuple[int, str]) -> PriceStore:
    store = PriceStore(session)
    await store.upsert_many(
        [PricePoint(token=TOKEN, network=NETWORK, timestamp=ts, price=Decimal(p)) for ts, p in points]
    )
    await session.commit()
    return store


class TestLinearInterpolate:
    def test_midpoint(self):
        price, ratio = linear_interpolate(1000, Decimal("10"), 2000, Decimal("20"), 1500)
        assert price == Decimal("15.00000000")
        assert ratio == 0.5

    def test_descending_bracket(self):
        price, ratio = linear_interpolate(0, Decimal("20"), 100, Decimal("10"), 25)
        assert price == Decimal("17.5")
        assert ratio == 0.25

    def test_rounds_to_eight_places(self):
        price, _ = linear_interpolate(0, Decimal("0"), 3, Decimal("1"), 1)
        assert price == Decimal("0.33333333")


class TestCalculateConfidence:
    def test_calm_midpoint_short_gap_is_base(self):
        assert calculate_confidence(Decimal("100"), Decimal("105"), 0.5, 10 * HOUR) == pytest.approx(0.8)

    def test_large_change_penalty(self):
        assert calculate_confidence(Decimal("10"), Decimal("20"), 0.5, HOUR) == pytest.approx(0.8 * 0.7)

    def test_moderate_change_penalty(self):
        assert calculate_confidence(Decimal("10"), Decimal("13"), 0.5, HOUR) == pytest.approx(0.8 * 0.85)

    def test_edge_ratio_penalty(self):
        assert calculate_confidence(Decimal("10"), Decimal("10"), 0.05, HOUR) == pytest.approx(0.8 * 0.9)
        assert calculate_confidence(Decimal("10"), Decimal("10"), 0.95, HOUR) == pytest.approx(0.8 * 0.9)
        assert calculate_confidence(Decimal("10"), Decimal("10"), 0.1, HOUR) == pytest.approx(0.8)

    def test_gap_penalties(self):
        assert calculate_confidence(Decimal("10"), Decimal("10"), 0.5, 30 * HOUR) == pytest.approx(0.8 * 0.9)
        assert calculate_confidence(Decimal("10"), Decimal("10"), 0.5, 72 * HOUR) == pytest.approx(0.8 * 0.8)
        assert calculate_confidence(Decimal("10"), Decimal("10"), 0.5, 24 * HOUR) == pytest.approx(0.8)

    @pytest.mark.parametrize("ratio", [0.05, 0.5])
    def test_confidence_never_rises_with_wider_gap(self, ratio):
        scores = [calculate_confidence(Decimal("10"), Decimal("12"), ratio, h * HOUR) for h in range(1, 51)]
        assert all(later <= earlier for earlier, later in zip(scores, scores[1:]))
        assert scores[-1] < scores[0]

    def test_all_penalties_compound(self):
        expected = 0.8 * 0.7 * 0.9 * 0.8
        assert calculate_confidence(Decimal("10"), Decimal("30"), 0.02, 6 * DAY) == pytest.approx(expected)

    def test_zero_before_price(self):
        assert calculate_confidence(Decimal("0"), Decimal("1"), 0.5, HOUR) == pytest.approx(0.8 * 0.7)
        assert calculate_confidence(Decimal("0"), Decimal("0"), 0.5, HOUR) == pytest.approx(0.8)

    def test_stays_within_bounds(self):
        value = calculate_confidence(Decimal("1"), Decimal("1000"), 0.0, 7 * DAY)
        assert 0.1 <= value <= 1.0


class TestInterpolationEngine:
    async def test_midpoint_estimate(self, session):
        store = await _seed(session, (1000, "10"), (2000, "20"))
        engine = InterpolationEngine(store)

        estimate = await engine.interpolate(TOKEN, NETWORK, 1500)

        assert estimate.price == Decimal("15")
        assert estimate.provenance.ratio == 0.5
        assert estimate.provenance.before_timestamp == 1000
        assert estimate.provenance.after_timestamp == 2000
        assert estimate.provenance.method == "linear"
        assert estimate.confidence == pytest.approx(0.8 * 0.7)

    async def test_estimate_is_persisted_with_provenance(self, session):
        store = await _seed(session, (1000, "10"), (2000, "20"))
        engine = InterpolationEngine(store)

        await engine.interpolate(TOKEN, NETWORK, 1250)

        stored = await store.get_exact(PriceKey(token=TOKEN, network=NETWORK, timestamp=1250))
        assert stored.source == PriceSource.INTERPOLATED
        assert stored.price == Decimal("12.5")
        assert stored.metadata["interpolation"]["before_timestamp"] == 1000
        assert stored.metadata["interpolation"]["ratio"] == 0.25

    async def test_no_point_before_returns_none(self, session):
        store = await _seed(session, (1000, "10"), (2000, "20"))
        assert await InterpolationEngine(store).interpolate(TOKEN, NETWORK, 500) is None

    async def test_no_point_after_returns_none(self, session):
        store = await _seed(session, (1000, "10"), (2000, "20"))
        assert await InterpolationEngine(store).interpolate(TOKEN, NETWORK, 2500) is None

    async def test_gap_exactly_at_limit_is_interpolated(self, session):
        store = await _seed(session, (0, "10"), (7 * DAY, "10"))
        estimate = await InterpolationEngine(store).interpolate(TOKEN, NETWORK, 3 * DAY)
        assert estimate is not None

    async def test_gap_over_limit_returns_none(self, session):
        store = await _seed(session, (0, "10"), (7 * DAY + 1, "10"))
        assert await InterpolationEngine(store).interpolate(TOKEN, NETWORK, 3 * DAY) is None

    async def test_custom_max_gap(self, session):
        store = await _seed(session, (0, "10"), (2 * HOUR, "10"))
        assert await InterpolationEngine(store, max_gap_seconds=HOUR).interpolate(TOKEN, NETWORK, HOUR) is None

    async def test_estimates_are_monotonic_between_points(self, session):
        store = await _seed(session, (0, "10"), (10 * HOUR, "20"))
        engine = InterpolationEngine(store)

        prices = []
        for hour in range(1, 10):
            estimate = await engine.interpolate(TOKEN, NETWORK, hour * HOUR)
            prices.append(estimate.price)

        assert prices == sorted(prices)
        assert all(Decimal("10") <= p <= Decimal("20") for p in prices)

    async def test_exact_timestamp_returns_stored_value(self, session):
        store = await _seed(session, (1000, "10"), (2000, "20"))

        estimate = await InterpolationEngine(store).interpolate(TOKEN, NETWORK, 1000)

        assert estimate.price == Decimal("10")
        assert estimate.confidence == 1.0
        assert estimate.provenance.method == "exact"
