"""
Unit tests for price ranking and the daily rank cache.
"""

import pytest
from datetime import date
from decimal import Decimal

from exceptions import StationNotFoundError
from models.fuel import FuelType
from models.ranking import PositionLabel, RankResult, RankTrend
from services.price_ranking_service import (
    PriceRankingService,
    calculate_percentile,
    competition_ranks,
    determine_position,
    determine_trend,
    overall_position,
    rank_price,
)
from services.rank_cache import InMemoryRankCache, rank_cache_key
from tests.conftest import FakeRankCache

TODAY = date(2025, 2, 14)


# ===================
# PURE RULES
# ===================

class TestCompetitionRanks:

    @pytest.mark.parametrize("prices,expected", [
        ([10, 10, 12], [1, 1, 3]),
        ([12, 10, 10], [3, 1, 1]),
        ([1, 2, 2, 3], [1, 2, 2, 4]),
        ([5], [1]),
        ([], []),
    ])
    def test_ties_share_lowest_rank(self, prices, expected):
        assert competition_ranks(prices) == expected

    def test_decimal_prices(self):
        prices = [Decimal("20.50"), Decimal("20.5"), Decimal("19.99")]
        assert competition_ranks(prices) == [2, 2, 1]


class TestPercentileAndLabels:

    @pytest.mark.parametrize("rank,total,expected", [
        (1, 3, 0.0),
        (2, 3, 50.0),
        (3, 3, 100.0),
        (1, 1, 0.0),
    ])
    def test_calculate_percentile(self, rank, total, expected):
        assert calculate_percentile(rank, total) == expected

    @pytest.mark.parametrize("pct,expected", [
        (0, PositionLabel.CHEAPEST),
        (10, PositionLabel.VERY_COMPETITIVE),
        (25, PositionLabel.VERY_COMPETITIVE),
        (50, PositionLabel.COMPETITIVE),
        (75, PositionLabel.ABOVE_AVERAGE),
        (80, PositionLabel.EXPENSIVE),
    ])
    def test_determine_position(self, pct, expected):
        assert determine_position(pct) == expected

    def test_determine_trend(self):
        assert determine_trend(2, None) == RankTrend.NEW
        assert determine_trend(2, 3) == RankTrend.IMPROVING
        assert determine_trend(3, 2) == RankTrend.WORSENING
        assert determine_trend(2, 2) == RankTrend.MAINTAINING


class TestOverallPosition:

    def _rankings(self, *labels):
        fuels = [FuelType.REGULAR, FuelType.PREMIUM, FuelType.DIESEL]
        return {
            fuel: RankResult(fuel_type=fuel, position_label=label)
            for fuel, label in zip(fuels, labels)
        }

    def test_two_cheapest(self):
        rankings = self._rankings(PositionLabel.CHEAPEST, PositionLabel.CHEAPEST, PositionLabel.EXPENSIVE)
        assert overall_position(rankings) == PositionLabel.VERY_COMPETITIVE

    def test_two_expensive(self):
        rankings = self._rankings(PositionLabel.EXPENSIVE, PositionLabel.EXPENSIVE, PositionLabel.CHEAPEST)
        assert overall_position(rankings) == PositionLabel.EXPENSIVE

    def test_any_competitive(self):
        rankings = self._rankings(PositionLabel.VERY_COMPETITIVE, PositionLabel.ABOVE_AVERAGE)
        assert overall_position(rankings) == PositionLabel.COMPETITIVE

    def test_mixed(self):
        rankings = self._rankings(PositionLabel.CHEAPEST, PositionLabel.EXPENSIVE)
        assert overall_position(rankings) == PositionLabel.MIXED

    def test_no_data(self):
        rankings = self._rankings(PositionLabel.NO_DATA, PositionLabel.NO_DATA)
        assert overall_position(rankings) == PositionLabel.NO_DATA


class TestRankPrice:

    def test_user_among_competitors(self):
        result = rank_price(
            FuelType.REGULAR,
            Decimal("20.50"),
            [Decimal("20.00"), Decimal("21.00"), Decimal("19.50")],
        )

        assert result.rank == 3
        assert result.total == 4
        assert result.percentile == 66.7
        assert result.diff_from_first == Decimal("1.00")
        assert result.position_label == PositionLabel.ABOVE_AVERAGE
        assert result.trend == RankTrend.NEW

    def test_tie_with_cheapest(self):
        result = rank_price(FuelType.REGULAR, Decimal("10"), [Decimal("10"), Decimal("12")])

        assert result.rank == 1
        assert result.percentile == 0.0
        assert result.diff_from_first == Decimal("0.00")
        assert result.position_label == PositionLabel.CHEAPEST

    def test_alone_is_cheapest(self):
        result = rank_price(FuelType.DIESEL, Decimal("24.10"), [None])
        assert (result.rank, result.total, result.percentile) == (1, 1, 0.0)

    def test_no_user_price(self):
        result = rank_price(FuelType.PREMIUM, None, [Decimal("22.00")])

        assert result.rank is None
        assert result.total == 0
        assert result.position_label == PositionLabel.NO_DATA
        assert result.trend == RankTrend.UNKNOWN

    def test_previous_rank_sets_trend(self):
        result = rank_price(FuelType.REGULAR, Decimal("20.00"), [Decimal("21.00")], previous_rank=2)
        assert result.trend == RankTrend.IMPROVING
        assert result.previous_rank == 2


# ===================
# SERVICE + CACHE
# ===================

class TestPriceRankingService:

    @pytest.fixture
    def service(self, enricher, competitor_service, fake_cache):
        return PriceRankingService(cache=fake_cache, enricher=enricher, competitors=competitor_service)

    def test_rank_station_combined(self, service, sample_market):
        rankings = service.rank_station("user", "combined", 5.0, today=TODAY)

        regular = rankings.rankings[FuelType.REGULAR]
        assert regular.rank == 3
        assert regular.total == 4
        assert regular.trend == RankTrend.NEW
        assert rankings.rankings[FuelType.PREMIUM].position_label == PositionLabel.NO_DATA
        assert rankings.overall_position == PositionLabel.MIXED

    def test_rank_station_radius(self, service, sample_market):
        rankings = service.rank_station("user", "radius", 5.0, today=TODAY)

        regular = rankings.rankings[FuelType.REGULAR]
        assert (regular.rank, regular.total) == (2, 3)
        assert rankings.overall_position == PositionLabel.COMPETITIVE

    def test_writes_todays_rank_with_ttl(self, service, sample_market, fake_cache):
        service.rank_station("user", "combined", 5.0, today=TODAY)

        key = "ranking:user:regular:2025-02-14"
        assert fake_cache.values[key] == 3
        assert fake_cache.ttls[key] == 172800
        # No price, nothing cached
        assert "ranking:user:premium:2025-02-14" not in fake_cache.values

    def test_trend_from_yesterday(self, enricher, competitor_service, sample_market):
        cache = FakeRankCache({"ranking:user:regular:2025-02-13": 4})
        service = PriceRankingService(cache=cache, enricher=enricher, competitors=competitor_service)

        regular = service.rank_station("user", "combined", 5.0, today=TODAY).rankings[FuelType.REGULAR]

        assert regular.previous_rank == 4
        assert regular.trend == RankTrend.IMPROVING

    def test_unknown_station(self, service, sample_market):
        with pytest.raises(StationNotFoundError):
            service.rank_station("missing", today=TODAY)


class TestInMemoryRankCache:

    def test_key_format(self):
        assert rank_cache_key("123", FuelType.REGULAR, TODAY) == "ranking:123:regular:2025-02-14"

    def test_set_and_get(self):
        cache = InMemoryRankCache()
        cache.set("k", 3, ttl_seconds=60)
        assert cache.get("k") == 3

    def test_missing_key(self):
        assert InMemoryRankCache().get("nope") is None

    def test_expired_entry(self):
        cache = InMemoryRankCache()
        cache.set("k", 3, ttl_seconds=-1)
        assert cache.get("k") is None

    def test_delete(self):
        cache = InMemoryRankCache()
        cache.set("k", 3, ttl_seconds=60)
        cache.delete("k")
        assert cache.get("k") is None
