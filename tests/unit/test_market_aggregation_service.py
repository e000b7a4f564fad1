"""
Unit tests for market aggregation, national comparison and correlations.
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from exceptions import InvalidGroupingError
from models.fuel import FuelType
from models.market import Grouping
from models.station import PriceObservation
from services.market_aggregation_service import (
    MarketAggregationService,
    aggregate_observations,
    compare_to_national,
    period_key,
    period_label,
    summarize,
)
from tests.factories import ObservationFactory, StationFactory


def observation(station_id: str, day: int, price: str, hour: int = 8) -> PriceObservation:
    return PriceObservation(
        station_id=station_id,
        fuel_type=FuelType.REGULAR,
        price=Decimal(price),
        observed_at=datetime(2025, 2, day, hour, 0, tzinfo=timezone.utc),
    )


# ===================
# PERIOD KEYS
# ===================

class TestPeriodKeys:

    MOMENT = datetime(2025, 2, 14, 9, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("grouping,expected", [
        (Grouping.HOURLY, "2025-02-14 09:00:00"),
        (Grouping.DAILY, "2025-02-14"),
        (Grouping.WEEKLY, "2025-W07"),
        (Grouping.MONTHLY, "2025-02"),
        ("daily", "2025-02-14"),
    ])
    def test_period_key(self, grouping, expected):
        assert period_key(self.MOMENT, grouping) == expected

    def test_iso_week_crosses_year(self):
        assert period_key(datetime(2024, 12, 30), Grouping.WEEKLY) == "2025-W01"

    def test_invalid_grouping(self):
        with pytest.raises(InvalidGroupingError) as exc_info:
            period_key(self.MOMENT, "yearly")
        assert exc_info.value.code == "INVALID_GROUPING"

    def test_weekly_label(self):
        assert period_label("2025-W07", Grouping.WEEKLY) == "2025-02-10 - 2025-02-16"

    def test_monthly_label(self):
        assert period_label("2025-02", Grouping.MONTHLY) == "February 2025"

    def test_daily_label_unchanged(self):
        assert period_label("2025-02-14", Grouping.DAILY) == "2025-02-14"


# ===================
# AGGREGATION
# ===================

class TestAggregateObservations:

    @pytest.fixture
    def observations(self):
        return [
            observation("s1", 13, "20.00"),
            observation("s2", 13, "21.00"),
            observation("s3", 13, "23.00"),
            observation("s1", 14, "20.50"),
        ]

    def test_bucket_statistics(self, observations):
        periods = aggregate_observations(observations, Grouping.DAILY)

        assert [p.period_key for p in periods] == ["2025-02-13", "2025-02-14"]
        day = periods[0].fuels[FuelType.REGULAR]
        assert day.avg == Decimal("21.33")
        assert day.median == Decimal("21.00")
        assert day.min == Decimal("20.00")
        assert day.max == Decimal("23.00")
        assert day.stddev == Decimal("1.53")
        assert day.station_count == 3
        assert day.sample_size == 3

    def test_single_observation_has_zero_stddev(self, observations):
        periods = aggregate_observations(observations, Grouping.DAILY)
        assert periods[1].fuels[FuelType.REGULAR].stddev == Decimal("0.00")

    def test_station_count_is_distinct(self):
        periods = aggregate_observations(
            [observation("s1", 14, "20.00", hour=8), observation("s1", 14, "20.40", hour=15)],
            Grouping.DAILY,
        )
        aggregate = periods[0].fuels[FuelType.REGULAR]
        assert aggregate.station_count == 1
        assert aggregate.sample_size == 2

    def test_vs_national(self, observations):
        periods = aggregate_observations(observations, Grouping.DAILY, {FuelType.REGULAR: 20.0})
        comparison = periods[0].fuels[FuelType.REGULAR].vs_national

        assert comparison.difference == Decimal("1.33")
        assert comparison.percent == Decimal("6.67")

    def test_weekly_grouping_merges_days(self, observations):
        periods = aggregate_observations(observations, Grouping.WEEKLY)

        assert len(periods) == 1
        assert periods[0].label == "2025-02-10 - 2025-02-16"
        assert periods[0].fuels[FuelType.REGULAR].sample_size == 4

    def test_summary(self, observations):
        summary = summarize(aggregate_observations(observations, Grouping.DAILY))

        assert summary.period_change[FuelType.REGULAR] == Decimal("-3.89")
        assert summary.volatility_index == Decimal("0.77")
        assert summary.total_stations == 3
        assert summary.total_samples == 4

    def test_empty(self):
        assert aggregate_observations([], Grouping.DAILY) == []
        summary = summarize([])
        assert summary.period_change == {}
        assert summary.total_samples == 0

    def test_compare_to_national_unavailable(self):
        assert compare_to_national(20.5, None) is None
        assert compare_to_national(20.5, 0) is None


# ===================
# SERVICE
# ===================

class TestMarketAggregationService:

    @pytest.fixture
    def service(self, directory, store, mock_supabase):
        mock_supabase.set_table_data("stations", [
            StationFactory.create(id="a", region_id="reg-1"),
            StationFactory.create(id="b", region_id="reg-1"),
            StationFactory.create(id="c", region_id="reg-2", municipality_id="mun-9"),
        ])
        mock_supabase.set_table_data("price_observations", [
            ObservationFactory.create(station_id="a", price=20.0, observed_at="2025-02-13T08:00:00+00:00"),
            ObservationFactory.create(station_id="b", price=21.0, observed_at="2025-02-13T08:00:00+00:00"),
            ObservationFactory.create(station_id="c", price=19.0, observed_at="2025-02-13T08:00:00+00:00"),
            ObservationFactory.create(station_id="a", price=20.5, observed_at="2025-02-14T08:00:00+00:00"),
            ObservationFactory.create(station_id="b", price=21.5, observed_at="2025-02-14T08:00:00+00:00"),
            ObservationFactory.create(station_id="c", price=19.0, observed_at="2025-02-14T08:00:00+00:00"),
        ])
        return MarketAggregationService(directory=directory, store=store)

    def test_region_scope(self, service, now):
        trends = service.get_market_trends(
            date(2025, 2, 13), date(2025, 2, 14), "daily", region_id="reg-1", now=now
        )

        assert trends.area.region_id == "reg-1"
        assert len(trends.periods) == 2
        first = trends.periods[0].fuels[FuelType.REGULAR]
        assert first.avg == Decimal("20.50")
        assert first.station_count == 2
        assert trends.summary.period_change[FuelType.REGULAR] == Decimal("2.44")

    def test_national_average_includes_every_station(self, service, now):
        """National mean: 121 / 6 = 20.1667; reg-1 day one: 20.50."""
        trends = service.get_market_trends(
            date(2025, 2, 13), date(2025, 2, 14), Grouping.DAILY, region_id="reg-1", now=now
        )
        assert trends.periods[0].fuels[FuelType.REGULAR].vs_national.difference == Decimal("0.33")

    def test_national_scope(self, service, now):
        trends = service.get_market_trends(date(2025, 2, 13), date(2025, 2, 14), now=now)

        assert trends.area.is_national
        assert trends.periods[0].fuels[FuelType.REGULAR].station_count == 3

    def test_invalid_grouping(self, service, now):
        with pytest.raises(InvalidGroupingError):
            service.get_market_trends(date(2025, 2, 13), date(2025, 2, 14), "yearly", now=now)


class TestStationCorrelations:

    @pytest.fixture
    def service(self, directory, store, mock_supabase):
        mock_supabase.set_table_data("price_observations", (
            ObservationFactory.series("s1", [20.0, 20.5, 21.0])
            + ObservationFactory.series("s2", [21.0, 21.5, 22.0])
            + ObservationFactory.series("s3", [22.0, 21.5, 21.0])
            + ObservationFactory.series("s4", [20.0, 20.0, 20.0])
        ))
        return MarketAggregationService(directory=directory, store=store)

    def test_pairwise_correlations(self, service, mock_supabase):
        correlations = service.get_station_correlations(
            ["s1", "s2", "s3", "s4"], date(2025, 2, 14), date(2025, 2, 16)
        )

        # s4 is constant, so its pairs are undefined and omitted
        assert len(correlations) == 3
        assert all(abs(c.correlation) == 1.0 for c in correlations)
        values = {(c.station_a, c.station_b): c.correlation for c in correlations}
        assert values[("s1", "s2")] == 1.0
        assert values[("s1", "s3")] == -1.0
        assert mock_supabase.query_counts["price_observations"] == 1

    def test_sorted_by_strength(self, service, mock_supabase):
        mock_supabase.set_table_data("price_observations", (
            ObservationFactory.series("s1", [20.0, 20.5, 21.0, 21.2])
            + ObservationFactory.series("s2", [21.0, 21.6, 21.9, 22.4])
            + ObservationFactory.series("s3", [20.0, 20.9, 20.1, 20.8])
        ))

        correlations = service.get_station_correlations(
            ["s1", "s2", "s3"], date(2025, 2, 14), date(2025, 2, 17)
        )

        strengths = [abs(c.correlation) for c in correlations]
        assert strengths == sorted(strengths, reverse=True)

    def test_needs_two_stations(self, service):
        assert service.get_station_correlations(["s1"], date(2025, 2, 14), date(2025, 2, 16)) == []
