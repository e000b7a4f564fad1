"""
Market aggregation service.

Buckets observations into hourly/daily/weekly/monthly periods and
computes per-(period, fuel) statistics, including a true median computed
from the raw prices. Also compares against the trailing national
average and correlates station price series.
"""

import calendar
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from itertools import combinations
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from config import settings
from exceptions import InvalidGroupingError
from models.fuel import FuelType, ALL_FUEL_TYPES
from models.market import (
    AreaScope,
    Grouping,
    MarketAggregate,
    MarketPeriod,
    MarketSummary,
    MarketTrends,
    NationalComparison,
    StationCorrelation,
)
from models.station import PriceObservation
from services.observation_store import ObservationStore, day_range, get_observation_store
from services.station_directory import StationDirectory, get_station_directory
from utils.statistics import mean, median, pearson_correlation, round_to, stddev, to_money

logger = structlog.get_logger(__name__)


def _as_grouping(grouping: Union[Grouping, str]) -> Grouping:
    try:
        return Grouping(grouping)
    except ValueError:
        raise InvalidGroupingError(str(grouping))


def period_key(moment: datetime, grouping: Union[Grouping, str]) -> str:
    """
    Canonical bucket key for a timestamp.

    hourly "2025-02-14 09:00:00", daily "2025-02-14",
    weekly ISO "2025-W07", monthly "2025-02".

    Raises:
        InvalidGroupingError: If grouping is not recognized
    """
    grouping = _as_grouping(grouping)

    if grouping == Grouping.HOURLY:
        return moment.strftime("%Y-%m-%d %H:00:00")
    elif grouping == Grouping.WEEKLY:
        iso_year, iso_week, _ = moment.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    elif grouping == Grouping.MONTHLY:
        return moment.strftime("%Y-%m")
    return moment.strftime("%Y-%m-%d")


def period_label(key: str, grouping: Union[Grouping, str]) -> str:
    """
    Human-readable label for a period key.

    Weekly keys become a Monday - Sunday range, monthly keys "February 2025";
    other keys are returned unchanged.
    """
    grouping = _as_grouping(grouping)

    if grouping == Grouping.WEEKLY:
        year, week = key.split("-W")
        monday = date.fromisocalendar(int(year), int(week), 1)
        sunday = monday + timedelta(days=6)
        return f"{monday.isoformat()} - {sunday.isoformat()}"
    elif grouping == Grouping.MONTHLY:
        year, month = key.split("-")
        return f"{calendar.month_name[int(month)]} {year}"
    return key


def compare_to_national(local_avg: float, national_avg: Optional[float]) -> Optional[NationalComparison]:
    """Difference and percent versus the national average; None if unavailable or zero."""
    if national_avg is None or national_avg == 0:
        return None

    difference = local_avg - national_avg
    return NationalComparison(
        difference=to_money(difference),
        percent=to_money(difference / national_avg * 100),
    )


def aggregate_observations(
    observations: Sequence[PriceObservation],
    grouping: Union[Grouping, str],
    national: Optional[Mapping[FuelType, float]] = None,
) -> List[MarketPeriod]:
    """
    Bucket observations by (period, fuel) and compute statistics.

    Periods come back in key order, which is chronological for every
    grouping. Stddev is the sample standard deviation (0 for a single
    observation).
    """
    grouping = _as_grouping(grouping)
    national = national or {}

    buckets: Dict[Tuple[str, FuelType], List[PriceObservation]] = defaultdict(list)
    for obs in observations:
        buckets[(period_key(obs.observed_at, grouping), obs.fuel_type)].append(obs)

    periods: Dict[str, MarketPeriod] = {}
    for (key, fuel_type) in sorted(buckets, key=lambda k: (k[0], ALL_FUEL_TYPES.index(k[1]))):
        bucket = buckets[(key, fuel_type)]
        prices = [float(o.price) for o in bucket]
        avg = mean(prices)

        if key not in periods:
            periods[key] = MarketPeriod(period_key=key, label=period_label(key, grouping))

        periods[key].fuels[fuel_type] = MarketAggregate(
            period_key=key,
            label=periods[key].label,
            fuel_type=fuel_type,
            avg=to_money(avg),
            min=to_money(min(prices)),
            max=to_money(max(prices)),
            median=to_money(median(prices)),
            stddev=to_money(stddev(prices, sample=True)),
            station_count=len({o.station_id for o in bucket}),
            sample_size=len(bucket),
            vs_national=compare_to_national(avg, national.get(fuel_type)),
        )

    return list(periods.values())


def summarize(periods: Sequence[MarketPeriod]) -> MarketSummary:
    """
    Whole-window summary.

    period_change: percent change of each fuel's average from its first
    to its last period. volatility_index: mean over fuels of the average
    bucket stddev. total_stations: the largest bucket station count.
    """
    period_change = {}
    fuel_volatility = []
    total_stations = 0
    total_samples = 0

    for fuel_type in ALL_FUEL_TYPES:
        aggregates = [p.fuels[fuel_type] for p in periods if fuel_type in p.fuels]
        if not aggregates:
            continue

        first = aggregates[0].avg
        last = aggregates[-1].avg
        if first > 0:
            period_change[fuel_type] = to_money((last - first) / first * 100)

        fuel_volatility.append(mean([float(a.stddev) for a in aggregates]))
        total_stations = max(total_stations, max(a.station_count for a in aggregates))
        total_samples += sum(a.sample_size for a in aggregates)

    return MarketSummary(
        period_change=period_change,
        volatility_index=to_money(mean(fuel_volatility)),
        total_stations=total_stations,
        total_samples=total_samples,
    )


class MarketAggregationService:
    """Market reports backed by the station directory and observation store."""

    def __init__(
        self,
        directory: Optional[StationDirectory] = None,
        store: Optional[ObservationStore] = None,
    ):
        self.directory = directory or get_station_directory()
        self.store = store or get_observation_store()

    def national_average(self, now: Optional[datetime] = None) -> Dict[FuelType, float]:
        """Average price per fuel over the trailing national window."""
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=settings.national_average_days)
        return self.store.average_by_fuel(since, until=now)

    def get_market_trends(
        self,
        start: date,
        end: date,
        grouping: Union[Grouping, str] = Grouping.DAILY,
        region_id: Optional[str] = None,
        municipality_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MarketTrends:
        """
        Period-bucketed market statistics for an area (national when no area given).

        Raises:
            InvalidGroupingError: If grouping is not recognized
        """
        grouping = _as_grouping(grouping)
        scope = AreaScope(region_id=region_id, municipality_id=municipality_id)
        since, until = day_range(start, end)

        station_ids = None
        if not scope.is_national:
            stations = self.directory.active_in_scope(region_id, municipality_id)
            station_ids = [s.id for s in stations]

        observations = self.store.series(since, until, station_ids=station_ids)
        national = self.national_average(now)
        periods = aggregate_observations(observations, grouping, national)

        logger.info(
            "market_trends_aggregated",
            region_id=region_id,
            municipality_id=municipality_id,
            grouping=grouping.value,
            observations=len(observations),
            periods=len(periods)
        )

        return MarketTrends(
            area=scope,
            start=start,
            end=end,
            grouping=grouping,
            periods=periods,
            summary=summarize(periods),
        )

    def get_station_correlations(
        self,
        station_ids: Sequence[str],
        start: date,
        end: date,
        fuel_type: FuelType = FuelType.REGULAR,
    ) -> List[StationCorrelation]:
        """
        Pearson correlation for every pair of stations, strongest first.

        Series are fetched in one call; pairs whose correlation is
        undefined are omitted.
        """
        station_ids = list(dict.fromkeys(station_ids))
        if len(station_ids) < 2:
            return []

        since, until = day_range(start, end)
        observations = self.store.series(since, until, station_ids=station_ids, fuel_type=fuel_type)

        series: Dict[str, List[float]] = defaultdict(list)
        for obs in observations:
            series[obs.station_id].append(float(obs.price))

        correlations = []
        for station_a, station_b in combinations(station_ids, 2):
            value = pearson_correlation(series.get(station_a, []), series.get(station_b, []))
            if value is None:
                continue
            correlations.append(StationCorrelation(
                station_a=station_a,
                station_b=station_b,
                correlation=round_to(value, 3),
            ))

        correlations.sort(key=lambda c: abs(c.correlation), reverse=True)
        return correlations


# Singleton instance
_market_aggregation_service: Optional[MarketAggregationService] = None


def get_market_aggregation_service() -> MarketAggregationService:
    """Get singleton instance of MarketAggregationService."""
    global _market_aggregation_service
    if _market_aggregation_service is None:
        _market_aggregation_service = MarketAggregationService()
    return _market_aggregation_service
