"""
Trend analysis service.

Regression-based direction, slope and confidence per fuel, volatility,
moving average, and weekday/month seasonality detection.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Sequence

import structlog

from config import settings
from exceptions import StationNotFoundError
from models.fuel import FuelType, ALL_FUEL_TYPES
from models.station import PriceObservation
from models.trends import (
    MarketComparison,
    MarketPosition,
    PricePoint,
    SeasonalPattern,
    SeasonalPatterns,
    StationTrends,
    TrendDirection,
    TrendFit,
    TrendPeriod,
    TrendResult,
)
from services.observation_store import ObservationStore, day_range, get_observation_store
from services.station_directory import StationDirectory, get_station_directory
from utils.statistics import (
    Number,
    as_floats,
    linear_regression,
    mean,
    r_squared,
    round_to,
    stddev,
    to_money,
)

logger = structlog.get_logger(__name__)


# ===================
# PURE CALCULATIONS
# ===================

def calculate_volatility(values: Sequence[Number]) -> float:
    """Population stddev; 0 for fewer than 2 points or a constant series."""
    prices = as_floats(values)
    if len(prices) < 2 or len(set(prices)) == 1:
        return 0.0
    return stddev(prices)


def calculate_r_squared(values: Sequence[Number], slope: float, intercept: float) -> float:
    """R² of value = slope*index + intercept, clamped to [0, 1]."""
    ys = as_floats(values)
    xs = [float(i) for i in range(len(ys))]
    return r_squared(xs, ys, slope, intercept)


def classify_direction(slope: float, threshold: float) -> TrendDirection:
    if slope > threshold:
        return TrendDirection.RISING
    elif slope < -threshold:
        return TrendDirection.FALLING
    return TrendDirection.STABLE


def calculate_trend(values: Sequence[Number], threshold: Optional[float] = None) -> TrendFit:
    """
    Fit a line over the series index and classify it.

    Fewer than 2 points -> stable/0/0. A constant series -> stable/0/1.0.
    """
    if threshold is None:
        threshold = settings.trend_direction_threshold

    prices = as_floats(values)
    if len(prices) < 2:
        return TrendFit(direction=TrendDirection.STABLE, slope=0.0, confidence=0.0)
    if len(set(prices)) == 1:
        return TrendFit(direction=TrendDirection.STABLE, slope=0.0, confidence=1.0)

    fit = linear_regression(prices)
    if fit is None:
        return TrendFit(direction=TrendDirection.STABLE, slope=0.0, confidence=0.0)

    return TrendFit(
        direction=classify_direction(fit.slope, threshold),
        slope=fit.slope,
        confidence=max(0.0, min(1.0, fit.r_squared)),
    )


def moving_average(values: Sequence[Number], window: int) -> Optional[float]:
    """Mean of the last `window` values; None if there are fewer."""
    prices = as_floats(values)
    if window <= 0 or len(prices) < window:
        return None
    return mean(prices[-window:])


def _bucket_pattern(buckets: Dict[int, List[float]], threshold: float) -> SeasonalPattern:
    pattern = {key: mean(prices) for key, prices in sorted(buckets.items()) if prices}
    variance = calculate_volatility(list(pattern.values())) if len(pattern) > 1 else 0.0
    return SeasonalPattern(
        pattern=pattern,
        variance=round_to(variance, 4),
        significant=variance > threshold,
    )


def detect_seasonal_patterns(
    points: Sequence[PricePoint],
    weekly_threshold: Optional[float] = None,
    monthly_threshold: Optional[float] = None,
) -> SeasonalPatterns:
    """
    Weekday and month seasonality.

    Prices are averaged per ISO weekday (1-7) and per month (1-12); a
    pattern is significant when the stddev across bucket averages
    exceeds its threshold.
    """
    if weekly_threshold is None:
        weekly_threshold = settings.weekly_seasonality_threshold
    if monthly_threshold is None:
        monthly_threshold = settings.monthly_seasonality_threshold

    by_weekday: Dict[int, List[float]] = defaultdict(list)
    by_month: Dict[int, List[float]] = defaultdict(list)
    for point in points:
        by_weekday[point.date.isoweekday()].append(float(point.price))
        by_month[point.date.month].append(float(point.price))

    weekly = _bucket_pattern(by_weekday, weekly_threshold)
    monthly = _bucket_pattern(by_month, monthly_threshold)

    return SeasonalPatterns(
        weekly=weekly,
        monthly=monthly,
        has_pattern=weekly.significant or monthly.significant,
    )


def compare_to_market(current: float, market_avg: Optional[float]) -> Optional[MarketComparison]:
    """Current price versus a market average; None without an average."""
    if market_avg is None:
        return None

    difference = current - market_avg
    percent = difference / market_avg * 100 if market_avg > 0 else 0.0
    # Compare at money precision so float noise does not flip the label
    rounded = to_money(difference)
    if rounded > 0:
        position = MarketPosition.ABOVE
    elif rounded < 0:
        position = MarketPosition.BELOW
    else:
        position = MarketPosition.EQUAL

    return MarketComparison(
        difference=rounded,
        percent=to_money(percent),
        position=position,
    )


def analyze_fuel_trend(
    observations: Sequence[PriceObservation],
    market_avg: Optional[float] = None,
    threshold: Optional[float] = None,
    window: Optional[int] = None,
) -> Optional[TrendResult]:
    """
    Trend of one fuel's observations (oldest first).

    Returns None for an empty series.
    """
    if not observations:
        return None

    window = window or settings.moving_average_window
    prices = [float(o.price) for o in observations]
    current = prices[-1]
    first = prices[0]

    # min()/max() keep the earliest observation on ties
    lowest = min(observations, key=lambda o: o.price)
    highest = max(observations, key=lambda o: o.price)

    fit = calculate_trend(prices, threshold)
    change_percent = (current - first) / first * 100 if first > 0 else 0.0

    return TrendResult(
        current=to_money(current),
        avg=to_money(mean(prices)),
        min=PricePoint(price=to_money(lowest.price), date=lowest.observed_at.date()),
        max=PricePoint(price=to_money(highest.price), date=highest.observed_at.date()),
        volatility=to_money(calculate_volatility(prices)),
        direction=fit.direction,
        slope=round_to(fit.slope, 3),
        confidence=round_to(fit.confidence, 2),
        change_percent=to_money(change_percent),
        vs_market=compare_to_market(current, market_avg),
        moving_average=to_money(moving_average(prices, window)),
        sample_size=len(prices),
    )


# ===================
# SERVICE
# ===================

class TrendAnalysisService:
    """Station trend reports backed by the observation store."""

    def __init__(
        self,
        directory: Optional[StationDirectory] = None,
        store: Optional[ObservationStore] = None,
    ):
        self.directory = directory or get_station_directory()
        self.store = store or get_observation_store()

    def _require_station(self, station_id: str):
        station = self.directory.get(station_id)
        if station is None:
            logger.warning("station_not_found", station_id=station_id)
            raise StationNotFoundError(station_id)
        return station

    def _market_average(self, municipality_id: Optional[str], start: date, end: date) -> Dict[FuelType, float]:
        """Average observed price per fuel across the municipality's stations."""
        if municipality_id is None:
            return {}
        stations = self.directory.active_in_municipality(municipality_id)
        since, until = day_range(start, end)
        return self.store.average_by_fuel(since, until, station_ids=[s.id for s in stations])

    def calculate_station_trends(self, station_id: str, start: date, end: date) -> StationTrends:
        """
        Per-fuel trends for a station over whole days start..end.

        Fuels without observations in the window are absent.

        Raises:
            StationNotFoundError: If the station does not exist
        """
        station = self._require_station(station_id)
        since, until = day_range(start, end)

        observations = self.store.series(since, until, station_ids=[station_id])
        market = self._market_average(station.municipality_id, start, end)

        by_fuel: Dict[FuelType, List[PriceObservation]] = defaultdict(list)
        for obs in observations:
            by_fuel[obs.fuel_type].append(obs)

        trends = {}
        for fuel_type in ALL_FUEL_TYPES:
            result = analyze_fuel_trend(by_fuel.get(fuel_type, []), market.get(fuel_type))
            if result is not None:
                trends[fuel_type] = result

        logger.info(
            "station_trends_calculated",
            station_id=station_id,
            observations=len(observations),
            fuels=[f.value for f in trends]
        )

        return StationTrends(
            station_id=station.id,
            station_name=station.name,
            period=TrendPeriod(start=start, end=end, days=(end - start).days),
            trends=trends,
        )

    def station_seasonality(
        self,
        station_id: str,
        fuel_type: FuelType,
        start: date,
        end: date,
    ) -> SeasonalPatterns:
        """
        Seasonality of one station's fuel price over a window.

        Raises:
            StationNotFoundError: If the station does not exist
        """
        self._require_station(station_id)
        since, until = day_range(start, end)
        observations = self.store.series(since, until, station_ids=[station_id], fuel_type=fuel_type)

        points = [PricePoint(price=o.price, date=o.observed_at.date()) for o in observations]
        return detect_seasonal_patterns(points)


# Singleton instance
_trend_analysis_service: Optional[TrendAnalysisService] = None


def get_trend_analysis_service() -> TrendAnalysisService:
    """Get singleton instance of TrendAnalysisService."""
    global _trend_analysis_service
    if _trend_analysis_service is None:
        _trend_analysis_service = TrendAnalysisService()
    return _trend_analysis_service
