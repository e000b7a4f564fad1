"""
Spread analysis service.

Descriptive statistics of competitor prices and where the user's price
sits within them. Computation runs on floats; values are rounded to
money precision only when the SpreadResult is built.
"""

from decimal import Decimal
from typing import Dict, Optional, Sequence

import structlog

from models.fuel import FuelType, ALL_FUEL_TYPES
from models.spread import MarketStats, Quartile, Quartiles, SpreadResult, UserPosition
from models.station import CompetitorEntry
from services.price_enrichment_service import (
    PriceEnrichmentService,
    get_price_enrichment_service,
)
from utils.statistics import Number, as_floats, mean, median, percentile, stddev, to_money

logger = structlog.get_logger(__name__)

OUTLIER_STDDEVS = 2


def determine_quartile(price: float, q1: float, q2: float, q3: float) -> Quartile:
    """First quartile boundary the price is <= to; Q4 above q3."""
    if price <= q1:
        return Quartile.Q1
    elif price <= q2:
        return Quartile.Q2
    elif price <= q3:
        return Quartile.Q3
    return Quartile.Q4


def is_outlier(price: float, avg: float, std: float) -> bool:
    """More than two standard deviations from the mean. Never with zero spread."""
    if std <= 0:
        return False
    return abs(price - avg) > OUTLIER_STDDEVS * std


def analyze_spread(
    user_price: Optional[Number],
    competitor_prices: Sequence[Optional[Number]],
) -> SpreadResult:
    """
    Compare one price with a set of competitor prices.

    Args:
        user_price: The station's own price (None if unknown)
        competitor_prices: Competitor prices; None entries are ignored

    Returns:
        SpreadResult, or SpreadResult.empty() when either side is missing
    """
    prices = as_floats(competitor_prices)
    if user_price is None or not prices:
        return SpreadResult.empty()

    user = float(user_price)
    low = min(prices)
    high = max(prices)
    avg = mean(prices)
    std = stddev(prices)
    q1 = percentile(prices, 25)
    q2 = percentile(prices, 50)
    q3 = percentile(prices, 75)

    from_avg_percent = (user - avg) / avg * 100 if avg > 0 else 0.0

    return SpreadResult(
        market=MarketStats(
            min=to_money(low),
            max=to_money(high),
            avg=to_money(avg),
            median=to_money(median(prices)),
            spread=to_money(high - low),
            stddev=to_money(std),
            sample_size=len(prices),
        ),
        quartiles=Quartiles(q1=to_money(q1), q2=to_money(q2), q3=to_money(q3)),
        position=UserPosition(
            user_price=to_money(user),
            from_min=to_money(user - low),
            from_max=to_money(high - user),
            from_avg=to_money(user - avg),
            from_avg_percent=to_money(from_avg_percent),
            quartile=determine_quartile(user, q1, q2, q3),
            is_outlier=is_outlier(user, avg, std),
        ),
    )


class SpreadAnalysisService:
    """Runs spread analysis for every fuel type of a station."""

    def __init__(self, enricher: Optional[PriceEnrichmentService] = None):
        self.enricher = enricher or get_price_enrichment_service()

    def analyze_fuel(
        self,
        fuel_type: FuelType,
        user_price: Optional[Decimal],
        competitors: Sequence[CompetitorEntry],
    ) -> SpreadResult:
        return analyze_spread(user_price, [c.price_for(fuel_type) for c in competitors])

    def analyze_all_fuel_types(
        self,
        station_id: str,
        competitors: Sequence[CompetitorEntry],
    ) -> Dict[FuelType, SpreadResult]:
        """
        Spread analysis per fuel type.

        The user's latest prices are fetched once; fuels without a user
        price or competitor prices get the empty result.
        """
        user_prices = self.enricher.get_latest_prices(station_id)

        analysis = {
            fuel_type: self.analyze_fuel(fuel_type, user_prices.get(fuel_type), competitors)
            for fuel_type in ALL_FUEL_TYPES
        }

        logger.info(
            "spread_analyzed",
            station_id=station_id,
            competitors=len(competitors),
            outliers=[f.value for f, r in analysis.items() if r.position.is_outlier]
        )
        return analysis


# Singleton instance
_spread_analysis_service: Optional[SpreadAnalysisService] = None


def get_spread_analysis_service() -> SpreadAnalysisService:
    """Get singleton instance of SpreadAnalysisService."""
    global _spread_analysis_service
    if _spread_analysis_service is None:
        _spread_analysis_service = SpreadAnalysisService()
    return _spread_analysis_service
