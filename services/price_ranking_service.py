"""
Price ranking service.

Ranks a station's price among its competitors per fuel type using
competition ranking (ties share the lowest rank). Day-over-day trend
comes from yesterday's rank kept in an injected cache.
"""

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union

import structlog

from config import settings
from models.competitor import CompetitorMode
from models.fuel import FuelType, ALL_FUEL_TYPES
from models.ranking import PositionLabel, RankResult, RankTrend, StationRankings
from models.station import CompetitorEntry
from services.competitor_service import CompetitorService, get_competitor_service
from services.price_enrichment_service import (
    PriceEnrichmentService,
    get_price_enrichment_service,
)
from services.rank_cache import RankCache, get_rank_cache, rank_cache_key
from utils.statistics import Number, round_to, to_money

logger = structlog.get_logger(__name__)


def competition_ranks(prices: Sequence[Number]) -> List[int]:
    """
    Competition rank of each price, in input order.

    Walks the prices in ascending order; the rank only advances to
    position+1 when the price differs from the previous one.
    [10, 10, 12] -> [1, 1, 3]
    """
    order = sorted(range(len(prices)), key=lambda i: prices[i])
    ranks = [0] * len(prices)

    rank = 1
    previous = None
    for position, index in enumerate(order):
        if previous is not None and prices[index] > previous:
            rank = position + 1
        ranks[index] = rank
        previous = prices[index]

    return ranks


def calculate_percentile(rank: int, total: int) -> float:
    """(rank-1)/(total-1)*100; 0 when there is nobody to compare with."""
    if total <= 1:
        return 0.0
    return (rank - 1) / (total - 1) * 100


def determine_trend(current_rank: int, previous_rank: Optional[int]) -> RankTrend:
    """Compare today's rank with yesterday's (lower rank number is better)."""
    if previous_rank is None:
        return RankTrend.NEW
    if current_rank < previous_rank:
        return RankTrend.IMPROVING
    elif current_rank > previous_rank:
        return RankTrend.WORSENING
    return RankTrend.MAINTAINING


def determine_position(percentile: float) -> PositionLabel:
    """
    Position label from the rank percentile.

    - CHEAPEST: 0
    - VERY_COMPETITIVE: <= 25
    - COMPETITIVE: <= 50
    - ABOVE_AVERAGE: <= 75
    - EXPENSIVE: > 75
    """
    if percentile == 0:
        return PositionLabel.CHEAPEST
    elif percentile <= 25:
        return PositionLabel.VERY_COMPETITIVE
    elif percentile <= 50:
        return PositionLabel.COMPETITIVE
    elif percentile <= 75:
        return PositionLabel.ABOVE_AVERAGE
    return PositionLabel.EXPENSIVE


def overall_position(rankings: Dict[FuelType, RankResult]) -> PositionLabel:
    """
    Summarize per-fuel positions into one label.

    Two or more cheapest fuels -> VERY_COMPETITIVE; two or more expensive
    -> EXPENSIVE; any (very) competitive fuel -> COMPETITIVE; else MIXED.
    """
    positions = Counter(
        r.position_label for r in rankings.values()
        if r.position_label != PositionLabel.NO_DATA
    )
    if not positions:
        return PositionLabel.NO_DATA

    if positions[PositionLabel.CHEAPEST] >= 2:
        return PositionLabel.VERY_COMPETITIVE
    if positions[PositionLabel.EXPENSIVE] >= 2:
        return PositionLabel.EXPENSIVE
    if positions[PositionLabel.COMPETITIVE] or positions[PositionLabel.VERY_COMPETITIVE]:
        return PositionLabel.COMPETITIVE
    return PositionLabel.MIXED


def rank_price(
    fuel_type: FuelType,
    user_price: Optional[Decimal],
    competitor_prices: Sequence[Optional[Decimal]],
    previous_rank: Optional[int] = None,
) -> RankResult:
    """
    Rank the user's price among competitor prices for one fuel.

    Returns the no-data result when the user has no price.
    """
    if user_price is None:
        return RankResult(fuel_type=fuel_type)

    # User goes last so its index is known after ranking
    prices = [p for p in competitor_prices if p is not None] + [user_price]
    ranks = competition_ranks(prices)
    rank = ranks[-1]
    total = len(prices)
    pct = calculate_percentile(rank, total)

    return RankResult(
        fuel_type=fuel_type,
        rank=rank,
        total=total,
        percentile=round_to(pct, 1),
        price=user_price,
        diff_from_first=to_money(user_price - min(prices)),
        position_label=determine_position(pct),
        trend=determine_trend(rank, previous_rank),
        previous_rank=previous_rank,
    )


class PriceRankingService:
    """
    Ranks stations and maintains the daily rank cache.

    The cache is injected; any object with get(key) and
    set(key, value, ttl_seconds) works.
    """

    def __init__(
        self,
        cache: Optional[RankCache] = None,
        enricher: Optional[PriceEnrichmentService] = None,
        competitors: Optional[CompetitorService] = None,
    ):
        self.cache = cache if cache is not None else get_rank_cache()
        self.enricher = enricher or get_price_enrichment_service()
        self.competitors = competitors or get_competitor_service()

    def _previous_rank(self, station_id: str, fuel_type: FuelType, today: date) -> Optional[int]:
        value = self.cache.get(rank_cache_key(station_id, fuel_type, today - timedelta(days=1)))
        return int(value) if value is not None else None

    def calculate_rankings(
        self,
        station_id: str,
        competitors: Sequence[CompetitorEntry],
        today: Optional[date] = None,
    ) -> StationRankings:
        """
        Rank a station against a competitor set for every fuel type.

        Reads yesterday's rank from the cache and stores today's.
        """
        today = today or datetime.now(timezone.utc).date()
        user_prices = self.enricher.get_latest_prices(station_id)

        logger.info(
            "calculating_rankings",
            station_id=station_id,
            competitors=len(competitors),
            day=today.isoformat()
        )

        rankings = {}
        for fuel_type in ALL_FUEL_TYPES:
            previous = self._previous_rank(station_id, fuel_type, today)
            result = rank_price(
                fuel_type,
                user_prices.get(fuel_type),
                [c.price_for(fuel_type) for c in competitors],
                previous_rank=previous,
            )
            if result.rank is not None:
                self.cache.set(
                    rank_cache_key(station_id, fuel_type, today),
                    result.rank,
                    settings.rank_cache_ttl_seconds,
                )
            rankings[fuel_type] = result

        return StationRankings(
            station_id=station_id,
            rankings=rankings,
            overall_position=overall_position(rankings),
        )

    def rank_station(
        self,
        station_id: str,
        mode: Union[CompetitorMode, str] = CompetitorMode.RADIUS,
        radius_km: Optional[float] = None,
        today: Optional[date] = None,
    ) -> StationRankings:
        """
        Resolve competitors and rank the station.

        Raises:
            StationNotFoundError: If the station is unknown or inactive
        """
        competitors = self.competitors.get_competitors(station_id, mode, radius_km)
        return self.calculate_rankings(station_id, competitors, today=today)


# Singleton instance
_price_ranking_service: Optional[PriceRankingService] = None


def get_price_ranking_service() -> PriceRankingService:
    """Get singleton instance of PriceRankingService."""
    global _price_ranking_service
    if _price_ranking_service is None:
        _price_ranking_service = PriceRankingService()
    return _price_ranking_service
