"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, FrozenSchema
from models.fuel import FuelType, ALL_FUEL_TYPES
from models.station import Station, PriceObservation, CompetitorEntry
from models.competitor import (
    CompetitorMode,
    PricingStrategy,
    CompetitiveInsights,
    CompetitiveAlert,
    AlertType,
    OptimalWindows,
)
from models.spread import Quartile, MarketStats, Quartiles, UserPosition, SpreadResult
from models.ranking import RankTrend, PositionLabel, RankResult, StationRankings
from models.trends import (
    TrendDirection,
    TrendFit,
    TrendResult,
    StationTrends,
    SeasonalPattern,
    SeasonalPatterns,
)
from models.market import (
    Grouping,
    MarketAggregate,
    MarketPeriod,
    MarketSummary,
    MarketTrends,
    StationCorrelation,
)
from models.geo import AreaType, AreaRef, AreaStats, AreaComparison
from models.heatmap import Bounds, HeatMap, HeatMapCell
from models.recommendation import (
    RecommendationPriority,
    RecommendationRule,
    PricingRecommendation,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",

    # Domain records
    "FuelType",
    "ALL_FUEL_TYPES",
    "Station",
    "PriceObservation",
    "CompetitorEntry",

    # Competitors
    "CompetitorMode",
    "PricingStrategy",
    "CompetitiveInsights",
    "CompetitiveAlert",
    "AlertType",
    "OptimalWindows",

    # Spread
    "Quartile",
    "MarketStats",
    "Quartiles",
    "UserPosition",
    "SpreadResult",

    # Ranking
    "RankTrend",
    "PositionLabel",
    "RankResult",
    "StationRankings",

    # Trends
    "TrendDirection",
    "TrendFit",
    "TrendResult",
    "StationTrends",
    "SeasonalPattern",
    "SeasonalPatterns",

    # Market
    "Grouping",
    "MarketAggregate",
    "MarketPeriod",
    "MarketSummary",
    "MarketTrends",
    "StationCorrelation",

    # Geo
    "AreaType",
    "AreaRef",
    "AreaStats",
    "AreaComparison",

    # Heat map
    "Bounds",
    "HeatMap",
    "HeatMapCell",

    # Recommendations
    "RecommendationPriority",
    "RecommendationRule",
    "PricingRecommendation",
]
