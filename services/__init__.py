"""
Analytics services.

Each service handles one component; store adapters and the rank cache
are the only modules that touch external systems.
"""

from services.observation_store import ObservationStore, get_observation_store
from services.station_directory import StationDirectory, get_station_directory
from services.rank_cache import RankCache, InMemoryRankCache, get_rank_cache, rank_cache_key
from services.translation_service import TranslationService, get_translation_service
from services.price_enrichment_service import PriceEnrichmentService, get_price_enrichment_service
from services.competitor_service import CompetitorService, get_competitor_service
from services.spread_analysis_service import SpreadAnalysisService, get_spread_analysis_service
from services.price_ranking_service import PriceRankingService, get_price_ranking_service
from services.trend_analysis_service import TrendAnalysisService, get_trend_analysis_service
from services.market_aggregation_service import (
    MarketAggregationService,
    get_market_aggregation_service,
)
from services.geo_comparison_service import GeoComparisonService, get_geo_comparison_service
from services.heatmap_service import HeatMapService, get_heatmap_service
from services.recommendation_engine import RecommendationEngine, get_recommendation_engine

__all__ = [
    # Adapters
    "ObservationStore",
    "get_observation_store",
    "StationDirectory",
    "get_station_directory",
    "RankCache",
    "InMemoryRankCache",
    "get_rank_cache",
    "rank_cache_key",
    "TranslationService",
    "get_translation_service",

    # Components
    "PriceEnrichmentService",
    "get_price_enrichment_service",
    "CompetitorService",
    "get_competitor_service",
    "SpreadAnalysisService",
    "get_spread_analysis_service",
    "PriceRankingService",
    "get_price_ranking_service",
    "TrendAnalysisService",
    "get_trend_analysis_service",
    "MarketAggregationService",
    "get_market_aggregation_service",
    "GeoComparisonService",
    "get_geo_comparison_service",
    "HeatMapService",
    "get_heatmap_service",
    "RecommendationEngine",
    "get_recommendation_engine",
]
