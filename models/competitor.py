"""
Competitive insight models derived from a competitor set.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from models.base import BaseSchema
from models.fuel import FuelType


class CompetitorMode(str, Enum):
    """How the competitor set is resolved."""

    RADIUS = "radius"
    MUNICIPALITY = "municipality"
    COMBINED = "combined"


class PricingStrategy(str, Enum):
    """Brand strategy from the spread of its per-fuel averages."""

    UNIFORM = "uniform"              # CV < 0.01
    COMPETITIVE = "competitive"      # CV < 0.05
    DIFFERENTIATED = "differentiated"
    UNKNOWN = "unknown"


class BrandPattern(BaseSchema):
    avg_prices: Dict[FuelType, Optional[Decimal]] = Field(default_factory=dict)
    station_count: int
    pricing_strategy: PricingStrategy


class StationPrice(BaseSchema):
    station_id: str
    name: str
    price: Decimal


class PriceLeadership(BaseSchema):
    """Cheapest and most expensive competitor for one fuel."""

    price_leader: Optional[StationPrice] = None
    price_follower: Optional[StationPrice] = None
    spread: Decimal


class MarketShareEstimate(BaseSchema):
    estimated_share: float = Field(..., ge=0, le=100)
    competitiveness_index: float = Field(..., ge=0, le=100)
    base_share: float


class OptimalWindows(BaseSchema):
    """Hours of day (0-23, UTC) ranked by competitor price-change count."""

    high_activity_hours: List[int] = Field(default_factory=list)
    low_activity_hours: List[int] = Field(default_factory=list)


class AlertType(str, Enum):
    HIGH_VOLATILITY = "high_volatility"
    AGGRESSIVE_PRICING = "aggressive_pricing"


class AlertSeverity(str, Enum):
    WARNING = "warning"
    HIGH = "high"


class CompetitiveAlert(BaseSchema):
    type: AlertType
    message: str
    severity: AlertSeverity
    station_count: int = Field(..., ge=1)


class CompetitiveInsights(BaseSchema):
    pricing_patterns: Dict[str, BrandPattern] = Field(default_factory=dict)
    price_leadership: Dict[FuelType, PriceLeadership] = Field(default_factory=dict)
    optimal_windows: OptimalWindows = Field(default_factory=OptimalWindows)
    market_share_estimate: MarketShareEstimate
    competitive_alerts: List[CompetitiveAlert] = Field(default_factory=list)
