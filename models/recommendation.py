"""
Pricing recommendation schemas.

Provides "what to do with my price" based on spread analysis output.
"""

from pydantic import Field
from typing import Optional
from decimal import Decimal
from enum import Enum

from models.base import BaseSchema
from models.fuel import FuelType


class RecommendationPriority(str, Enum):
    """Priority tiers, most urgent first."""
    CRITICAL = "critical"  # Price is an outlier above the market
    HIGH = "high"          # Outlier below, or clearly above average
    MEDIUM = "medium"      # Clearly below average
    LOW = "low"            # Informational


PRIORITY_ORDER = {
    RecommendationPriority.CRITICAL: 0,
    RecommendationPriority.HIGH: 1,
    RecommendationPriority.MEDIUM: 2,
    RecommendationPriority.LOW: 3,
}


class RecommendationRule(str, Enum):
    """Rule that produced a recommendation, in evaluation order."""
    OUTLIER_HIGH = "outlier_high"
    OUTLIER_LOW = "outlier_low"
    ABOVE_AVERAGE = "above_average"
    BELOW_AVERAGE = "below_average"
    COMPETITIVE_ADVANTAGE = "competitive_advantage"


class ImpactType(str, Enum):
    """Business effect a rule targets."""
    CUSTOMER_LOSS = "customer_loss"
    MARGIN_LOSS = "margin_loss"
    REVENUE = "revenue"
    MARGIN = "margin"
    POSITIVE = "positive"


class PricingRecommendation(BaseSchema):
    """A single pricing recommendation for one fuel type."""

    rule: RecommendationRule
    fuel_type: FuelType
    fuel_label: str = Field(..., description="Localized fuel name")
    message: str = Field(..., description="Localized, human-readable advice")
    priority: RecommendationPriority
    suggested_price: Decimal
    potential_impact: str
    confidence: float = Field(..., ge=0, le=1, description="Heuristic confidence")
    locale: Optional[str] = None
