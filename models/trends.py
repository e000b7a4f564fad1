"""
Trend models.

These models define the output shapes for regression-based station
trends and seasonality detection.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import Field

from models.base import BaseSchema
from models.fuel import FuelType


class TrendDirection(str, Enum):
    """Direction of a price trend."""

    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class MarketPosition(str, Enum):
    """Current price relative to the market average."""

    ABOVE = "above"
    BELOW = "below"
    EQUAL = "equal"


class TrendFit(BaseSchema):
    """Direction, slope and confidence of a regression fit."""

    direction: TrendDirection = TrendDirection.STABLE
    slope: float = 0.0
    confidence: float = Field(0.0, ge=0, le=1, description="R² of the fit")


class PricePoint(BaseSchema):
    """A price and the day it was observed."""

    price: Decimal
    date: datetime.date


class MarketComparison(BaseSchema):
    """Current price versus the municipality average."""

    difference: Decimal
    percent: Decimal
    position: MarketPosition


class TrendResult(BaseSchema):
    """Trend of one fuel's price series over a window."""

    current: Decimal
    avg: Decimal
    min: PricePoint
    max: PricePoint
    volatility: Decimal = Field(..., ge=0, description="Population stddev of the series")
    direction: TrendDirection
    slope: float
    confidence: float = Field(..., ge=0, le=1)
    change_percent: Decimal = Field(..., description="(last - first) / first * 100")
    vs_market: Optional[MarketComparison] = None
    moving_average: Optional[Decimal] = Field(None, description="Mean of the last N points")
    sample_size: int


class TrendPeriod(BaseSchema):
    start: datetime.date
    end: datetime.date
    days: int


class StationTrends(BaseSchema):
    """Trends for every fuel type with data in the window."""

    station_id: str
    station_name: str
    period: TrendPeriod
    trends: Dict[FuelType, TrendResult] = Field(default_factory=dict)


class SeasonalPattern(BaseSchema):
    """Bucket averages and their spread for one seasonality scale."""

    pattern: Dict[int, float] = Field(
        default_factory=dict,
        description="Bucket (ISO weekday 1-7 or month 1-12) -> average price"
    )
    variance: float = Field(0.0, ge=0, description="Stddev across bucket averages")
    significant: bool = False


class SeasonalPatterns(BaseSchema):
    weekly: SeasonalPattern = Field(default_factory=SeasonalPattern)
    monthly: SeasonalPattern = Field(default_factory=SeasonalPattern)
    has_pattern: bool = False
