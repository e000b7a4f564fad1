"""
Market aggregation models.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from models.base import BaseSchema
from models.fuel import FuelType


class Grouping(str, Enum):
    """Time bucket size for market aggregation."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class NationalComparison(BaseSchema):
    """Local average versus the trailing national average."""

    difference: Decimal
    percent: Decimal


class MarketAggregate(BaseSchema):
    """Statistics for one (period, fuel type) bucket."""

    period_key: str = Field(..., description="Canonical period key, e.g. '2025-W07'")
    label: str = Field(..., description="Human-readable period")
    fuel_type: FuelType
    avg: Decimal
    min: Decimal
    max: Decimal
    median: Decimal = Field(..., description="True median of the bucket's raw prices")
    stddev: Decimal
    station_count: int = Field(..., ge=0, description="Distinct stations in the bucket")
    sample_size: int = Field(..., ge=0, description="Observations in the bucket")
    vs_national: Optional[NationalComparison] = None


class MarketPeriod(BaseSchema):
    """All fuel aggregates for one period."""

    period_key: str
    label: str
    fuels: Dict[FuelType, MarketAggregate] = Field(default_factory=dict)


class MarketSummary(BaseSchema):
    """Whole-window summary across periods."""

    period_change: Dict[FuelType, Decimal] = Field(
        default_factory=dict,
        description="Percent change of the average from first to last period"
    )
    volatility_index: Decimal = Field(Decimal("0"), description="Mean of per-fuel average stddev")
    total_stations: int = 0
    total_samples: int = 0


class AreaScope(BaseSchema):
    region_id: Optional[str] = None
    municipality_id: Optional[str] = None

    @property
    def is_national(self) -> bool:
        return self.region_id is None and self.municipality_id is None


class MarketTrends(BaseSchema):
    """Market trend report for an area and window."""

    area: AreaScope
    start: date
    end: date
    grouping: Grouping
    periods: List[MarketPeriod] = Field(default_factory=list)
    summary: MarketSummary = Field(default_factory=MarketSummary)


class StationCorrelation(BaseSchema):
    """Pearson correlation between two stations' price series."""

    station_a: str
    station_b: str
    correlation: float = Field(..., ge=-1, le=1)
