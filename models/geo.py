"""
Geographic comparison models.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from models.base import BaseSchema
from models.fuel import FuelType


class AreaType(str, Enum):
    REGION = "region"
    MUNICIPALITY = "municipality"


class AreaRef(BaseSchema):
    """Identifies an area to compare."""

    type: AreaType
    id: str

    @property
    def key(self) -> str:
        return f"{self.type.value}_{self.id}"


class AreaFuelStats(BaseSchema):
    """Latest-price statistics for one fuel within an area."""

    avg: Decimal
    min: Decimal
    max: Decimal
    stddev: Decimal = Field(..., ge=0, description="Sample stddev, 0 for a single station")
    station_count: int = Field(..., ge=1)


class AreaStats(BaseSchema):
    """All fuel statistics for an area."""

    key: str
    type: AreaType
    id: str
    name: str
    fuel_prices: Dict[FuelType, AreaFuelStats] = Field(default_factory=dict)
    competition_score: Optional[Decimal] = Field(
        None, description="Mean coefficient of variation across fuels x 100"
    )


class PairComparison(BaseSchema):
    """How one area's average compares to another's."""

    difference: Decimal
    percent: Decimal
    cheaper: bool


class InsightType(str, Enum):
    PRICE_LEADER = "price_leader"
    PRICE_LAGGARD = "price_laggard"
    AVERAGE_PRICE = "average_price"
    PRICE_DISPARITY = "price_disparity"
    PRICE_UNIFORMITY = "price_uniformity"
    HIGH_COMPETITION = "high_competition"
    LOW_COMPETITION = "low_competition"


class AreaInsight(BaseSchema):
    type: InsightType
    fuel: Optional[FuelType] = None
    area: Optional[str] = None
    area_name: Optional[str] = None
    message: str
    value: Decimal


class AreaRanking(BaseSchema):
    """Weighted price score of an area (higher = cheaper, more reliable)."""

    position: int = Field(..., ge=1)
    area_key: str
    area_type: AreaType
    area_id: str
    name: str
    score: Decimal
    avg_prices: Dict[FuelType, Optional[Decimal]] = Field(default_factory=dict)
    total_stations: int


class AreaComparison(BaseSchema):
    """Full multi-area comparison."""

    areas: Dict[str, AreaStats] = Field(default_factory=dict)
    comparison: Dict[str, Dict[str, Dict[FuelType, PairComparison]]] = Field(default_factory=dict)
    insights: List[AreaInsight] = Field(default_factory=list)
    rankings: List[AreaRanking] = Field(default_factory=list)
