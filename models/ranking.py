"""
Price ranking models.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import Field

from models.base import BaseSchema
from models.fuel import FuelType


class RankTrend(str, Enum):
    """Day-over-day movement of a station's rank."""

    NEW = "new"                  # No rank cached for yesterday
    IMPROVING = "improving"      # Rank number went down
    WORSENING = "worsening"      # Rank number went up
    MAINTAINING = "maintaining"
    UNKNOWN = "unknown"          # No current price


class PositionLabel(str, Enum):
    """Competitive position derived from the rank percentile."""

    CHEAPEST = "cheapest"                  # percentile 0
    VERY_COMPETITIVE = "very_competitive"  # <= 25
    COMPETITIVE = "competitive"            # <= 50
    ABOVE_AVERAGE = "above_average"        # <= 75
    EXPENSIVE = "expensive"                # > 75
    MIXED = "mixed"                        # overall only
    NO_DATA = "no_data"


class RankResult(BaseSchema):
    """Rank of a station among its competitors for one fuel type."""

    fuel_type: FuelType
    rank: Optional[int] = Field(None, ge=1, description="Competition rank, 1 = cheapest")
    total: int = Field(0, ge=0, description="Stations ranked, including the user")
    percentile: Optional[float] = Field(None, ge=0, le=100)
    price: Optional[Decimal] = None
    diff_from_first: Optional[Decimal] = Field(None, description="user price - cheapest price")
    position_label: PositionLabel = PositionLabel.NO_DATA
    trend: RankTrend = RankTrend.UNKNOWN
    previous_rank: Optional[int] = Field(None, description="Rank cached for the previous day")


class StationRankings(BaseSchema):
    """Rankings for every fuel type plus an overall label."""

    station_id: str
    rankings: Dict[FuelType, RankResult] = Field(default_factory=dict)
    overall_position: PositionLabel = PositionLabel.NO_DATA
