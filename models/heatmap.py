"""
Heat map models.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, model_validator

from exceptions import InvalidBoundsError
from models.base import BaseSchema
from models.fuel import FuelType


class Bounds(BaseSchema):
    """Bounding box in decimal degrees."""

    north: float = Field(..., ge=-90, le=90)
    south: float = Field(..., ge=-90, le=90)
    east: float = Field(..., ge=-180, le=180)
    west: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def check_orientation(self) -> "Bounds":
        if self.south >= self.north or self.west >= self.east:
            raise InvalidBoundsError(self.model_dump())
        return self


class LatLng(BaseSchema):
    lat: float
    lng: float


class NearbyStation(BaseSchema):
    station_id: str
    name: str
    brand: Optional[str] = None
    price: Decimal
    distance_km: float


class HeatMapCell(BaseSchema):
    """One grid cell with its interpolated price."""

    id: str
    bounds: Bounds
    center: LatLng
    price: Decimal
    intensity: float = Field(..., ge=0, le=100)
    color: str = Field(..., pattern="^#[0-9A-F]{6}$")
    nearby_stations: List[NearbyStation] = Field(default_factory=list, max_length=3)


class LegendStop(BaseSchema):
    value: Decimal
    color: str
    label: str


class HeatMapLegend(BaseSchema):
    fuel_type: FuelType
    min_price: Decimal = Decimal("0")
    max_price: Decimal = Decimal("0")
    color_scale: List[LegendStop] = Field(default_factory=list)


class HeatMapStatistics(BaseSchema):
    total_stations: int
    min_price: Decimal
    max_price: Decimal
    avg_price: Decimal


class HeatMap(BaseSchema):
    """Grid of interpolated prices for map rendering."""

    bounds: Bounds
    zoom: int
    grid_size: float = Field(..., description="Cell edge in degrees")
    fuel_type: FuelType
    cells: List[HeatMapCell] = Field(default_factory=list)
    legend: HeatMapLegend
    statistics: Optional[HeatMapStatistics] = None
    generated_at: datetime
