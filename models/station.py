"""
Station, observation, and competitor records.

Stations and observations are owned by the ingestion pipeline; the
analytics core only reads them.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from pydantic import Field, field_validator

from models.base import BaseSchema, FrozenSchema
from models.fuel import FuelType, ALL_FUEL_TYPES


class Station(FrozenSchema):
    """A fuel station as stored in the station directory."""

    id: str = Field(..., description="Station identifier")
    name: str = Field("", description="Display name")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    municipality_id: Optional[str] = None
    region_id: Optional[str] = None
    brand: Optional[str] = None
    active: bool = True


class PriceObservation(FrozenSchema):
    """
    One change-only price record.

    A new observation exists only when the price differs from the previous
    one for the same (station_id, fuel_type).
    """

    station_id: str
    fuel_type: FuelType
    price: Decimal = Field(..., ge=0)
    observed_at: datetime

    @field_validator("observed_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Naive timestamps from the store are UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def empty_prices() -> Dict[FuelType, Optional[Decimal]]:
    """Price map with every fuel type present and unknown."""
    return {fuel_type: None for fuel_type in ALL_FUEL_TYPES}


class CompetitorEntry(BaseSchema):
    """A competing station with its latest price per fuel type."""

    station_id: str
    name: str = ""
    brand: Optional[str] = None
    distance_km: Optional[float] = Field(None, description="Distance from the user station")
    prices: Dict[FuelType, Optional[Decimal]] = Field(default_factory=empty_prices)
    last_update: Optional[datetime] = Field(None, description="Most recent observation across fuels")

    def price_for(self, fuel_type: FuelType) -> Optional[Decimal]:
        """Latest price for one fuel, or None."""
        return self.prices.get(fuel_type)
