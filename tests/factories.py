"""
Test data factories.

Build rows shaped like the stations and price_observations tables.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Union


class StationFactory:
    """
    Factory for station rows.

    Usage:
        station = StationFactory.create()
        station = StationFactory.create(id="s-1", lat=19.43, lng=-99.13)
        stations = StationFactory.create_batch(5, municipality_id="mun-2")
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        name: Optional[str] = None,
        lat: float = 19.0,
        lng: float = -99.0,
        municipality_id: Optional[str] = "mun-1",
        region_id: Optional[str] = "reg-1",
        brand: Optional[str] = "PEMEX",
        active: bool = True,
    ) -> dict:
        """
        Create a single station dict.

        Args:
            id: Station id (auto-generated if not provided)
            name: Display name (auto-generated if not provided)
            lat, lng: Coordinates in decimal degrees
            municipality_id, region_id: Area membership
            brand: Station brand
            active: Whether the station is operating

        Returns:
            Station dict matching database schema
        """
        counter = cls._next_counter()
        return {
            "id": id or f"station-{counter}",
            "name": name or f"Estación {counter}",
            "lat": lat,
            "lng": lng,
            "municipality_id": municipality_id,
            "region_id": region_id,
            "brand": brand,
            "active": active,
        }

    @classmethod
    def create_batch(cls, count: int, **overrides) -> List[dict]:
        return [cls.create(**overrides) for _ in range(count)]


class ObservationFactory:
    """
    Factory for price_observations rows.

    Usage:
        row = ObservationFactory.create(station_id="s-1", price=21.49)
        rows = ObservationFactory.series("s-1", [20.0, 20.5, 21.0])
    """

    DEFAULT_TIME = datetime(2025, 2, 14, 8, 0, tzinfo=timezone.utc)

    @classmethod
    def create(
        cls,
        station_id: str = "station-1",
        fuel_type: str = "regular",
        price: Union[float, str] = 20.50,
        observed_at: Optional[Union[datetime, str]] = None,
    ) -> dict:
        """
        Create a single observation dict.

        observed_at accepts a datetime or an ISO string; stored as ISO.
        """
        observed_at = observed_at or cls.DEFAULT_TIME
        if isinstance(observed_at, datetime):
            observed_at = observed_at.isoformat()

        return {
            "station_id": station_id,
            "fuel_type": fuel_type,
            "price": price,
            "observed_at": observed_at,
        }

    @classmethod
    def series(
        cls,
        station_id: str,
        prices: Sequence[float],
        start: Optional[datetime] = None,
        step: timedelta = timedelta(days=1),
        fuel_type: str = "regular",
    ) -> List[dict]:
        """One observation per price, `step` apart, oldest first."""
        start = start or cls.DEFAULT_TIME
        return [
            cls.create(
                station_id=station_id,
                fuel_type=fuel_type,
                price=price,
                observed_at=start + step * index,
            )
            for index, price in enumerate(prices)
        ]
