"""
Heat map service.

Covers a bounding box with a zoom-dependent grid and estimates the price
at every cell center by inverse-distance weighting of nearby station
prices.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

import structlog

from config import settings
from models.fuel import FuelType
from models.heatmap import (
    Bounds,
    HeatMap,
    HeatMapCell,
    HeatMapLegend,
    HeatMapStatistics,
    LatLng,
    LegendStop,
    NearbyStation,
)
from services.observation_store import ObservationStore, get_observation_store
from services.station_directory import StationDirectory, get_station_directory
from utils.geo import KM_PER_DEGREE, haversine_km
from utils.statistics import mean, round_to, to_money

logger = structlog.get_logger(__name__)

# Cell edge in degrees: 10° at zoom 1 (country), halving per level to zoom 20 (street)
GRID_SIZES = {zoom: 10 / 2 ** (zoom - 1) for zoom in range(1, 21)}
DEFAULT_GRID_SIZE = 0.01

# Grid is coarsened until it fits
MAX_CELLS = 10000

MIN_IDW_DISTANCE_KM = 0.1
NEARBY_LIMIT = 3
LEGEND_STEPS = 5

GREEN = (0, 255, 0)
YELLOW = (255, 255, 0)
RED = (255, 0, 0)

PRICE_LABELS = (
    (0.2, "Very Low"),
    (0.4, "Low"),
    (0.6, "Average"),
    (0.8, "High"),
)


@dataclass(frozen=True)
class PricedStation:
    """Station location with its latest price for the mapped fuel."""

    station_id: str
    name: str
    brand: Optional[str]
    lat: float
    lng: float
    price: float


@dataclass(frozen=True)
class GridCell:
    id: str
    bounds: Bounds
    center: LatLng


# ===================
# PURE CALCULATIONS
# ===================

def grid_size_for_zoom(zoom: int) -> float:
    """Cell edge in degrees for a zoom level; 0.01 outside 1-20."""
    return GRID_SIZES.get(zoom, DEFAULT_GRID_SIZE)


# Absorbs float error so an exact multiple of size does not add a sliver row
STEP_EPSILON = 1e-9


def _steps(bounds: Bounds, size: float) -> Tuple[int, int]:
    lat_steps = max(1, math.ceil((bounds.north - bounds.south) / size - STEP_EPSILON))
    lng_steps = max(1, math.ceil((bounds.east - bounds.west) / size - STEP_EPSILON))
    return lat_steps, lng_steps


def fit_grid_size(bounds: Bounds, size: float, max_cells: int = MAX_CELLS) -> float:
    """Double the cell size until the grid has at most max_cells cells."""
    lat_steps, lng_steps = _steps(bounds, size)
    while lat_steps * lng_steps > max_cells:
        size *= 2
        lat_steps, lng_steps = _steps(bounds, size)
    return size


def create_grid(bounds: Bounds, size: float) -> List[GridCell]:
    """
    Cells of `size` degrees from the south-west corner, covering the box.

    Edge cells are clipped to the box and centered on their clipped
    bounds, so every center lies inside the box.
    """
    lat_steps, lng_steps = _steps(bounds, size)

    cells = []
    for lat_index in range(lat_steps):
        south = bounds.south + lat_index * size
        north = min(south + size, bounds.north)
        if south >= north:
            break
        for lng_index in range(lng_steps):
            west = bounds.west + lng_index * size
            east = min(west + size, bounds.east)
            if west >= east:
                break
            cells.append(GridCell(
                id=f"cell_{lat_index}_{lng_index}",
                bounds=Bounds(north=north, south=south, east=east, west=west),
                center=LatLng(lat=(south + north) / 2, lng=(west + east) / 2),
            ))
    return cells


def interpolate_price(
    lat: float,
    lng: float,
    stations: Sequence[PricedStation],
    max_distance_km: Optional[float] = None,
) -> Optional[float]:
    """
    Inverse-distance-weighted price at a point.

    weight = 1 / max(distance, 0.1)²; stations beyond max_distance_km are
    ignored. Falls back to the plain average of all stations when none is
    in range. None without stations.
    """
    if not stations:
        return None
    if max_distance_km is None:
        max_distance_km = settings.heatmap_max_distance_km

    weighted = 0.0
    total_weight = 0.0
    for station in stations:
        distance = haversine_km(lat, lng, station.lat, station.lng)
        if distance > max_distance_km:
            continue
        weight = 1 / max(distance, MIN_IDW_DISTANCE_KM) ** 2
        weighted += station.price * weight
        total_weight += weight

    if total_weight == 0:
        return mean([s.price for s in stations])
    return weighted / total_weight


def calculate_intensity(price: float, min_price: float, max_price: float) -> float:
    """Price mapped linearly to [0, 100]; 50 when all prices are equal."""
    if max_price == min_price:
        return 50.0
    normalized = (price - min_price) / (max_price - min_price) * 100
    return round_to(max(0.0, min(100.0, normalized)), 2)


def _blend(start: Tuple[int, int, int], end: Tuple[int, int, int], ratio: float) -> Tuple[int, ...]:
    return tuple(int(round(a + (b - a) * ratio)) for a, b in zip(start, end))


def color_for_intensity(intensity: float) -> str:
    """Hex colour on a green -> yellow -> red gradient."""
    intensity = max(0.0, min(100.0, intensity))
    if intensity <= 50:
        rgb = _blend(GREEN, YELLOW, intensity / 50)
    else:
        rgb = _blend(YELLOW, RED, (intensity - 50) / 50)
    return "#{:02X}{:02X}{:02X}".format(*rgb)


def nearest_stations(
    lat: float,
    lng: float,
    stations: Sequence[PricedStation],
    radius_km: float,
    limit: int = NEARBY_LIMIT,
) -> List[NearbyStation]:
    """Up to `limit` stations within radius_km of the point, nearest first."""
    nearby = []
    for station in stations:
        distance = haversine_km(lat, lng, station.lat, station.lng)
        if distance <= radius_km:
            nearby.append((distance, station))

    nearby.sort(key=lambda pair: pair[0])

    return [
        NearbyStation(
            station_id=station.station_id,
            name=station.name,
            brand=station.brand,
            price=to_money(station.price),
            distance_km=round_to(distance, 2),
        )
        for distance, station in nearby[:limit]
    ]


def price_label(price: float, min_price: float, max_price: float) -> str:
    """Very Low / Low / Average / High / Very High by position in the range."""
    if max_price == min_price:
        return "Average"
    position = (price - min_price) / (max_price - min_price)
    for upper, label in PRICE_LABELS:
        if position <= upper:
            return label
    return "Very High"


def generate_legend(
    fuel_type: FuelType,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> HeatMapLegend:
    """Six evenly spaced colour stops between min and max (none without prices)."""
    if min_price is None or max_price is None:
        return HeatMapLegend(fuel_type=fuel_type)

    stops = []
    for step in range(LEGEND_STEPS + 1):
        ratio = step / LEGEND_STEPS
        price = min_price + (max_price - min_price) * ratio
        stops.append(LegendStop(
            value=to_money(price),
            color=color_for_intensity(ratio * 100),
            label=price_label(price, min_price, max_price),
        ))

    return HeatMapLegend(
        fuel_type=fuel_type,
        min_price=to_money(min_price),
        max_price=to_money(max_price),
        color_scale=stops,
    )


def build_heat_map(
    bounds: Bounds,
    zoom: int,
    fuel_type: FuelType,
    stations: Sequence[PricedStation],
    generated_at: Optional[datetime] = None,
    max_distance_km: Optional[float] = None,
) -> HeatMap:
    """Heat map for already-priced stations."""
    generated_at = generated_at or datetime.now(timezone.utc)
    size = fit_grid_size(bounds, grid_size_for_zoom(zoom))

    if not stations:
        return HeatMap(
            bounds=bounds,
            zoom=zoom,
            grid_size=size,
            fuel_type=fuel_type,
            legend=generate_legend(fuel_type),
            generated_at=generated_at,
        )

    prices = [s.price for s in stations]
    low = min(prices)
    high = max(prices)
    nearby_radius = size * KM_PER_DEGREE

    cells = []
    for cell in create_grid(bounds, size):
        price = interpolate_price(cell.center.lat, cell.center.lng, stations, max_distance_km)
        intensity = calculate_intensity(price, low, high)
        cells.append(HeatMapCell(
            id=cell.id,
            bounds=cell.bounds,
            center=cell.center,
            price=to_money(price),
            intensity=intensity,
            color=color_for_intensity(intensity),
            nearby_stations=nearest_stations(cell.center.lat, cell.center.lng, stations, nearby_radius),
        ))

    return HeatMap(
        bounds=bounds,
        zoom=zoom,
        grid_size=size,
        fuel_type=fuel_type,
        cells=cells,
        legend=generate_legend(fuel_type, low, high),
        statistics=HeatMapStatistics(
            total_stations=len(stations),
            min_price=to_money(low),
            max_price=to_money(high),
            avg_price=to_money(mean(prices)),
        ),
        generated_at=generated_at,
    )


# ===================
# SERVICE
# ===================

class HeatMapService:
    """Loads priced stations inside a box and builds the heat map."""

    def __init__(
        self,
        directory: Optional[StationDirectory] = None,
        store: Optional[ObservationStore] = None,
    ):
        self.directory = directory or get_station_directory()
        self.store = store or get_observation_store()

    def stations_in_bounds(
        self,
        bounds: Bounds,
        fuel_type: FuelType,
        now: Optional[datetime] = None,
    ) -> List[PricedStation]:
        """Active stations in the box with a price observed inside the trailing window."""
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(hours=settings.heatmap_window_hours)

        stations = self.directory.active_in_box(bounds.south, bounds.north, bounds.west, bounds.east)
        latest = self.store.latest_prices([s.id for s in stations], fuel_types=[fuel_type], since=since)

        priced = []
        for station in stations:
            obs = latest.get((station.id, fuel_type))
            if obs is None:
                continue
            priced.append(PricedStation(
                station_id=station.id,
                name=station.name,
                brand=station.brand,
                lat=station.lat,
                lng=station.lng,
                price=float(obs.price),
            ))
        return priced

    def generate_heat_map(
        self,
        bounds: Bounds,
        zoom: int,
        fuel_type: FuelType = FuelType.REGULAR,
        now: Optional[datetime] = None,
    ) -> HeatMap:
        """
        Heat map for a bounding box at a zoom level.

        Args:
            bounds: Visible map area
            zoom: Map zoom (1 = country, 20 = street)
            fuel_type: Fuel to map
            now: Reference time for the trailing window (defaults to now)
        """
        now = now or datetime.now(timezone.utc)
        stations = self.stations_in_bounds(bounds, fuel_type, now)
        heat_map = build_heat_map(bounds, zoom, fuel_type, stations, generated_at=now)

        logger.info(
            "heat_map_generated",
            zoom=zoom,
            fuel_type=fuel_type.value,
            stations=len(stations),
            cells=len(heat_map.cells),
            grid_size=heat_map.grid_size
        )
        return heat_map


# Singleton instance
_heatmap_service: Optional[HeatMapService] = None


def get_heatmap_service() -> HeatMapService:
    """Get singleton instance of HeatMapService."""
    global _heatmap_service
    if _heatmap_service is None:
        _heatmap_service = HeatMapService()
    return _heatmap_service
