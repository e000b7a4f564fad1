"""
Geographic comparison service.

Compares regions and municipalities on the latest price of each active
station within a trailing window. Names, stations and prices are each
fetched in batched calls; per-area statistics are computed in memory.
"""

import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import structlog

from config import settings
from models.fuel import FuelType, ALL_FUEL_TYPES
from models.geo import (
    AreaComparison,
    AreaFuelStats,
    AreaInsight,
    AreaRanking,
    AreaRef,
    AreaStats,
    AreaType,
    InsightType,
    PairComparison,
)
from services.observation_store import ObservationStore, get_observation_store
from services.station_directory import AREA_COLUMNS, StationDirectory, get_station_directory
from utils.statistics import mean, stddev, to_money

logger = structlog.get_logger(__name__)


# ===================
# PURE CALCULATIONS
# ===================

def area_fuel_stats(prices: Sequence[float]) -> Optional[AreaFuelStats]:
    """Stats of one fuel's latest prices in an area; None without prices."""
    if not prices:
        return None
    return AreaFuelStats(
        avg=to_money(mean(prices)),
        min=to_money(min(prices)),
        max=to_money(max(prices)),
        stddev=to_money(stddev(prices, sample=True)),
        station_count=len(prices),
    )


def competition_score(stats: AreaStats) -> Optional[Decimal]:
    """Mean coefficient of variation across the area's fuels, x100."""
    ratios = [
        float(s.stddev) / float(s.avg)
        for s in stats.fuel_prices.values()
        if s.avg > 0
    ]
    if not ratios:
        return None
    return to_money(mean(ratios) * 100)


def build_comparison_matrix(
    areas: Dict[str, AreaStats],
    fuel_types: Sequence[FuelType],
) -> Dict[str, Dict[str, Dict[FuelType, PairComparison]]]:
    """Every ordered pair of areas, per fuel both have prices for."""
    matrix: Dict[str, Dict[str, Dict[FuelType, PairComparison]]] = {}
    for from_key, source in areas.items():
        for to_key, target in areas.items():
            if from_key == to_key:
                continue
            for fuel in fuel_types:
                if fuel not in source.fuel_prices or fuel not in target.fuel_prices:
                    continue
                from_price = source.fuel_prices[fuel].avg
                to_price = target.fuel_prices[fuel].avg
                difference = from_price - to_price
                percent = difference / to_price * 100 if to_price else Decimal("0")

                matrix.setdefault(from_key, {}).setdefault(to_key, {})[fuel] = PairComparison(
                    difference=to_money(difference),
                    percent=to_money(percent),
                    cheaper=from_price < to_price,
                )
    return matrix


def generate_insights(
    areas: Dict[str, AreaStats],
    fuel_types: Sequence[FuelType],
) -> List[AreaInsight]:
    """
    Cross-area insights.

    Per fuel: cheapest and most expensive area, plus the average across
    areas when more than two are compared. Across areas: the widest and
    narrowest regular-fuel range, and the highest/lowest competition score.
    """
    insights = []

    for fuel in fuel_types:
        prices = {key: a.fuel_prices[fuel].avg for key, a in areas.items() if fuel in a.fuel_prices}
        if not prices:
            continue

        # min()/max() keep the first area on ties
        leader = min(prices, key=prices.get)
        laggard = max(prices, key=prices.get)
        insights.append(AreaInsight(
            type=InsightType.PRICE_LEADER,
            fuel=fuel,
            area=leader,
            area_name=areas[leader].name,
            message=f"Cheapest {fuel.value} prices",
            value=prices[leader],
        ))
        insights.append(AreaInsight(
            type=InsightType.PRICE_LAGGARD,
            fuel=fuel,
            area=laggard,
            area_name=areas[laggard].name,
            message=f"Most expensive {fuel.value} prices",
            value=prices[laggard],
        ))

        if len(prices) > 2:
            insights.append(AreaInsight(
                type=InsightType.AVERAGE_PRICE,
                fuel=fuel,
                message=f"Average {fuel.value} price across compared areas",
                value=to_money(mean([float(p) for p in prices.values()])),
            ))

    disparities = {
        key: a.fuel_prices[FuelType.REGULAR].max - a.fuel_prices[FuelType.REGULAR].min
        for key, a in areas.items()
        if FuelType.REGULAR in a.fuel_prices
    }
    if disparities:
        widest = max(disparities, key=disparities.get)
        narrowest = min(disparities, key=disparities.get)
        insights.append(AreaInsight(
            type=InsightType.PRICE_DISPARITY,
            area=widest,
            area_name=areas[widest].name,
            message="Highest price variation within area",
            value=to_money(disparities[widest]),
        ))
        insights.append(AreaInsight(
            type=InsightType.PRICE_UNIFORMITY,
            area=narrowest,
            area_name=areas[narrowest].name,
            message="Most uniform prices within area",
            value=to_money(disparities[narrowest]),
        ))

    scores = {key: a.competition_score for key, a in areas.items() if a.competition_score is not None}
    if scores:
        highest = max(scores.values())
        lowest = min(scores.values())
        for key, score in scores.items():
            if score == highest:
                insights.append(AreaInsight(
                    type=InsightType.HIGH_COMPETITION,
                    area=key,
                    area_name=areas[key].name,
                    message="Most competitive market (highest price variation)",
                    value=score,
                ))
            if score == lowest:
                insights.append(AreaInsight(
                    type=InsightType.LOW_COMPETITION,
                    area=key,
                    area_name=areas[key].name,
                    message="Least competitive market (lowest price variation)",
                    value=score,
                ))

    return insights


def rank_areas(
    areas: Dict[str, AreaStats],
    fuel_types: Sequence[FuelType],
) -> List[AreaRanking]:
    """
    Rank areas by Σ(100/avg · √n) / Σ√n over fuels, highest first.

    A higher score means lower prices backed by more stations.
    """
    scored = []
    for key, area in areas.items():
        total = 0.0
        weights = 0.0
        for fuel in fuel_types:
            stats = area.fuel_prices.get(fuel)
            if stats is None or stats.avg <= 0:
                continue
            weight = math.sqrt(stats.station_count)
            total += 100 / float(stats.avg) * weight
            weights += weight

        if weights == 0:
            continue

        scored.append((key, area, total / weights))

    scored.sort(key=lambda item: item[2], reverse=True)

    return [
        AreaRanking(
            position=index + 1,
            area_key=key,
            area_type=area.type,
            area_id=area.id,
            name=area.name,
            score=to_money(score),
            avg_prices={
                fuel: area.fuel_prices[fuel].avg if fuel in area.fuel_prices else None
                for fuel in fuel_types
            },
            total_stations=sum(s.station_count for s in area.fuel_prices.values()),
        )
        for index, (key, area, score) in enumerate(scored)
    ]


def build_area_comparison(
    areas: Dict[str, AreaStats],
    fuel_types: Sequence[FuelType] = ALL_FUEL_TYPES,
) -> AreaComparison:
    """Matrix, insights and rankings for already-computed area stats."""
    if not areas:
        return AreaComparison()

    return AreaComparison(
        areas=areas,
        comparison=build_comparison_matrix(areas, fuel_types),
        insights=generate_insights(areas, fuel_types),
        rankings=rank_areas(areas, fuel_types),
    )


# ===================
# SERVICE
# ===================

class GeoComparisonService:
    """Loads area data in batches and builds the comparison."""

    def __init__(
        self,
        directory: Optional[StationDirectory] = None,
        store: Optional[ObservationStore] = None,
    ):
        self.directory = directory or get_station_directory()
        self.store = store or get_observation_store()

    def compare_areas(
        self,
        areas: Sequence[AreaRef],
        fuel_types: Sequence[FuelType] = ALL_FUEL_TYPES,
        now: Optional[datetime] = None,
    ) -> AreaComparison:
        """
        Compare areas on their stations' latest prices.

        Args:
            areas: Regions and/or municipalities; unknown ones are skipped
            fuel_types: Fuels to compare
            now: Reference time for the trailing window (defaults to now)

        Returns:
            AreaComparison (empty shape when no area is known)
        """
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(hours=settings.geo_window_hours)
        fuel_types = list(fuel_types)

        ids_by_type: Dict[AreaType, List[str]] = defaultdict(list)
        for area in areas:
            if area.id not in ids_by_type[area.type]:
                ids_by_type[area.type].append(area.id)

        names: Dict[AreaType, Dict[str, str]] = {}
        members: Dict[str, List[str]] = defaultdict(list)
        for area_type, ids in ids_by_type.items():
            names[area_type] = self.directory.area_names(area_type, ids)
            known = [i for i in ids if i in names[area_type]]
            column = AREA_COLUMNS[area_type]
            for station in self.directory.active_in_areas(area_type, known):
                area_id = getattr(station, column)
                members[f"{area_type.value}_{area_id}"].append(station.id)

        station_ids = list({sid for ids in members.values() for sid in ids})
        latest = self.store.latest_prices(station_ids, fuel_types=fuel_types, since=since)

        results: Dict[str, AreaStats] = {}
        for area in areas:
            name = names.get(area.type, {}).get(area.id)
            if name is None:
                logger.warning("area_not_found", area_type=area.type.value, area_id=area.id)
                continue
            if area.key in results:
                continue

            stats = AreaStats(key=area.key, type=area.type, id=area.id, name=name)
            for fuel in fuel_types:
                prices = [
                    float(latest[(sid, fuel)].price)
                    for sid in members.get(area.key, [])
                    if (sid, fuel) in latest
                ]
                fuel_stats = area_fuel_stats(prices)
                if fuel_stats is not None:
                    stats.fuel_prices[fuel] = fuel_stats
            stats.competition_score = competition_score(stats)
            results[area.key] = stats

        logger.info(
            "areas_compared",
            requested=len(areas),
            compared=len(results),
            stations=len(station_ids)
        )

        return build_area_comparison(results, fuel_types)


# Singleton instance
_geo_comparison_service: Optional[GeoComparisonService] = None


def get_geo_comparison_service() -> GeoComparisonService:
    """Get singleton instance of GeoComparisonService."""
    global _geo_comparison_service
    if _geo_comparison_service is None:
        _geo_comparison_service = GeoComparisonService()
    return _geo_comparison_service
