"""
Competitor resolution service.

Resolves the set of stations competing with a given station (by radius,
by shared municipality, or both) and derives competitive insights from
that set.
"""

from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from config import settings
from exceptions import StationNotFoundError, InvalidCompetitorModeError
from models.competitor import (
    AlertSeverity,
    AlertType,
    BrandPattern,
    CompetitiveAlert,
    CompetitiveInsights,
    CompetitorMode,
    MarketShareEstimate,
    OptimalWindows,
    PriceLeadership,
    PricingStrategy,
    StationPrice,
)
from models.fuel import FuelType, ALL_FUEL_TYPES
from models.station import CompetitorEntry, PriceObservation, Station
from services.observation_store import ObservationStore, get_observation_store
from services.price_enrichment_service import (
    PriceEnrichmentService,
    get_price_enrichment_service,
)
from services.station_directory import StationDirectory, get_station_directory
from utils.geo import bounding_box, haversine_km
from utils.statistics import as_floats, coefficient_of_variation, mean, round_to, to_money

logger = structlog.get_logger(__name__)

UNBRANDED = "unbranded"

# CV thresholds for a brand's per-fuel averages
UNIFORM_CV = 0.01
COMPETITIVE_CV = 0.05

# Change history windows for pricing windows and volatility alerts
WINDOW_DAYS = 7
VOLATILITY_HOURS = 24
WINDOW_HOURS_LISTED = 3

# Undercutting the user by more than this fraction counts as aggressive
AGGRESSIVE_DISCOUNT = Decimal("0.02")


def determine_pricing_strategy(avg_prices: Sequence[Optional[float]]) -> PricingStrategy:
    """
    Classify a brand by the coefficient of variation of its fuel averages.

    - UNIFORM: CV < 0.01
    - COMPETITIVE: CV < 0.05
    - DIFFERENTIATED: everything else
    - UNKNOWN: no prices at all
    """
    values = [v for v in as_floats(avg_prices) if v]
    if not values:
        return PricingStrategy.UNKNOWN

    cv = coefficient_of_variation(values)
    if cv < UNIFORM_CV:
        return PricingStrategy.UNIFORM
    elif cv < COMPETITIVE_CV:
        return PricingStrategy.COMPETITIVE
    return PricingStrategy.DIFFERENTIATED


def identify_pricing_patterns(competitors: Sequence[CompetitorEntry]) -> Dict[str, BrandPattern]:
    """Average prices and strategy per brand."""
    by_brand: Dict[str, List[CompetitorEntry]] = defaultdict(list)
    for entry in competitors:
        by_brand[entry.brand or UNBRANDED].append(entry)

    patterns = {}
    for brand, entries in by_brand.items():
        averages: Dict[FuelType, Optional[float]] = {}
        for fuel_type in ALL_FUEL_TYPES:
            prices = as_floats(e.price_for(fuel_type) for e in entries)
            averages[fuel_type] = mean(prices) if prices else None

        patterns[brand] = BrandPattern(
            avg_prices={fuel: to_money(avg) for fuel, avg in averages.items()},
            station_count=len(entries),
            pricing_strategy=determine_pricing_strategy(list(averages.values())),
        )
    return patterns


def detect_price_leadership(competitors: Sequence[CompetitorEntry]) -> Dict[FuelType, PriceLeadership]:
    """Cheapest and most expensive competitor per fuel; fuels without prices are skipped."""
    leadership = {}
    for fuel_type in ALL_FUEL_TYPES:
        priced = [e for e in competitors if e.price_for(fuel_type) is not None]
        if not priced:
            continue

        # min()/max() return the first entry on ties
        leader = min(priced, key=lambda e: e.price_for(fuel_type))
        follower = max(priced, key=lambda e: e.price_for(fuel_type))
        low = leader.price_for(fuel_type)
        high = follower.price_for(fuel_type)

        leadership[fuel_type] = PriceLeadership(
            price_leader=StationPrice(station_id=leader.station_id, name=leader.name, price=low),
            price_follower=StationPrice(station_id=follower.station_id, name=follower.name, price=high),
            spread=to_money(high - low),
        )
    return leadership


def estimate_market_share(
    user_prices: Mapping[FuelType, Optional[Decimal]],
    competitors: Sequence[CompetitorEntry],
) -> MarketShareEstimate:
    """
    Heuristic share estimate.

    base = 100 / (competitors + 1); competitiveness is the mean, over fuels
    the user prices, of the fraction of competitors priced above the user
    (0.5 when no fuel can be compared).
    """
    base_share = 100 / (len(competitors) + 1)

    scores = []
    for fuel_type in ALL_FUEL_TYPES:
        user_price = user_prices.get(fuel_type)
        if user_price is None:
            continue
        prices = [e.price_for(fuel_type) for e in competitors if e.price_for(fuel_type) is not None]
        if not prices:
            continue
        pricier = sum(1 for p in prices if p > user_price)
        scores.append(pricier / len(prices))

    competitiveness = mean(scores) if scores else 0.5
    estimated = base_share * (1 + competitiveness)

    return MarketShareEstimate(
        estimated_share=round_to(min(100.0, estimated), 1),
        competitiveness_index=round_to(competitiveness * 100, 1),
        base_share=round_to(base_share, 1),
    )


def find_optimal_windows(changes: Sequence[PriceObservation]) -> OptimalWindows:
    """
    Busiest and quietest UTC hours of day by competitor price-change count.

    Only hours with at least one change are ranked; ties go to the earlier hour.
    """
    counts = Counter(change.observed_at.astimezone(timezone.utc).hour for change in changes)

    busiest = sorted(counts, key=lambda hour: (-counts[hour], hour))
    quietest = sorted(counts, key=lambda hour: (counts[hour], hour))
    return OptimalWindows(
        high_activity_hours=busiest[:WINDOW_HOURS_LISTED],
        low_activity_hours=quietest[:WINDOW_HOURS_LISTED],
    )


def generate_competitive_alerts(
    user_prices: Mapping[FuelType, Optional[Decimal]],
    competitors: Sequence[CompetitorEntry],
    recent_changes: Sequence[PriceObservation],
) -> List[CompetitiveAlert]:
    """
    Alerts about competitor behaviour.

    - HIGH_VOLATILITY: competitors that changed one fuel's price more than
      once within recent_changes
    - AGGRESSIVE_PRICING: competitors pricing any fuel more than 2% under
      the user's own price for it
    """
    alerts = []

    per_pair = Counter((change.station_id, change.fuel_type) for change in recent_changes)
    volatile = {station_id for (station_id, _), count in per_pair.items() if count > 1}
    if volatile:
        alerts.append(CompetitiveAlert(
            type=AlertType.HIGH_VOLATILITY,
            message=f"High price volatility detected in {len(volatile)} competitor stations",
            severity=AlertSeverity.WARNING,
            station_count=len(volatile),
        ))

    limits = {
        fuel_type: price * (1 - AGGRESSIVE_DISCOUNT)
        for fuel_type, price in user_prices.items()
        if price is not None
    }
    aggressive = [
        entry.station_id for entry in competitors
        if any(
            entry.price_for(fuel_type) is not None and entry.price_for(fuel_type) < limit
            for fuel_type, limit in limits.items()
        )
    ]
    if aggressive:
        alerts.append(CompetitiveAlert(
            type=AlertType.AGGRESSIVE_PRICING,
            message=f"Aggressive pricing detected from {len(aggressive)} competitors",
            severity=AlertSeverity.HIGH,
            station_count=len(aggressive),
        ))

    return alerts


def competitive_insights(
    user_prices: Mapping[FuelType, Optional[Decimal]],
    competitors: Sequence[CompetitorEntry],
    changes: Sequence[PriceObservation] = (),
    now: Optional[datetime] = None,
) -> CompetitiveInsights:
    """
    Brand patterns, price leadership, pricing windows, market share and
    alerts for a competitor set.

    changes are the competitors' price observations over the last
    WINDOW_DAYS; the volatility alert only looks at the last VOLATILITY_HOURS.
    """
    now = now or datetime.now(timezone.utc)
    recent_cutoff = now - timedelta(hours=VOLATILITY_HOURS)
    recent = [change for change in changes if change.observed_at >= recent_cutoff]

    return CompetitiveInsights(
        pricing_patterns=identify_pricing_patterns(competitors),
        price_leadership=detect_price_leadership(competitors),
        optimal_windows=find_optimal_windows(changes),
        market_share_estimate=estimate_market_share(user_prices, competitors),
        competitive_alerts=generate_competitive_alerts(user_prices, competitors, recent),
    )


class CompetitorService:
    """
    Service for resolving competitor sets.

    Station rows come from the directory, prices from one bulk
    enrichment call per request.
    """

    def __init__(
        self,
        directory: Optional[StationDirectory] = None,
        enricher: Optional[PriceEnrichmentService] = None,
        store: Optional[ObservationStore] = None,
    ):
        self.directory = directory or get_station_directory()
        self.enricher = enricher or get_price_enrichment_service()
        self.store = store or get_observation_store()

    # ===================
    # STATION LOOKUP
    # ===================

    def get_station(self, station_id: str) -> Station:
        """
        Active station by id.

        Raises:
            StationNotFoundError: If unknown or inactive
        """
        station = self.directory.get(station_id)
        if station is None or not station.active:
            logger.warning("station_not_found", station_id=station_id)
            raise StationNotFoundError(station_id)
        return station

    # ===================
    # RESOLUTION
    # ===================

    def _within_radius(self, station: Station, radius_km: float) -> List[Tuple[Station, float]]:
        south, north, west, east = bounding_box(station.lat, station.lng, radius_km)
        candidates = self.directory.active_in_box(south, north, west, east)

        found = []
        for candidate in candidates:
            if candidate.id == station.id:
                continue
            distance = haversine_km(station.lat, station.lng, candidate.lat, candidate.lng)
            if distance <= radius_km:
                found.append((candidate, distance))

        found.sort(key=lambda pair: pair[1])
        return found

    def _same_municipality(self, station: Station) -> List[Station]:
        if station.municipality_id is None:
            return []
        return [
            s for s in self.directory.active_in_municipality(station.municipality_id)
            if s.id != station.id
        ]

    def by_radius(self, station: Station, radius_km: Optional[float] = None) -> List[CompetitorEntry]:
        """Active stations within radius_km of station, nearest first."""
        if radius_km is None:
            radius_km = settings.default_radius_km
        found = self._within_radius(station, radius_km)
        return self.enricher.enrich(
            [s for s, _ in found],
            distances={s.id: d for s, d in found},
        )

    def by_municipality(self, station: Station) -> List[CompetitorEntry]:
        """Active stations in the same municipality, excluding station itself."""
        stations = self._same_municipality(station)
        distances = {
            s.id: haversine_km(station.lat, station.lng, s.lat, s.lng)
            for s in stations
        }
        return self.enricher.enrich(stations, distances=distances)

    def combined(self, station: Station, radius_km: Optional[float] = None) -> List[CompetitorEntry]:
        """Union of radius and municipality competitors, deduplicated by station id."""
        if radius_km is None:
            radius_km = settings.default_radius_km
        found = self._within_radius(station, radius_km)

        stations: Dict[str, Station] = {s.id: s for s, _ in found}
        distances = {s.id: d for s, d in found}
        for other in self._same_municipality(station):
            if other.id not in stations:
                stations[other.id] = other
                distances[other.id] = haversine_km(station.lat, station.lng, other.lat, other.lng)

        return self.enricher.enrich(list(stations.values()), distances=distances)

    def get_competitors(
        self,
        station_id: str,
        mode: Union[CompetitorMode, str] = CompetitorMode.RADIUS,
        radius_km: Optional[float] = None,
    ) -> List[CompetitorEntry]:
        """
        Competitor set for a station.

        Args:
            station_id: User's station
            mode: radius, municipality, or combined
            radius_km: Search radius (defaults to settings.default_radius_km)

        Raises:
            StationNotFoundError: If the station is unknown or inactive
            InvalidCompetitorModeError: If mode is not recognized
        """
        try:
            mode = CompetitorMode(mode)
        except ValueError:
            raise InvalidCompetitorModeError(str(mode))

        station = self.get_station(station_id)

        if mode == CompetitorMode.MUNICIPALITY:
            competitors = self.by_municipality(station)
        elif mode == CompetitorMode.COMBINED:
            competitors = self.combined(station, radius_km)
        else:
            competitors = self.by_radius(station, radius_km)

        logger.info(
            "competitors_resolved",
            station_id=station_id,
            mode=mode.value,
            count=len(competitors)
        )
        return competitors

    def get_competitive_insights(
        self,
        station_id: str,
        mode: Union[CompetitorMode, str] = CompetitorMode.RADIUS,
        radius_km: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> CompetitiveInsights:
        """
        Insights for a station against its resolved competitor set.

        Pricing windows and volatility alerts come from one bulk fetch of
        the competitors' last WINDOW_DAYS of price changes.
        """
        now = now or datetime.now(timezone.utc)
        competitors = self.get_competitors(station_id, mode, radius_km)
        user_prices = self.enricher.get_latest_prices(station_id)
        changes = self.store.series(
            now - timedelta(days=WINDOW_DAYS),
            now,
            station_ids=[c.station_id for c in competitors],
        )

        logger.debug("competitor_changes_loaded", station_id=station_id, changes=len(changes))
        return competitive_insights(user_prices, competitors, changes, now)


# Singleton instance
_competitor_service: Optional[CompetitorService] = None


def get_competitor_service() -> CompetitorService:
    """Get singleton instance of CompetitorService."""
    global _competitor_service
    if _competitor_service is None:
        _competitor_service = CompetitorService()
    return _competitor_service
