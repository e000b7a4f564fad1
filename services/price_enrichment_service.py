"""
Attaches latest prices to stations.

One bulk store call per request, regardless of how many stations are
enriched.
"""

from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

import structlog

from models.fuel import FuelType, ALL_FUEL_TYPES
from models.station import CompetitorEntry, Station, empty_prices
from services.observation_store import ObservationStore, get_observation_store
from utils.statistics import round_to

logger = structlog.get_logger(__name__)


class PriceEnrichmentService:
    """Builds CompetitorEntry records from stations and the observation store."""

    def __init__(self, store: Optional[ObservationStore] = None):
        self.store = store or get_observation_store()

    def enrich(
        self,
        stations: Sequence[Station],
        distances: Optional[Mapping[str, float]] = None,
    ) -> List[CompetitorEntry]:
        """
        Latest price per fuel for each station, keeping the input order.

        Args:
            stations: Stations to enrich
            distances: Optional station_id -> km from the reference station

        Returns:
            One CompetitorEntry per station; fuels without data are None
        """
        if not stations:
            return []

        distances = distances or {}
        latest = self.store.latest_prices([s.id for s in stations])

        entries = []
        for station in stations:
            prices = empty_prices()
            last_update = None
            for fuel_type in ALL_FUEL_TYPES:
                obs = latest.get((station.id, fuel_type))
                if obs is None:
                    continue
                prices[fuel_type] = obs.price
                if last_update is None or obs.observed_at > last_update:
                    last_update = obs.observed_at

            distance = distances.get(station.id)
            entries.append(CompetitorEntry(
                station_id=station.id,
                name=station.name,
                brand=station.brand,
                distance_km=round_to(distance, 2) if distance is not None else None,
                prices=prices,
                last_update=last_update,
            ))

        logger.debug(
            "competitors_enriched",
            stations=len(stations),
            price_pairs=len(latest)
        )
        return entries

    def get_latest_prices(self, station_id: str) -> Dict[FuelType, Optional[Decimal]]:
        """The station's own latest price per fuel, in one store call."""
        latest = self.store.latest_prices([station_id])
        prices = empty_prices()
        for fuel_type in ALL_FUEL_TYPES:
            obs = latest.get((station_id, fuel_type))
            if obs is not None:
                prices[fuel_type] = obs.price
        return prices


# Singleton instance
_price_enrichment_service: Optional[PriceEnrichmentService] = None


def get_price_enrichment_service() -> PriceEnrichmentService:
    """Get singleton instance of PriceEnrichmentService."""
    global _price_enrichment_service
    if _price_enrichment_service is None:
        _price_enrichment_service = PriceEnrichmentService()
    return _price_enrichment_service
