"""
Observation store backed by the Supabase price_observations table.

Every read is a bulk query: station ids are sent in chunks with in_()
and results are paged, never one query per station. "Latest per
(station, fuel)" comes from the latest_price_observations function
(sql/latest_price_observations.sql), which returns at most one row per
pair, so a lookup never reads a station's whole history.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import structlog
from pydantic import ValidationError as PydanticValidationError

from config import get_supabase_client, settings
from exceptions import DatabaseError
from models.fuel import FuelType
from models.station import PriceObservation

logger = structlog.get_logger(__name__)

# Keeps in_() filters well under PostgREST URL limits, and one latest-price
# call (at most 200 stations x 3 fuels rows) under the max-rows cap
STATION_CHUNK_SIZE = 200

LATEST_PRICES_FUNCTION = "latest_price_observations"

OBSERVATION_COLUMNS = "station_id, fuel_type, price, observed_at"

LatestPrices = Dict[Tuple[str, FuelType], PriceObservation]


def day_range(start: date, end: date) -> Tuple[datetime, datetime]:
    """Inclusive UTC datetime bounds covering whole days start..end."""
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end, time.max, tzinfo=timezone.utc),
    )


def _chunks(items: Sequence[str], size: int) -> Iterator[List[str]]:
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


def _parse_row(row: dict) -> Optional[PriceObservation]:
    """Build an observation from a raw row; None if the row is malformed."""
    try:
        return PriceObservation(
            station_id=str(row["station_id"]),
            fuel_type=row["fuel_type"],
            price=Decimal(str(row["price"])),
            observed_at=row["observed_at"],
        )
    except (KeyError, InvalidOperation, PydanticValidationError) as e:
        logger.warning(
            "observation_row_skipped",
            station_id=row.get("station_id"),
            fuel_type=row.get("fuel_type"),
            error=str(e)
        )
        return None


class ObservationStore:
    """
    Read access to price observations.

    Accepts an injected client so tests can pass a mock.
    """

    def __init__(self, db=None, page_size: Optional[int] = None):
        self.db = db or get_supabase_client()
        self.table = "price_observations"
        self.page_size = page_size or settings.store_page_size

    # ===================
    # QUERY HELPERS
    # ===================

    def _fetch_all(self, build_query: Callable, operation: str) -> List[dict]:
        """Run a query page by page until a short page comes back."""
        rows: List[dict] = []
        offset = 0
        try:
            while True:
                result = build_query().range(offset, offset + self.page_size - 1).execute()
                batch = result.data or []
                rows.extend(batch)
                if len(batch) < self.page_size:
                    break
                offset += self.page_size
        except Exception as e:
            logger.error(
                "observation_query_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__
            )
            raise DatabaseError("select", str(e), details={"query": operation})

        return rows

    def _query(
        self,
        station_ids: Optional[Sequence[str]] = None,
        fuel_types: Optional[Iterable[FuelType]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ):
        query = self.db.table(self.table).select(OBSERVATION_COLUMNS)
        if station_ids is not None:
            query = query.in_("station_id", list(station_ids))
        if fuel_types:
            query = query.in_("fuel_type", [f.value for f in fuel_types])
        if since:
            query = query.gte("observed_at", since.isoformat())
        if until:
            query = query.lte("observed_at", until.isoformat())
        # (observed_at, station_id, fuel_type) is unique, so range() pages never overlap
        return query.order("observed_at").order("station_id").order("fuel_type")

    def _fetch_observations(
        self,
        operation: str,
        station_ids: Optional[Sequence[str]] = None,
        **filters,
    ) -> List[PriceObservation]:
        if station_ids is None:
            chunks: List[Optional[List[str]]] = [None]
        else:
            chunks = list(_chunks(list(dict.fromkeys(station_ids)), STATION_CHUNK_SIZE))

        observations: List[PriceObservation] = []
        for chunk in chunks:
            rows = self._fetch_all(
                lambda chunk=chunk: self._query(station_ids=chunk, **filters),
                operation,
            )
            observations.extend(obs for obs in map(_parse_row, rows) if obs is not None)
        return observations

    # ===================
    # READ OPERATIONS
    # ===================

    def latest_prices(
        self,
        station_ids: Sequence[str],
        fuel_types: Optional[Iterable[FuelType]] = None,
        since: Optional[datetime] = None,
    ) -> LatestPrices:
        """
        Most recent observation per (station_id, fuel_type).

        Args:
            station_ids: Stations to look up
            fuel_types: Restrict to these fuels (all when None)
            since: Ignore observations older than this

        Returns:
            Dict keyed by (station_id, fuel_type); missing pairs are absent
        """
        if not station_ids:
            return {}

        logger.debug(
            "fetching_latest_prices",
            station_count=len(station_ids),
            since=since.isoformat() if since else None
        )

        fuel_values = [f.value for f in fuel_types] if fuel_types else None

        latest: LatestPrices = {}
        for chunk in _chunks(list(dict.fromkeys(station_ids)), STATION_CHUNK_SIZE):
            params = {
                "p_station_ids": chunk,
                "p_fuel_types": fuel_values,
                "p_since": since.isoformat() if since else None,
            }
            try:
                result = self.db.rpc(LATEST_PRICES_FUNCTION, params).execute()
            except Exception as e:
                logger.error(
                    "observation_query_failed",
                    operation="latest_prices",
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise DatabaseError("select", str(e), details={"query": "latest_prices"})

            for obs in map(_parse_row, result.data or []):
                if obs is None:
                    continue
                key = (obs.station_id, obs.fuel_type)
                current = latest.get(key)
                if current is None or obs.observed_at > current.observed_at:
                    latest[key] = obs

        logger.debug("latest_prices_resolved", pairs=len(latest))
        return latest

    def series(
        self,
        start: datetime,
        end: datetime,
        station_ids: Optional[Sequence[str]] = None,
        fuel_type: Optional[FuelType] = None,
    ) -> List[PriceObservation]:
        """
        Observations between start and end (inclusive), oldest first.

        station_ids=None means every station.
        """
        if station_ids is not None and not station_ids:
            return []

        observations = self._fetch_observations(
            "series",
            station_ids=station_ids,
            fuel_types=[fuel_type] if fuel_type else None,
            since=start,
            until=end,
        )
        observations.sort(key=lambda o: (o.observed_at, o.station_id))
        return observations

    def average_by_fuel(
        self,
        since: datetime,
        until: Optional[datetime] = None,
        station_ids: Optional[Sequence[str]] = None,
    ) -> Dict[FuelType, float]:
        """
        Mean observed price per fuel type in a window.

        Fuels without observations are absent from the result.
        """
        if station_ids is not None and not station_ids:
            return {}

        observations = self._fetch_observations(
            "average_by_fuel",
            station_ids=station_ids,
            since=since,
            until=until,
        )

        totals: Dict[FuelType, float] = {}
        counts: Dict[FuelType, int] = {}
        for obs in observations:
            totals[obs.fuel_type] = totals.get(obs.fuel_type, 0.0) + float(obs.price)
            counts[obs.fuel_type] = counts.get(obs.fuel_type, 0) + 1

        return {fuel: totals[fuel] / counts[fuel] for fuel in totals}


# Singleton instance
_observation_store: Optional[ObservationStore] = None


def get_observation_store() -> ObservationStore:
    """Get singleton instance of ObservationStore."""
    global _observation_store
    if _observation_store is None:
        _observation_store = ObservationStore()
    return _observation_store
