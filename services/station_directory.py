"""
Station directory backed by the Supabase stations table.

Read-only: stations are maintained by the ingestion pipeline.
"""

from typing import Dict, List, Optional, Sequence

import structlog

from config import get_supabase_client
from exceptions import DatabaseError
from models.geo import AreaType
from models.station import Station

logger = structlog.get_logger(__name__)

STATION_COLUMNS = "id, name, lat, lng, municipality_id, region_id, brand, active"

AREA_TABLES = {
    AreaType.REGION: "regions",
    AreaType.MUNICIPALITY: "municipalities",
}

AREA_COLUMNS = {
    AreaType.REGION: "region_id",
    AreaType.MUNICIPALITY: "municipality_id",
}


def _optional_str(value) -> Optional[str]:
    return None if value is None else str(value)


def _parse_station(row: dict) -> Station:
    return Station(
        id=str(row["id"]),
        name=row.get("name") or "",
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        municipality_id=_optional_str(row.get("municipality_id")),
        region_id=_optional_str(row.get("region_id")),
        brand=row.get("brand"),
        active=bool(row.get("active", True)),
    )


class StationDirectory:
    """Lookups over the station table."""

    def __init__(self, db=None):
        self.db = db or get_supabase_client()
        self.table = "stations"

    def _select(self, operation: str, build) -> List[Station]:
        try:
            query = build(self.db.table(self.table).select(STATION_COLUMNS))
            result = query.execute()
        except Exception as e:
            logger.error(
                "station_query_failed",
                operation=operation,
                error=str(e)
            )
            raise DatabaseError("select", str(e), details={"query": operation})

        stations = []
        for row in result.data or []:
            if row.get("lat") is None or row.get("lng") is None:
                logger.warning("station_without_coordinates", station_id=row.get("id"))
                continue
            stations.append(_parse_station(row))
        return stations

    # ===================
    # READ OPERATIONS
    # ===================

    def get(self, station_id: str) -> Optional[Station]:
        """Station by id, active or not. None if unknown."""
        stations = self._select(
            "get_station",
            lambda q: q.eq("id", station_id).limit(1),
        )
        return stations[0] if stations else None

    def active_in_box(
        self,
        south: float,
        north: float,
        west: float,
        east: float,
    ) -> List[Station]:
        """Active stations inside a lat/lng box (inclusive)."""
        return self._select(
            "active_in_box",
            lambda q: (
                q.eq("active", True)
                .gte("lat", south)
                .lte("lat", north)
                .gte("lng", west)
                .lte("lng", east)
            ),
        )

    def active_in_municipality(self, municipality_id: str) -> List[Station]:
        """Active stations in a municipality."""
        return self._select(
            "active_in_municipality",
            lambda q: q.eq("active", True).eq("municipality_id", municipality_id),
        )

    def active_in_scope(
        self,
        region_id: Optional[str] = None,
        municipality_id: Optional[str] = None,
    ) -> List[Station]:
        """Active stations filtered by region and/or municipality (all when both None)."""
        def build(q):
            q = q.eq("active", True)
            if region_id is not None:
                q = q.eq("region_id", region_id)
            if municipality_id is not None:
                q = q.eq("municipality_id", municipality_id)
            return q

        return self._select("active_in_scope", build)

    def active_in_areas(
        self,
        area_type: AreaType,
        area_ids: Sequence[str],
    ) -> List[Station]:
        """Active stations belonging to any of the given areas, in one query."""
        if not area_ids:
            return []
        column = AREA_COLUMNS[area_type]
        return self._select(
            "active_in_areas",
            lambda q: q.eq("active", True).in_(column, list(area_ids)),
        )

    def area_names(self, area_type: AreaType, area_ids: Sequence[str]) -> Dict[str, str]:
        """Names for the given area ids; unknown ids are absent."""
        if not area_ids:
            return {}
        try:
            result = (
                self.db.table(AREA_TABLES[area_type])
                .select("id, name")
                .in_("id", list(area_ids))
                .execute()
            )
        except Exception as e:
            logger.error(
                "area_query_failed",
                area_type=area_type.value,
                error=str(e)
            )
            raise DatabaseError("select", str(e), details={"table": AREA_TABLES[area_type]})

        return {str(row["id"]): row.get("name") or "" for row in result.data or []}


# Singleton instance
_station_directory: Optional[StationDirectory] = None


def get_station_directory() -> StationDirectory:
    """Get singleton instance of StationDirectory."""
    global _station_directory
    if _station_directory is None:
        _station_directory = StationDirectory()
    return _station_directory
