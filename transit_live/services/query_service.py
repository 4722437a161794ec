"""
Geospatial and filter queries over the current feed snapshots.
Every query is a read-only projection; none of them mutate the cache.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from ..data.models.alert import ServiceAlert
from ..data.models.feed import FeedKind
from ..data.models.trip import TripUpdate
from ..data.models.vehicle import VehiclePosition
from ..data.repositories.feed_cache import FeedCache
from ..utils.geo import haversine_meters

logger = logging.getLogger(__name__)

DEFAULT_NEARBY_LIMIT = 10


class FeedQueryService:
    """Read-only views over the feed cache"""

    def __init__(self, cache: FeedCache):
        self.cache = cache

    def _vehicles(self) -> List[VehiclePosition]:
        return self.cache.snapshot(FeedKind.VEHICLE_POSITIONS).values()

    def vehicles_by_route(self, route_id: Optional[str] = None) -> List[VehiclePosition]:
        """Vehicles on `route_id` (exact match); all vehicles when route_id is empty"""
        vehicles = self._vehicles()
        if not route_id:
            return vehicles
        return [v for v in vehicles if v.route_id == route_id]

    def vehicles_near(self, lat: float, lon: float, radius_meters: float,
                      limit: Optional[int] = DEFAULT_NEARBY_LIMIT) -> List[Tuple[VehiclePosition, float]]:
        """
        Vehicles within `radius_meters` of (lat, lon), nearest first.

        Vehicles without a valid position are skipped.

        Returns:
            List of (vehicle, distance_meters) pairs truncated to `limit`.
        """
        matches = self.all_vehicles_near(lat, lon, radius_meters)
        if limit is not None:
            matches = matches[:limit]
        return matches

    def all_vehicles_near(self, lat: float, lon: float, radius_meters: float) -> List[Tuple[VehiclePosition, float]]:
        matches = []
        for vehicle in self._vehicles():
            if not vehicle.has_position:
                continue
            distance = haversine_meters(lat, lon, vehicle.latitude, vehicle.longitude)
            if distance <= radius_meters:
                matches.append((vehicle, distance))
        matches.sort(key=lambda pair: pair[1])
        return matches

    def alerts_for_routes(self, route_ids: Optional[Iterable[str]] = None) -> List[ServiceAlert]:
        """Alerts affecting any of `route_ids`; system-wide alerts always match.

        An empty filter returns every cached alert.
        """
        alerts = self.cache.snapshot(FeedKind.ALERTS).values()
        wanted = {r for r in (route_ids or []) if r}
        if not wanted:
            return alerts
        return [a for a in alerts if a.affects_any(wanted)]

    def predictions_for_route(self, route_id: str) -> List[TripUpdate]:
        updates = self.cache.snapshot(FeedKind.TRIP_UPDATES).values()
        return [u for u in updates if u.route_id == route_id]
