"""
ETA correlation engine.

Correlates a nearby vehicle's position with stop-level trip predictions to
produce minutes-to-arrival. A real predicted stop time is preferred; when none
can be matched the estimate falls back to a distance heuristic, so a vehicle
always gets a number.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..data.models.trip import StopTimeUpdate, TripUpdate
from ..data.models.vehicle import NearbyVehicle

logger = logging.getLogger(__name__)

# ~5 m/s average urban transit speed -> 300 m per minute
HEURISTIC_METERS_PER_MINUTE = 300.0
DEFAULT_DISPLAY_COUNT = 4


def round_half_up(value: float) -> int:
    """Round halves up rather than to even"""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def heuristic_eta_minutes(distance_meters: float) -> int:
    return max(1, round_half_up(distance_meters / HEURISTIC_METERS_PER_MINUTE))


def minutes_until(arrival_time: int, now: float) -> int:
    return max(0, round_half_up((arrival_time - now) / 60.0))


def dedupe_by_route(candidates: Iterable[NearbyVehicle]) -> List[NearbyVehicle]:
    """Keep only the closest vehicle per route"""
    by_route: Dict[str, NearbyVehicle] = {}
    for vehicle in candidates:
        existing = by_route.get(vehicle.route_id)
        if existing is None or vehicle.distance_meters < existing.distance_meters:
            by_route[vehicle.route_id] = vehicle
    return list(by_route.values())


def find_trip_update(trip_id: str, trip_updates: Iterable[TripUpdate]) -> Optional[TripUpdate]:
    if not trip_id:
        return None
    for update in trip_updates:
        if update.trip_id == trip_id:
            return update
    return None


def next_stop_after(update: TripUpdate, stop_sequence: int) -> Optional[StopTimeUpdate]:
    """Smallest stop_sequence strictly after the vehicle's, among stops with a known arrival"""
    ahead = [
        stu for stu in update.arrivals()
        if stu.stop_sequence is not None and stu.stop_sequence > stop_sequence
    ]
    return min(ahead, key=lambda stu: stu.stop_sequence) if ahead else None


def first_future_arrival(update: TripUpdate, now: float) -> Optional[StopTimeUpdate]:
    future = [stu for stu in update.arrivals() if stu.arrival_time > now]
    return min(future, key=lambda stu: stu.arrival_time) if future else None


def correlate_eta(vehicle: NearbyVehicle, trip_updates: Iterable[TripUpdate], now: float) -> Tuple[int, bool]:
    """
    Resolve minutes-to-arrival for one vehicle.

    Args:
        vehicle: Nearby vehicle with trip id, stop sequence and distance.
        trip_updates: Predictions for the vehicle's route.
        now: Current POSIX time in seconds.

    Returns:
        (minutes, is_realtime) - is_realtime is False when the distance heuristic was used.
    """
    update = find_trip_update(vehicle.trip_id, trip_updates)
    if update is not None:
        stop = None
        if vehicle.current_stop_sequence is not None:
            stop = next_stop_after(update, vehicle.current_stop_sequence)
        if stop is None:
            stop = first_future_arrival(update, now)
        if stop is not None:
            return minutes_until(stop.arrival_time, now), True

    return heuristic_eta_minutes(vehicle.distance_meters), False


def resolve_nearby(candidates: Iterable[NearbyVehicle], predictions_by_route: Dict[str, List[TripUpdate]],
                   now: float, display_count: int = DEFAULT_DISPLAY_COUNT) -> List[NearbyVehicle]:
    """Attach an ETA to every vehicle, sort by it and keep the first `display_count`"""
    resolved = []
    for vehicle in candidates:
        minutes, is_realtime = correlate_eta(vehicle, predictions_by_route.get(vehicle.route_id, []), now)
        resolved.append(vehicle.with_eta(minutes, is_realtime))
    resolved.sort(key=lambda v: (v.estimated_arrival_mins, v.distance_meters))
    return resolved[:display_count]
