"""
Data models module.
Exports all data model classes.
"""

from .feed import FeedKind, FeedSnapshot
from .vehicle import VehiclePosition, NearbyVehicle
from .trip import StopTimeEvent, StopTimeUpdate, TripUpdate
from .alert import ServiceAlert
from .itinerary import Itinerary, TransitStep, WalkStep
from .commute import CommuteDeparture, CommutePattern

__all__ = [
    "FeedKind",
    "FeedSnapshot",
    "VehiclePosition",
    "NearbyVehicle",
    "StopTimeEvent",
    "StopTimeUpdate",
    "TripUpdate",
    "ServiceAlert",
    "Itinerary",
    "TransitStep",
    "WalkStep",
    "CommuteDeparture",
    "CommutePattern",
]
