"""
Data layer module.
Exports models, sources and repositories.
"""

from .models import (
    FeedKind, FeedSnapshot, VehiclePosition, NearbyVehicle,
    StopTimeEvent, StopTimeUpdate, TripUpdate, ServiceAlert,
    Itinerary, TransitStep, WalkStep, CommuteDeparture, CommutePattern,
)
from .repositories import FeedCache

__all__ = [
    # Models
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

    # Repositories
    "FeedCache",
]
