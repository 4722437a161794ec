"""
Vehicle data models.
Immutable structures for decoded vehicle positions and the client-side nearby view.
"""

from dataclasses import dataclass, asdict, replace
from typing import Optional

from google.transit import gtfs_realtime_pb2

VEHICLE_STOP_STATUS = gtfs_realtime_pb2.VehiclePosition.VehicleStopStatus


@dataclass(frozen=True)
class VehiclePosition:
    """Immutable vehicle position decoded from the vehicle positions feed"""
    id: str
    route_id: str = ""
    trip_id: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bearing: Optional[float] = None
    speed: Optional[float] = None  # meters per second
    current_stop_sequence: Optional[int] = None
    current_status: Optional[str] = None
    timestamp: Optional[int] = None  # POSIX seconds

    @property
    def has_position(self) -> bool:
        if self.latitude is None or self.longitude is None:
            return False
        # A 0,0 fix is what unset protobuf floats decode to
        if self.latitude == 0.0 and self.longitude == 0.0:
            return False
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    @classmethod
    def from_entity(cls, entity) -> Optional['VehiclePosition']:
        """Create VehiclePosition from a FeedEntity; None when the entity has no vehicle"""
        if not entity.HasField("vehicle"):
            return None
        vp = entity.vehicle
        vehicle_id = vp.vehicle.id if vp.HasField("vehicle") and vp.vehicle.id else entity.id
        if not vehicle_id:
            return None

        latitude = longitude = bearing = speed = None
        if vp.HasField("position"):
            latitude = float(vp.position.latitude)
            longitude = float(vp.position.longitude)
            if vp.position.HasField("bearing"):
                bearing = float(vp.position.bearing)
            if vp.position.HasField("speed"):
                speed = float(vp.position.speed)

        return cls(
            id=str(vehicle_id),
            route_id=vp.trip.route_id if vp.HasField("trip") else "",
            trip_id=vp.trip.trip_id if vp.HasField("trip") else "",
            latitude=latitude,
            longitude=longitude,
            bearing=bearing,
            speed=speed,
            current_stop_sequence=vp.current_stop_sequence if vp.HasField("current_stop_sequence") else None,
            current_status=VEHICLE_STOP_STATUS.Name(vp.current_status) if vp.HasField("current_status") else None,
            timestamp=int(vp.timestamp) if vp.HasField("timestamp") else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "routeId": self.route_id,
            "tripId": self.trip_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "bearing": self.bearing,
            "speed": self.speed,
            "currentStopSequence": self.current_stop_sequence,
            "currentStatus": self.current_status,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class NearbyVehicle:
    """Nearest vehicle of one route with a resolved arrival estimate"""
    id: str
    route_id: str
    route_name: str
    distance_meters: float
    latitude: float
    longitude: float
    trip_id: str = ""
    bearing: Optional[float] = None
    speed: Optional[float] = None
    current_stop_sequence: Optional[int] = None
    estimated_arrival_mins: Optional[int] = None
    is_realtime: bool = False

    @classmethod
    def from_relay_data(cls, data: dict, route_name: Optional[str] = None) -> 'NearbyVehicle':
        """Create NearbyVehicle from one item of the relay /nearby response"""
        route_id = str(data.get("routeId") or "")
        stop_sequence = data.get("currentStopSequence")
        return cls(
            id=str(data.get("id", "")),
            route_id=route_id,
            route_name=route_name or f"Route {route_id}",
            distance_meters=float(data.get("distanceMeters", 0.0)),
            latitude=float(data.get("latitude", 0.0)),
            longitude=float(data.get("longitude", 0.0)),
            trip_id=str(data.get("tripId") or ""),
            bearing=data.get("bearing"),
            speed=data.get("speed"),
            current_stop_sequence=int(stop_sequence) if stop_sequence is not None else None,
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def with_eta(self, minutes: int, is_realtime: bool) -> 'NearbyVehicle':
        return replace(self, estimated_arrival_mins=minutes, is_realtime=is_realtime)
