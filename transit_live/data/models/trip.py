"""
Trip update data models.
Stop-level arrival/departure predictions decoded from the trip updates feed.
Predictions are sparse: not every stop of a trip carries an update.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class StopTimeEvent:
    """Predicted time (POSIX seconds) and delay for one arrival or departure"""
    time: Optional[int] = None
    delay: Optional[int] = None

    @classmethod
    def from_proto(cls, event) -> Optional['StopTimeEvent']:
        has_time = event.HasField("time") and event.time > 0
        has_delay = event.HasField("delay")
        if not has_time and not has_delay:
            return None
        return cls(
            time=int(event.time) if has_time else None,
            delay=int(event.delay) if has_delay else None,
        )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['StopTimeEvent']:
        if not data or not isinstance(data, dict):
            return None
        time = data.get("time")
        delay = data.get("delay")
        return cls(
            time=int(time) if time is not None else None,
            delay=int(delay) if delay is not None else None,
        )

    def to_dict(self) -> dict:
        return {"time": self.time, "delay": self.delay}


@dataclass(frozen=True)
class StopTimeUpdate:
    """Prediction for a single stop of a trip"""
    stop_id: str
    stop_sequence: Optional[int] = None
    arrival: Optional[StopTimeEvent] = None
    departure: Optional[StopTimeEvent] = None

    @property
    def arrival_time(self) -> Optional[int]:
        return self.arrival.time if self.arrival else None

    @classmethod
    def from_proto(cls, stu) -> 'StopTimeUpdate':
        return cls(
            stop_id=stu.stop_id,
            stop_sequence=int(stu.stop_sequence) if stu.HasField("stop_sequence") else None,
            arrival=StopTimeEvent.from_proto(stu.arrival) if stu.HasField("arrival") else None,
            departure=StopTimeEvent.from_proto(stu.departure) if stu.HasField("departure") else None,
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'StopTimeUpdate':
        if not isinstance(data, dict):
            raise TypeError("stop time update must be a JSON object")
        sequence = data.get("stopSequence")
        return cls(
            stop_id=str(data.get("stopId") or ""),
            stop_sequence=int(sequence) if sequence is not None else None,
            arrival=StopTimeEvent.from_dict(data.get("arrival")),
            departure=StopTimeEvent.from_dict(data.get("departure")),
        )

    def to_dict(self) -> dict:
        return {
            "stopId": self.stop_id,
            "stopSequence": self.stop_sequence,
            "arrival": self.arrival.to_dict() if self.arrival else None,
            "departure": self.departure.to_dict() if self.departure else None,
        }


@dataclass(frozen=True)
class TripUpdate:
    """Immutable trip-level prediction"""
    trip_id: str
    route_id: str = ""
    direction_id: Optional[int] = None
    stop_time_updates: Tuple[StopTimeUpdate, ...] = field(default_factory=tuple)
    timestamp: Optional[int] = None
    vehicle_id: Optional[str] = None

    @classmethod
    def from_entity(cls, entity) -> Optional['TripUpdate']:
        """Create TripUpdate from a FeedEntity; None when it has no usable trip reference"""
        if not entity.HasField("trip_update"):
            return None
        tu = entity.trip_update
        if not tu.trip.trip_id:
            return None
        return cls(
            trip_id=tu.trip.trip_id,
            route_id=tu.trip.route_id,
            direction_id=int(tu.trip.direction_id) if tu.trip.HasField("direction_id") else None,
            stop_time_updates=tuple(StopTimeUpdate.from_proto(stu) for stu in tu.stop_time_update),
            timestamp=int(tu.timestamp) if tu.HasField("timestamp") else None,
            vehicle_id=tu.vehicle.id if tu.HasField("vehicle") and tu.vehicle.id else None,
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'TripUpdate':
        direction = data.get("directionId")
        return cls(
            trip_id=str(data.get("tripId") or ""),
            route_id=str(data.get("routeId") or ""),
            direction_id=int(direction) if direction is not None else None,
            stop_time_updates=tuple(
                StopTimeUpdate.from_dict(item) for item in data.get("stopTimeUpdates") or []
                if isinstance(item, dict)
            ),
            timestamp=data.get("timestamp"),
            vehicle_id=data.get("vehicleId"),
        )

    def to_dict(self) -> dict:
        return {
            "tripId": self.trip_id,
            "routeId": self.route_id,
            "directionId": self.direction_id,
            "timestamp": self.timestamp,
            "vehicleId": self.vehicle_id,
            "stopTimeUpdates": [stu.to_dict() for stu in self.stop_time_updates],
        }

    def arrivals(self) -> List[StopTimeUpdate]:
        """Stop time updates that carry a known arrival time"""
        return [stu for stu in self.stop_time_updates if stu.arrival_time is not None]
