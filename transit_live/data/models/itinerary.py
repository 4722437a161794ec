"""
Itinerary data models.
An itinerary is the fixed, ordered plan of walking and transit steps for one trip.
It is cached to local storage as JSON so a later session can resume offline.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, Union

import pytz

Coordinate = Tuple[float, float]


def _to_datetime(value) -> Optional[datetime]:
    """Accept POSIX seconds, ISO strings or datetimes; naive values are treated as UTC"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=pytz.utc)
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt


def _to_coordinate(value) -> Optional[Coordinate]:
    if not value:
        return None
    if isinstance(value, dict):
        lat = value.get("lat", value.get("latitude"))
        lon = value.get("lng", value.get("lon", value.get("longitude")))
    else:
        lat, lon = value
    if lat is None or lon is None:
        return None
    return float(lat), float(lon)


def _coordinate_dict(value: Optional[Coordinate]) -> Optional[dict]:
    if value is None:
        return None
    return {"lat": value[0], "lng": value[1]}


@dataclass(frozen=True)
class WalkStep:
    """Walking leg between two points"""
    distance_meters: float = 0.0
    duration_seconds: float = 0.0
    instructions: str = ""
    start: Optional[Coordinate] = None
    end: Optional[Coordinate] = None

    travel_mode = "WALKING"

    def to_dict(self) -> dict:
        return {
            "travelMode": self.travel_mode,
            "distanceMeters": self.distance_meters,
            "durationSeconds": self.duration_seconds,
            "instructions": self.instructions,
            "startLocation": _coordinate_dict(self.start),
            "endLocation": _coordinate_dict(self.end),
        }


@dataclass(frozen=True)
class TransitStep:
    """Ride on one transit line between a boarding and an alighting stop"""
    departure_stop: str
    arrival_stop: str
    departure_time: datetime
    arrival_time: datetime
    line_name: str
    num_stops: int
    vehicle_type: str = ""
    line_color: Optional[str] = None
    start: Optional[Coordinate] = None
    end: Optional[Coordinate] = None

    travel_mode = "TRANSIT"

    @property
    def duration_seconds(self) -> float:
        return (self.arrival_time - self.departure_time).total_seconds()

    @property
    def avg_stop_duration_seconds(self) -> float:
        if self.num_stops <= 0:
            return 0.0
        return self.duration_seconds / self.num_stops

    def to_dict(self) -> dict:
        return {
            "travelMode": self.travel_mode,
            "departureStop": self.departure_stop,
            "arrivalStop": self.arrival_stop,
            "departureTime": self.departure_time.isoformat(),
            "arrivalTime": self.arrival_time.isoformat(),
            "lineName": self.line_name,
            "numStops": self.num_stops,
            "vehicleType": self.vehicle_type,
            "lineColor": self.line_color,
            "startLocation": _coordinate_dict(self.start),
            "endLocation": _coordinate_dict(self.end),
        }


Step = Union[WalkStep, TransitStep]


def step_from_dict(data: dict) -> Step:
    """Build a step from its JSON form; raises ValueError/KeyError/TypeError on malformed input"""
    if not isinstance(data, dict):
        raise TypeError("step must be a JSON object")
    mode = str(data.get("travelMode", "")).upper()
    if mode == "TRANSIT":
        departure_time = _to_datetime(data["departureTime"])
        arrival_time = _to_datetime(data["arrivalTime"])
        if departure_time is None or arrival_time is None:
            raise ValueError("transit step requires departure and arrival times")
        return TransitStep(
            departure_stop=str(data.get("departureStop", "")),
            arrival_stop=str(data.get("arrivalStop", "")),
            departure_time=departure_time,
            arrival_time=arrival_time,
            line_name=str(data.get("lineName", "")),
            num_stops=int(data.get("numStops", 0)),
            vehicle_type=str(data.get("vehicleType") or ""),
            line_color=data.get("lineColor"),
            start=_to_coordinate(data.get("startLocation")),
            end=_to_coordinate(data.get("endLocation")),
        )
    if mode in ("WALKING", "WALK"):
        return WalkStep(
            distance_meters=float(data.get("distanceMeters", 0.0)),
            duration_seconds=float(data.get("durationSeconds", 0.0)),
            instructions=str(data.get("instructions", "")),
            start=_to_coordinate(data.get("startLocation")),
            end=_to_coordinate(data.get("endLocation")),
        )
    raise ValueError(f"Unknown travel mode: {mode!r}")


@dataclass(frozen=True)
class Itinerary:
    """Immutable ordered sequence of steps for one trip plan"""
    steps: Tuple[Step, ...] = field(default_factory=tuple)
    origin: str = ""
    destination: str = ""
    destination_coordinate: Optional[Coordinate] = None

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))

    @property
    def transit_steps(self) -> List[Tuple[int, TransitStep]]:
        """(step index, step) pairs for every transit step, in order"""
        return [(i, s) for i, s in enumerate(self.steps) if isinstance(s, TransitStep)]

    @property
    def last_transit_index(self) -> Optional[int]:
        transit = self.transit_steps
        return transit[-1][0] if transit else None

    @property
    def final_coordinate(self) -> Optional[Coordinate]:
        """Explicit destination coordinate, else the end of the last step that has one"""
        if self.destination_coordinate is not None:
            return self.destination_coordinate
        for step in reversed(self.steps):
            if step.end is not None:
                return step.end
        return None

    @property
    def arrival_time(self) -> Optional[datetime]:
        transit = self.transit_steps
        return transit[-1][1].arrival_time if transit else None

    @classmethod
    def from_dict(cls, data: dict) -> 'Itinerary':
        """Parse the JSON form; raises on malformed input"""
        if not isinstance(data, dict):
            raise TypeError("itinerary must be a JSON object")
        steps = data.get("steps") or []
        if not isinstance(steps, list):
            raise TypeError("itinerary steps must be a JSON array")
        return cls(
            steps=tuple(step_from_dict(step) for step in steps),
            origin=str(data.get("origin", "")),
            destination=str(data.get("destination", "")),
            destination_coordinate=_to_coordinate(data.get("destinationLocation")),
        )

    def to_dict(self) -> dict:
        return {
            "origin": self.origin,
            "destination": self.destination,
            "destinationLocation": _coordinate_dict(self.destination_coordinate),
            "steps": [step.to_dict() for step in self.steps],
        }
