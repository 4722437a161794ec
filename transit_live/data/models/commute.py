"""
Commute log and pattern models.
Departures are an append-only log; patterns are derived and rebuilt from the log on every write.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CommuteDeparture:
    destination: str
    day_of_week: int  # 0=Sun, 6=Sat
    hour: int  # 0-23
    minute: int  # 0-59
    timestamp: float  # POSIX seconds

    @property
    def minutes_since_midnight(self) -> int:
        return self.hour * 60 + self.minute

    @classmethod
    def from_dict(cls, data: dict) -> Optional['CommuteDeparture']:
        """Parse one stored record; None if it is malformed"""
        try:
            departure = cls(
                destination=str(data["destination"]),
                day_of_week=int(data["dayOfWeek"]),
                hour=int(data["hour"]),
                minute=int(data["minute"]),
                timestamp=float(data["timestamp"]),
            )
        except (KeyError, TypeError, ValueError):
            return None
        if not (0 <= departure.day_of_week <= 6 and 0 <= departure.hour <= 23 and 0 <= departure.minute <= 59):
            return None
        return departure

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "dayOfWeek": self.day_of_week,
            "hour": self.hour,
            "minute": self.minute,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class CommutePattern:
    """Recurring destination + weekday + time-of-day cluster"""
    destination: str
    day_of_week: int
    avg_hour: int
    avg_minute: int
    occurrences: int
    last_used: float

    @property
    def minutes_since_midnight(self) -> int:
        return self.avg_hour * 60 + self.avg_minute

    @classmethod
    def from_dict(cls, data: dict) -> Optional['CommutePattern']:
        try:
            return cls(
                destination=str(data["destination"]),
                day_of_week=int(data["dayOfWeek"]),
                avg_hour=int(data["avgHour"]),
                avg_minute=int(data["avgMinute"]),
                occurrences=int(data["occurrences"]),
                last_used=float(data["lastUsed"]),
            )
        except (KeyError, TypeError, ValueError):
            return None

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "dayOfWeek": self.day_of_week,
            "avgHour": self.avg_hour,
            "avgMinute": self.avg_minute,
            "occurrences": self.occurrences,
            "lastUsed": self.last_used,
        }
