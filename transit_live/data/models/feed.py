"""
Feed snapshot model.
A snapshot is the complete decoded contents of one real-time feed as of its last successful poll.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Generic, Mapping, Optional, TypeVar

T = TypeVar("T")


class FeedKind(str, Enum):
    VEHICLE_POSITIONS = "vehicle_positions"
    TRIP_UPDATES = "trip_updates"
    ALERTS = "alerts"


@dataclass(frozen=True)
class FeedSnapshot(Generic[T]):
    """Immutable entity-id -> entity mapping for one feed"""
    kind: FeedKind
    entities: Mapping[str, T] = field(default_factory=dict)
    fetched_at: Optional[datetime] = None

    def __post_init__(self):
        # Freeze the mapping so readers can never mutate a published snapshot
        object.__setattr__(self, "entities", MappingProxyType(dict(self.entities)))

    @property
    def entity_count(self) -> int:
        return len(self.entities)

    def values(self):
        return list(self.entities.values())

    @classmethod
    def empty(cls, kind: FeedKind) -> "FeedSnapshot[Any]":
        return cls(kind=kind)

    def health(self) -> dict:
        return {
            "count": self.entity_count,
            "lastFetch": self.fetched_at.isoformat() if self.fetched_at else None,
        }
