"""
Service alert data model.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Tuple

from google.transit import gtfs_realtime_pb2

ALERT_CAUSE = gtfs_realtime_pb2.Alert.Cause
ALERT_EFFECT = gtfs_realtime_pb2.Alert.Effect


def pick_translation(translated_string, language: str = "") -> str:
    """Return the translation for `language`, defaulting to the first available"""
    translations = list(translated_string.translation)
    if not translations:
        return ""
    if language:
        for translation in translations:
            if translation.language == language:
                return translation.text
    return translations[0].text


@dataclass(frozen=True)
class ServiceAlert:
    """Immutable service alert; an empty affected-route set means system-wide"""
    id: str
    header_text: str = ""
    description_text: str = ""
    affected_route_ids: FrozenSet[str] = field(default_factory=frozenset)
    active_periods: Tuple[Tuple[Optional[int], Optional[int]], ...] = field(default_factory=tuple)
    cause: Optional[str] = None
    effect: Optional[str] = None

    def affects_any(self, route_ids: Iterable[str]) -> bool:
        if not self.affected_route_ids:
            return True
        return not self.affected_route_ids.isdisjoint(route_ids)

    def is_active(self, now: int) -> bool:
        """True if any active period covers `now`; no periods means always active"""
        if not self.active_periods:
            return True
        for start, end in self.active_periods:
            if (start is None or start <= now) and (end is None or now <= end):
                return True
        return False

    @classmethod
    def from_entity(cls, entity, language: str = "") -> Optional['ServiceAlert']:
        if not entity.HasField("alert"):
            return None
        alert = entity.alert

        routes = set()
        for informed in alert.informed_entity:
            # Route can be specified directly in route_id OR in trip.route_id
            route_id = informed.route_id
            if not route_id and informed.HasField("trip"):
                route_id = informed.trip.route_id
            if route_id:
                routes.add(route_id)

        periods = tuple(
            (
                int(period.start) if period.HasField("start") else None,
                int(period.end) if period.HasField("end") else None,
            )
            for period in alert.active_period
        )

        return cls(
            id=entity.id,
            header_text=pick_translation(alert.header_text, language) if alert.HasField("header_text") else "",
            description_text=(
                pick_translation(alert.description_text, language) if alert.HasField("description_text") else ""
            ),
            affected_route_ids=frozenset(routes),
            active_periods=periods,
            cause=ALERT_CAUSE.Name(alert.cause) if alert.HasField("cause") else None,
            effect=ALERT_EFFECT.Name(alert.effect) if alert.HasField("effect") else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "headerText": self.header_text,
            "descriptionText": self.description_text,
            "routeIds": sorted(self.affected_route_ids),
            "activePeriods": [{"start": start, "end": end} for start, end in self.active_periods],
            "cause": self.cause,
            "effect": self.effect,
        }
