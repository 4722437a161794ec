"""
Best-effort "live" badge for planned routes.

A planned itinerary names its lines by their public names ("504 King", "Line 1
Yonge-University"); the realtime feed keys vehicles by route id. Route ids are
numeric, so the first number in the line name is used as the hint. Lines whose
public name carries no number and no known subway name are never reported live.
"""

import logging
import re
from typing import Iterable, Optional

from ..data.models.itinerary import Itinerary
from ..data.models.vehicle import VehiclePosition

logger = logging.getLogger(__name__)

ROUTE_NUMBER_PATTERN = re.compile(r"\d+")

SUBWAY_LINE_NAMES = {
    "yonge-university": "1",
    "yonge university": "1",
    "bloor-danforth": "2",
    "bloor danforth": "2",
    "sheppard": "4",
}


def extract_route_hint(line_name: str) -> Optional[str]:
    """Route id guess for a line name, or None"""
    if not line_name:
        return None
    match = ROUTE_NUMBER_PATTERN.search(line_name)
    if match:
        return match.group(0)
    lowered = line_name.lower()
    if "subway" in lowered or "line" in lowered:
        for name, route_id in SUBWAY_LINE_NAMES.items():
            if name in lowered:
                return route_id
    return None


def is_route_live(itinerary: Itinerary, vehicles: Iterable[VehiclePosition]) -> bool:
    """True when a vehicle on the itinerary's first transit line is currently reporting"""
    transit = itinerary.transit_steps
    if not transit:
        return False
    hint = extract_route_hint(transit[0][1].line_name)
    if hint is None:
        logger.debug(f"No route hint for line '{transit[0][1].line_name}'")
        return False
    return any(vehicle.route_id == hint for vehicle in vehicles)
