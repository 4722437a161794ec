"""
Geospatial helpers shared by the relay query layer and the client engines.
"""

from math import radians, degrees, cos, sin, asin, atan2, sqrt

EARTH_RADIUS_METERS = 6_371_000.0

CARDINAL_DIRECTIONS = ['North', 'Northeast', 'East', 'Southeast', 'South', 'Southwest', 'West', 'Northwest']


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great-circle distance between two points in meters using Haversine formula.
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat/2)**2 + cos(lat1) * cos(lat2) * sin(dlon/2)**2
    c = 2 * asin(min(1.0, sqrt(a)))

    return c * EARTH_RADIUS_METERS


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial compass bearing in degrees [0, 360) from point 1 to point 2"""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlon = lon2 - lon1
    y = sin(dlon) * cos(lat2)
    x = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)
    return (degrees(atan2(y, x)) + 360) % 360


def cardinal_direction(lat1: float, lon1: float, lat2: float, lon2: float) -> str:
    """Eight-point compass direction from point 1 to point 2, e.g. 'Northeast'"""
    bearing = initial_bearing(lat1, lon1, lat2, lon2)
    return CARDINAL_DIRECTIONS[int(round(bearing / 45)) % 8]


def is_valid_coordinate(lat, lon) -> bool:
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return False
    if lat != lat or lon != lon:  # NaN
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
