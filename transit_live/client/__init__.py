"""
Client-side engines: nearby departures with ETAs, trip progress, commute patterns.
"""

from .commute_patterns import CommutePatternDetector, compute_patterns, format_pattern_time, short_destination
from .eta import correlate_eta, dedupe_by_route, resolve_nearby
from .live_status import extract_route_hint, is_route_live
from .nearby_departures import NearbyDeparturesService
from .notifications import LoggingNotifier, Notifier, SafeNotifier
from .route_history import RouteHistory
from .storage import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .trip_progress import TripProgress, TripProgressTracker
from .trip_session import TripSession
