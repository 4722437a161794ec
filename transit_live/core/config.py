import os
from dataclasses import dataclass, field, fields
from typing import Dict, Optional

DEFAULT_FEED_URLS = {
    "vehicle_positions": "https://bustime.ttc.ca/gtfsrt/vehicles",
    "trip_updates": "https://bustime.ttc.ca/gtfsrt/trips",
    "alerts": "https://bustime.ttc.ca/gtfsrt/alerts",
}

ENV_PREFIX = "TRANSIT_LIVE_"


def detect_cpu_cores() -> int:
    try:
        return max(1, int(os.cpu_count() or 1))
    except Exception:
        return 1


def _coerce(raw: str, current):
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


def _apply_env(config, environ: Optional[Dict[str, str]] = None):
    environ = os.environ if environ is None else environ
    for f in fields(config):
        key = ENV_PREFIX + f.name.upper()
        if key not in environ:
            continue
        current = getattr(config, f.name)
        if isinstance(current, dict):
            continue
        setattr(config, f.name, _coerce(environ[key], current if current is not None else ""))
    return config


@dataclass
class ApplicationConfig:
    """Centralized relay configuration"""

    # Feed endpoints
    vehicle_positions_url: str = DEFAULT_FEED_URLS["vehicle_positions"]
    trip_updates_url: str = DEFAULT_FEED_URLS["trip_updates"]
    alerts_url: str = DEFAULT_FEED_URLS["alerts"]

    # Poll periods: short for vehicles, medium for trip updates, long for alerts
    vehicle_poll_interval_seconds: float = 15.0
    trip_update_poll_interval_seconds: float = 30.0
    alert_poll_interval_seconds: float = 120.0
    request_timeout_seconds: float = 10.0

    # Query defaults
    nearby_default_radius_meters: float = 800.0
    nearby_limit: int = 10

    # Preferred translation language for alert text; empty means first available
    alert_language: str = ""
    timezone: str = "America/Toronto"

    # Web server
    host: str = "0.0.0.0"
    port: int = 3000

    max_concurrent_requests: int = field(default_factory=lambda: detect_cpu_cores() * 2)
    log_level: str = "INFO"

    def feed_url(self, kind) -> str:
        return {
            "vehicle_positions": self.vehicle_positions_url,
            "trip_updates": self.trip_updates_url,
            "alerts": self.alerts_url,
        }[kind.value]

    def poll_interval(self, kind) -> float:
        return {
            "vehicle_positions": self.vehicle_poll_interval_seconds,
            "trip_updates": self.trip_update_poll_interval_seconds,
            "alerts": self.alert_poll_interval_seconds,
        }[kind.value]

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ApplicationConfig":
        """Build a config, overriding defaults with TRANSIT_LIVE_* variables."""
        return _apply_env(cls(), environ)


@dataclass
class ClientConfig:
    """Client-side settings for the nearby, trip and commute engines"""

    relay_base_url: str = "http://localhost:3000/api"

    nearby_poll_interval_seconds: float = 30.0
    nearby_radius_meters: float = 800.0
    nearby_timeout_seconds: float = 5.0
    predictions_timeout_seconds: float = 8.0
    prediction_concurrency: int = 4
    display_count: int = 4

    # Trip progress
    destination_alert_meters: float = 400.0
    trip_tick_interval_seconds: float = 10.0

    # Commute alerts
    predictive_lead_minutes: int = 10
    timezone: str = "America/Toronto"

    route_names: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ClientConfig":
        return _apply_env(cls(), environ)
