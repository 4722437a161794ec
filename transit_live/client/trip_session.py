"""
Active trip session.
Owns the progress tracker for one trip together with its location
subscription and tick timer, and releases all of them on close.
"""

import logging
from datetime import datetime
from typing import AsyncIterable, Callable, Optional, Tuple

import pytz

from .notifications import Notifier, ensure_safe
from .storage import LAST_ITINERARY_KEY, KeyValueStore
from .trip_progress import TripProgress, TripProgressTracker
from ..core.config import ClientConfig
from ..core.event_loop import ManagedEventLoop, TimerHandle
from ..data.models.itinerary import Itinerary
from ..errors import LocationUnavailableError

logger = logging.getLogger(__name__)

LocationStream = AsyncIterable[Tuple[float, float]]


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


class TripSession:
    """One active trip: tracker, location subscription, tick timer"""

    def __init__(self, store: KeyValueStore, notifier: Notifier, config: Optional[ClientConfig] = None,
                 location_updates: Optional[LocationStream] = None,
                 event_loop: Optional[ManagedEventLoop] = None,
                 clock: Callable[[], datetime] = _utc_now):
        self.store = store
        self.notifier = ensure_safe(notifier)
        self.config = config or ClientConfig()
        self.location_updates = location_updates
        self.event_loop = event_loop or ManagedEventLoop()
        self.clock = clock

        self.tracker: Optional[TripProgressTracker] = None
        self.last_progress: Optional[TripProgress] = None
        self._tick_handle: Optional[TimerHandle] = None
        self._location_handle: Optional[TimerHandle] = None
        self._closed = False

    @property
    def offline(self) -> bool:
        return self.tracker is not None and self.tracker.offline

    async def load_cached_itinerary(self) -> Optional[Itinerary]:
        data = await self.store.get_object(LAST_ITINERARY_KEY)
        if data is None:
            return None
        try:
            return Itinerary.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring corrupt cached itinerary: {e}")
            return None

    async def start(self, live_itinerary: Optional[Itinerary] = None) -> bool:
        """
        Start tracking a trip.

        Uses the live itinerary when given (and caches it), otherwise resumes the
        cached one in offline mode. Returns False when neither is available.
        """
        offline = False
        itinerary = live_itinerary
        if itinerary is not None:
            await self.store.set(LAST_ITINERARY_KEY, itinerary.to_dict())
        else:
            itinerary = await self.load_cached_itinerary()
            offline = True
        if itinerary is None:
            logger.warning("No itinerary available, trip session not started")
            return False

        self.tracker = TripProgressTracker(
            itinerary,
            self.notifier,
            offline=offline,
            destination_alert_meters=self.config.destination_alert_meters,
            tz=pytz.timezone(self.config.timezone),
        )
        await self.event_loop.start()

        if self.location_updates is not None:
            self._location_handle = self.event_loop.add_task(
                self._consume_locations(self.location_updates), name="trip_location"
            )
        self._tick_handle = self.event_loop.add_interval(
            self.tick, self.config.trip_tick_interval_seconds, name="trip_tick"
        )
        logger.info(f"Trip session started for {itinerary.destination or 'trip'}"
                    f"{' (offline)' if offline else ''}")
        return True

    async def _consume_locations(self, updates: LocationStream):
        try:
            async for lat, lon in updates:
                await self.on_location(lat, lon)
        except LocationUnavailableError as e:
            logger.warning(f"Location updates stopped: {e}")

    async def on_location(self, lat: float, lon: float) -> bool:
        if self.tracker is None or self._closed:
            return False
        return await self.tracker.on_location(lat, lon)

    async def tick(self) -> Optional[TripProgress]:
        if self.tracker is None or self._closed:
            return None
        self.last_progress = await self.tracker.tick(self.clock())
        return self.last_progress

    async def close(self):
        """Cancel the timer and subscription, then dismiss the trip notification"""
        self._closed = True
        for handle in (self._tick_handle, self._location_handle):
            if handle is not None:
                handle.cancel()
        self._tick_handle = None
        self._location_handle = None
        await self.event_loop.stop()
        await self.notifier.dismiss_persistent()
        logger.info("Trip session closed")
