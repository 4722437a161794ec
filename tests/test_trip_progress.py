"""Tests for the trip progress tracker and the trip session lifecycle."""

import asyncio
import json
import unittest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytz

from transit_live.client.notifications import LoggingNotifier, Notifier
from transit_live.client.storage import LAST_ITINERARY_KEY, MemoryKeyValueStore
from transit_live.client.trip_progress import TripProgress, TripProgressTracker, stops_remaining
from transit_live.client.trip_session import TripSession
from transit_live.core.config import ClientConfig
from transit_live.core.event_loop import ManagedEventLoop
from transit_live.data.models.itinerary import Itinerary, TransitStep, WalkStep

TORONTO = pytz.timezone("America/Toronto")
BASE = pytz.utc.localize(datetime(2026, 10, 19, 12, 0))
DESTINATION = (43.6700, -79.3860)


def at(minutes: float) -> datetime:
    return BASE + timedelta(minutes=minutes)


def transit(dep, arr, line, stops, arrival_stop, end=None):
    return TransitStep(
        departure_stop=f"{line} stop",
        arrival_stop=arrival_stop,
        departure_time=at(dep),
        arrival_time=at(arr),
        line_name=line,
        num_stops=stops,
        end=end,
    )


def three_leg_itinerary() -> Itinerary:
    return Itinerary(
        steps=(
            transit(0, 10, "504 King", 5, "Spadina"),
            transit(15, 35, "510 Spadina", 10, "Union"),
            transit(40, 50, "Line 1 Yonge-University", 4, "Bloor", end=DESTINATION),
        ),
        origin="Home",
        destination="Bloor Station, Toronto",
    )


class TestStepIndex(unittest.TestCase):
    """Test active step detection."""

    def setUp(self):
        self.tracker = TripProgressTracker(three_leg_itinerary(), LoggingNotifier())

    def test_before_first_departure(self):
        self.assertEqual(self.tracker.current_step_index(at(-10)), 0)

    def test_between_departures(self):
        self.assertEqual(self.tracker.current_step_index(at(20)), 1)

    def test_exactly_at_departure(self):
        self.assertEqual(self.tracker.current_step_index(at(40)), 2)

    def test_never_regresses(self):
        self.assertEqual(self.tracker.current_step_index(at(45)), 2)
        self.assertEqual(self.tracker.current_step_index(at(20)), 2)

    def test_walk_steps_keep_their_position(self):
        itinerary = Itinerary(steps=(
            WalkStep(distance_meters=300, duration_seconds=240),
            transit(0, 10, "504 King", 5, "Spadina"),
            WalkStep(distance_meters=100, duration_seconds=60),
            transit(15, 35, "510 Spadina", 10, "Union"),
        ))
        tracker = TripProgressTracker(itinerary, LoggingNotifier())
        self.assertEqual(tracker.current_step_index(at(-5)), 0)
        self.assertEqual(tracker.current_step_index(at(5)), 1)
        self.assertEqual(tracker.current_step_index(at(16)), 3)


class TestStopsRemaining(unittest.TestCase):

    def setUp(self):
        self.step = three_leg_itinerary().steps[1]

    def test_boundaries(self):
        self.assertEqual(stops_remaining(self.step, at(10)), 10)
        self.assertEqual(stops_remaining(self.step, at(15)), 10)
        self.assertEqual(stops_remaining(self.step, at(25)), 5)
        self.assertEqual(stops_remaining(self.step, at(35)), 0)
        self.assertEqual(stops_remaining(self.step, at(60)), 0)

    def test_non_increasing(self):
        values = [stops_remaining(self.step, at(15 + i * 0.5)) for i in range(41)]
        self.assertEqual(values, sorted(values, reverse=True))


class TestTripAlerts(unittest.IsolatedAsyncioTestCase):
    """Test transfer, destination and persistent notifications."""

    async def asyncSetUp(self):
        self.notifier = LoggingNotifier()
        self.tracker = TripProgressTracker(three_leg_itinerary(), self.notifier, tz=TORONTO)

    async def test_transfer_alert_fires_once_in_window(self):
        progress = await self.tracker.tick(at(30))
        self.assertEqual(progress.alerts, ())

        progress = await self.tracker.tick(at(31))
        self.assertEqual(progress.alerts, ("Approaching: Union",))
        self.assertEqual(self.notifier.immediate[0][0], "Approaching: Union")
        self.assertIn("Line 1 Yonge-University", self.notifier.immediate[0][1])

        progress = await self.tracker.tick(at(33))
        self.assertEqual(progress.alerts, ())
        self.assertEqual(len(self.notifier.immediate), 1)

    async def test_no_transfer_alert_on_last_step_or_short_rides(self):
        itinerary = Itinerary(steps=(
            transit(0, 4, "504 King", 2, "Spadina"),
            transit(10, 30, "510 Spadina", 10, "Union"),
        ))
        tracker = TripProgressTracker(itinerary, self.notifier)
        for minute in range(0, 31):
            await tracker.tick(at(minute))
        self.assertEqual(self.notifier.immediate, [])

    async def test_persistent_notification_updates(self):
        progress = await self.tracker.tick(at(25))
        self.assertEqual(progress.step_index, 1)
        self.assertEqual(progress.stops_remaining, 5)
        self.assertEqual(progress.arrival_clock_time, "8:50 AM")
        self.assertEqual(self.notifier.persistent, ("510 Spadina", "5 stops left · Arriving 8:50 AM"))

    async def test_walking_step_has_no_stop_count(self):
        itinerary = Itinerary(steps=(
            WalkStep(distance_meters=300, duration_seconds=240),
            transit(0, 10, "504 King", 5, "Spadina"),
        ))
        tracker = TripProgressTracker(itinerary, self.notifier, tz=TORONTO)
        progress = await tracker.tick(at(-3))
        self.assertIsNone(progress.stops_remaining)
        self.assertEqual(self.notifier.persistent, ("504 King", "On your way · Arriving 8:10 AM"))

    async def test_destination_alert_fires_once(self):
        self.assertFalse(await self.tracker.on_location(43.6800, -79.3860))
        self.assertTrue(await self.tracker.on_location(43.6730, -79.3860))
        self.assertFalse(await self.tracker.on_location(43.6701, -79.3860))
        titles = [title for title, _ in self.notifier.immediate]
        self.assertEqual(titles, ["Approaching: Bloor Station, Toronto"])

    async def test_notifier_failures_are_absorbed(self):
        notifier = AsyncMock(spec=Notifier)
        notifier.schedule_immediate.side_effect = RuntimeError("no permission")
        notifier.update_persistent.side_effect = RuntimeError("no permission")
        tracker = TripProgressTracker(three_leg_itinerary(), notifier)

        progress = await tracker.tick(at(31))

        self.assertEqual(progress.alerts, ("Approaching: Union",))
        self.assertEqual(await tracker.tick(at(32)), TripProgress(
            step_index=1, stops_remaining=2, arrival_clock_time=progress.arrival_clock_time,
            label="510 Spadina", offline=False, alerts=(),
        ))


async def location_fixes(*fixes):
    for fix in fixes:
        await asyncio.sleep(0)
        yield fix


class TestTripSession(unittest.IsolatedAsyncioTestCase):
    """Test itinerary loading, offline fallback and teardown."""

    async def asyncSetUp(self):
        self.store = MemoryKeyValueStore()
        self.notifier = LoggingNotifier()
        self.config = ClientConfig(trip_tick_interval_seconds=60)
        self.clock = lambda: at(25)

    def session(self, **kwargs):
        return TripSession(self.store, self.notifier, self.config, event_loop=ManagedEventLoop(),
                           clock=self.clock, **kwargs)

    async def test_live_itinerary_is_cached(self):
        session = self.session()
        itinerary = three_leg_itinerary()

        self.assertTrue(await session.start(itinerary))
        self.assertFalse(session.offline)
        cached = await self.store.get_object(LAST_ITINERARY_KEY)
        self.assertEqual(Itinerary.from_dict(cached), itinerary)
        await session.close()

    async def test_offline_fallback_to_cached_itinerary(self):
        await self.store.set(LAST_ITINERARY_KEY, three_leg_itinerary().to_dict())
        session = self.session()

        self.assertTrue(await session.start())
        progress = await session.tick()

        self.assertTrue(session.offline)
        self.assertTrue(progress.offline)
        self.assertEqual(progress.step_index, 1)
        await session.close()

    async def test_no_itinerary_does_not_start(self):
        session = self.session()
        self.assertFalse(await session.start())
        self.assertIsNone(await session.tick())
        await session.close()

    async def test_corrupt_cache_is_treated_as_absent(self):
        payloads = [{"steps": [{"travelMode": "??"}]}, {"steps": ["walk"]}, {"steps": "abc"}]
        for payload in payloads:
            with self.subTest(payload=payload):
                store = MemoryKeyValueStore({LAST_ITINERARY_KEY: json.dumps(payload)})
                session = TripSession(store, self.notifier, self.config, event_loop=ManagedEventLoop())
                self.assertFalse(await session.start())

    async def test_location_updates_fire_destination_alert(self):
        fixes = location_fixes((43.6800, -79.3860), (43.6730, -79.3860), (43.6705, -79.3860))
        session = self.session(location_updates=fixes)
        await session.start(three_leg_itinerary())

        await asyncio.wait_for(session._location_handle.task, timeout=1)

        self.assertTrue(session.tracker.destination_alerted)
        self.assertEqual(len([t for t, _ in self.notifier.immediate if "Bloor Station" in t]), 1)
        await session.close()

    async def test_close_cancels_timers_and_dismisses(self):
        session = self.session(location_updates=location_fixes(*[(43.0, -79.0)] * 1000))
        await session.start(three_leg_itinerary())
        await session.tick()
        self.assertIsNotNone(self.notifier.persistent)

        await session.close()

        self.assertIsNone(self.notifier.persistent)
        self.assertEqual(session.event_loop.active_count, 0)
        self.assertIsNone(await session.tick())

    async def test_close_dismisses_even_when_never_started(self):
        notifier = AsyncMock(spec=Notifier)
        session = TripSession(self.store, notifier, self.config, event_loop=ManagedEventLoop())
        await session.close()
        notifier.dismiss_persistent.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
