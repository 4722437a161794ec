"""Tests for local storage, route history and the live-status hint."""

import asyncio
import json
import tempfile
import unittest
from pathlib import Path

from transit_live.client.live_status import extract_route_hint, is_route_live
from transit_live.client.route_history import RouteHistory
from transit_live.client.storage import (
    ACCESSIBILITY_MODE_KEY,
    HOME_STOP_KEY,
    LAST_ITINERARY_KEY,
    ROUTE_HISTORY_KEY,
    WORK_STOP_KEY,
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
)
from transit_live.data.models.itinerary import Itinerary, TransitStep
from transit_live.data.models.vehicle import VehiclePosition

from test_trip_progress import at


class TestMemoryStore(unittest.IsolatedAsyncioTestCase):
    """Test value encoding and corruption handling."""

    async def test_value_types(self):
        store = MemoryKeyValueStore()
        self.assertTrue(await store.set(ACCESSIBILITY_MODE_KEY, True))
        self.assertTrue(await store.set(HOME_STOP_KEY, {"name": "King St", "lat": 43.6}))

        self.assertTrue(await store.get_bool(ACCESSIBILITY_MODE_KEY))
        self.assertEqual(await store.get_string(ACCESSIBILITY_MODE_KEY), "true")
        self.assertEqual(await store.get_object(HOME_STOP_KEY), {"name": "King St", "lat": 43.6})
        self.assertIsNone(await store.get_bool("missing"))

    async def test_corrupt_json_reads_as_absent(self):
        store = MemoryKeyValueStore({LAST_ITINERARY_KEY: "{not json"})
        self.assertIsNone(await store.get_object(LAST_ITINERARY_KEY))

    async def test_delete(self):
        store = MemoryKeyValueStore({HOME_STOP_KEY: "x"})
        await store.delete(HOME_STOP_KEY)
        self.assertIsNone(await store.get_string(HOME_STOP_KEY))


class TestJsonFileStore(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "state" / "storage.json"

    async def asyncTearDown(self):
        self.tmp.cleanup()

    async def test_persists_across_instances(self):
        await JsonFileKeyValueStore(self.path).set(ROUTE_HISTORY_KEY, [{"destination": "Work", "count": 1}])
        reopened = JsonFileKeyValueStore(self.path)
        self.assertEqual(await reopened.get_object(ROUTE_HISTORY_KEY), [{"destination": "Work", "count": 1}])

    async def test_corrupt_file_reads_as_empty(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{{{", encoding="utf-8")
        store = JsonFileKeyValueStore(self.path)
        self.assertIsNone(await store.get_string(HOME_STOP_KEY))
        self.assertTrue(await store.set(HOME_STOP_KEY, "Union"))
        self.assertEqual(json.loads(self.path.read_text(encoding="utf-8")), {HOME_STOP_KEY: "Union"})

    async def test_concurrent_writes_all_persist(self):
        store = JsonFileKeyValueStore(self.path)
        results = await asyncio.gather(store.set(HOME_STOP_KEY, "Union"), store.set(WORK_STOP_KEY, "King"))
        self.assertEqual(results, [True, True])
        self.assertEqual(
            json.loads(self.path.read_text(encoding="utf-8")), {HOME_STOP_KEY: "Union", WORK_STOP_KEY: "King"}
        )


class TestRouteHistory(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.now = 1000.0
        self.history = RouteHistory(MemoryKeyValueStore(), clock=lambda: self.now)

    async def search(self, destination, times):
        for _ in range(times):
            self.now += 1
            await self.history.record_search(destination)

    async def test_counts_case_insensitively(self):
        await self.history.record_search("Union Station")
        self.assertEqual(await self.history.record_search("  union station "), 2)
        entries = await self.history.entries()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["destination"], "Union Station")

    async def test_frequent_routes(self):
        await self.search("Work", 5)
        await self.search("Gym", 3)
        await self.search("Cafe", 2)
        await self.search("School", 3)
        await self.search("Park", 4)

        frequent = await self.history.frequent_routes()

        # Gym and School tie on count; School was used more recently
        self.assertEqual(frequent, [
            {"destination": "Work", "count": 5},
            {"destination": "Park", "count": 4},
            {"destination": "School", "count": 3},
        ])


class TestLiveStatus(unittest.TestCase):

    def test_route_hint_from_line_name(self):
        self.assertEqual(extract_route_hint("504 King"), "504")
        self.assertEqual(extract_route_hint("Line 1 Yonge-University"), "1")
        self.assertEqual(extract_route_hint("Bloor-Danforth Subway"), "2")
        self.assertIsNone(extract_route_hint("Express Shuttle"))
        self.assertIsNone(extract_route_hint(""))

    def test_is_route_live(self):
        itinerary = Itinerary(steps=(TransitStep("A", "B", at(0), at(10), "504 King", 5),))
        live = [VehiclePosition(id="v1", route_id="504")]
        self.assertTrue(is_route_live(itinerary, live))
        self.assertFalse(is_route_live(itinerary, [VehiclePosition(id="v2", route_id="505")]))
        self.assertFalse(is_route_live(Itinerary(), live))

    def test_named_route_is_a_known_false_negative(self):
        itinerary = Itinerary(steps=(TransitStep("A", "B", at(0), at(10), "Airport Express", 5),))
        self.assertFalse(is_route_live(itinerary, [VehiclePosition(id="v1", route_id="Airport Express")]))


if __name__ == "__main__":
    unittest.main()
