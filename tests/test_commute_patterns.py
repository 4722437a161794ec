"""Tests for commute pattern detection and predictive alerts."""

import unittest
from datetime import datetime

import pytz

from transit_live.client.commute_patterns import (
    CommutePatternDetector,
    compute_patterns,
    day_of_week,
    format_pattern_time,
    short_destination,
)
from transit_live.client.notifications import LoggingNotifier
from transit_live.client.storage import COMMUTE_DEPARTURES_KEY, COMMUTE_PATTERNS_KEY, MemoryKeyValueStore
from transit_live.data.models.commute import CommuteDeparture, CommutePattern

TORONTO = pytz.timezone("America/Toronto")


def local(year, month, day, hour, minute):
    return TORONTO.localize(datetime(year, month, day, hour, minute))


def departure(destination, day, hour, minute, timestamp=0.0):
    return CommuteDeparture(destination, day, hour, minute, timestamp)


class TestComputePatterns(unittest.TestCase):
    """Test clustering of the departure log."""

    def test_three_close_departures_form_a_pattern(self):
        log = [
            departure("Union Station", 1, 8, 5, 1.0),
            departure("union station ", 1, 8, 12, 2.0),
            departure("Union Station", 1, 8, 20, 3.0),
        ]
        patterns = compute_patterns(log)
        self.assertEqual(len(patterns), 1)
        pattern = patterns[0]
        self.assertEqual(pattern.occurrences, 3)
        self.assertEqual((pattern.avg_hour, pattern.avg_minute), (8, 12))
        self.assertEqual(pattern.day_of_week, 1)
        self.assertEqual(pattern.last_used, 3.0)

    def test_distant_departure_starts_new_cluster(self):
        log = [
            departure("Union Station", 1, 8, 5),
            departure("Union Station", 1, 8, 12),
            departure("Union Station", 1, 8, 20),
            departure("Union Station", 1, 9, 30),
        ]
        patterns = compute_patterns(log)
        self.assertEqual(len(patterns), 1)
        self.assertEqual(patterns[0].occurrences, 3)
        self.assertEqual((patterns[0].avg_hour, patterns[0].avg_minute), (8, 12))

    def test_chained_gaps_stay_in_one_cluster(self):
        log = [departure("Work", 2, 7, 0), departure("Work", 2, 7, 45), departure("Work", 2, 8, 30)]
        patterns = compute_patterns(log)
        self.assertEqual(len(patterns), 1)
        self.assertEqual((patterns[0].avg_hour, patterns[0].avg_minute), (7, 45))

    def test_days_and_destinations_are_separate(self):
        log = [
            departure("Work", 1, 8, 0), departure("Work", 1, 8, 5),
            departure("Work", 2, 8, 0),
            departure("Gym", 1, 8, 2),
        ]
        self.assertEqual(compute_patterns(log), [])

    def test_below_threshold_is_never_a_pattern(self):
        self.assertEqual(compute_patterns([departure("Work", 1, 8, 0), departure("Work", 1, 8, 1)]), [])
        self.assertEqual(compute_patterns([]), [])

    def test_idempotent(self):
        log = [departure("Work", d, 8, m, float(d * 100 + m)) for d in (1, 2) for m in (0, 10, 20, 30)]
        self.assertEqual(compute_patterns(log), compute_patterns(list(log)))
        self.assertTrue(all(p.occurrences >= 3 for p in compute_patterns(log)))

    def test_minute_rounding_carries_into_hour(self):
        log = [departure("Work", 1, 8, 59), departure("Work", 1, 9, 0), departure("Work", 1, 9, 0)]
        pattern = compute_patterns(log)[0]
        self.assertEqual((pattern.avg_hour, pattern.avg_minute), (9, 0))

    def test_late_night_rounding_stays_within_the_day(self):
        log = [departure("Home", 5, 23, 59), departure("Home", 5, 24, 0), departure("Home", 5, 24, 0)]
        pattern = compute_patterns(log)[0]
        self.assertEqual((pattern.avg_hour, pattern.avg_minute), (23, 59))
        self.assertEqual(format_pattern_time(pattern), "11:59 PM")

    def test_out_of_range_record_is_rejected(self):
        record = {"destination": "Home", "dayOfWeek": 5, "hour": 24, "minute": 0, "timestamp": 1.0}
        self.assertIsNone(CommuteDeparture.from_dict(record))
        self.assertIsNone(CommuteDeparture.from_dict(dict(record, hour=23, minute=60)))
        self.assertIsNotNone(CommuteDeparture.from_dict(dict(record, hour=23, minute=59)))


class TestFormatting(unittest.TestCase):

    def test_format_pattern_time(self):
        self.assertEqual(format_pattern_time(CommutePattern("Work", 1, 8, 5, 3, 0.0)), "8:05 AM")
        self.assertEqual(format_pattern_time(CommutePattern("Work", 1, 17, 30, 3, 0.0)), "5:30 PM")
        self.assertEqual(format_pattern_time(CommutePattern("Work", 1, 0, 15, 3, 0.0)), "12:15 AM")
        self.assertEqual(format_pattern_time(CommutePattern("Work", 1, 12, 0, 3, 0.0)), "12:00 PM")

    def test_short_destination(self):
        self.assertEqual(short_destination("Union Station, 65 Front St W, Toronto"), "Union Station")
        self.assertEqual(short_destination("  Home  "), "Home")

    def test_sunday_is_zero(self):
        self.assertEqual(day_of_week(datetime(2026, 10, 18)), 0)
        self.assertEqual(day_of_week(datetime(2026, 10, 19)), 1)
        self.assertEqual(day_of_week(datetime(2026, 10, 24)), 6)


class TestCommutePatternDetector(unittest.IsolatedAsyncioTestCase):
    """Test recording, windows and predictive alert scheduling."""

    async def asyncSetUp(self):
        self.store = MemoryKeyValueStore()
        self.notifier = LoggingNotifier()
        self.detector = CommutePatternDetector(self.store, self.notifier, "America/Toronto")
        # Three consecutive Mondays
        for day, minute in ((5, 5), (12, 12), (19, 20)):
            await self.detector.record_departure("Union Station, Toronto", local(2026, 10, day, 8, minute))

    async def test_record_departure_persists_log_and_patterns(self):
        departures = await self.store.get_object(COMMUTE_DEPARTURES_KEY)
        patterns = await self.store.get_object(COMMUTE_PATTERNS_KEY)
        self.assertEqual(len(departures), 3)
        self.assertEqual(departures[0]["dayOfWeek"], 1)
        self.assertEqual((departures[0]["hour"], departures[0]["minute"]), (8, 5))
        self.assertEqual(len(patterns), 1)
        self.assertEqual(patterns[0]["occurrences"], 3)
        self.assertEqual((patterns[0]["avgHour"], patterns[0]["avgMinute"]), (8, 12))

    async def test_old_departures_are_pruned(self):
        store = MemoryKeyValueStore()
        detector = CommutePatternDetector(store, self.notifier, TORONTO)
        await detector.record_departure("Work", local(2026, 7, 1, 8, 0))
        await detector.record_departure("Work", local(2026, 10, 19, 8, 0))
        departures = await detector.load_departures()
        self.assertEqual(len(departures), 1)
        self.assertEqual(departures[0].day_of_week, 1)

    async def test_todays_patterns_window(self):
        patterns = await self.detector.todays_patterns(local(2026, 10, 26, 8, 0))
        self.assertEqual([p.destination for p in patterns], ["Union Station, Toronto"])
        self.assertEqual(await self.detector.todays_patterns(local(2026, 10, 26, 8, 45)), [])
        self.assertEqual(len(await self.detector.todays_patterns(local(2026, 10, 26, 8, 42))), 1)
        self.assertEqual(await self.detector.todays_patterns(local(2026, 10, 26, 6, 11)), [])
        self.assertEqual(len(await self.detector.todays_patterns(local(2026, 10, 26, 6, 12))), 1)
        # Tuesday
        self.assertEqual(await self.detector.todays_patterns(local(2026, 10, 27, 8, 0)), [])

    async def test_next_commute_window(self):
        self.assertIsNotNone(await self.detector.next_commute(local(2026, 10, 26, 8, 0)))
        self.assertIsNone(await self.detector.next_commute(local(2026, 10, 26, 8, 2)))
        self.assertIsNotNone(await self.detector.next_commute(local(2026, 10, 26, 7, 12)))
        self.assertIsNone(await self.detector.next_commute(local(2026, 10, 26, 7, 11)))

    async def test_predictive_alert_replaces_previous(self):
        first = await self.detector.schedule_predictive_alert(local(2026, 10, 26, 7, 50))
        self.assertIsNotNone(first)
        second = await self.detector.schedule_predictive_alert(local(2026, 10, 26, 7, 51))
        self.assertIsNotNone(second)

        self.assertEqual(list(self.notifier.scheduled), [second])
        title, body, trigger = self.notifier.scheduled[second]
        self.assertEqual(title, "Time to head to Union Station")
        self.assertEqual(body, "Leave now to catch your usual 8:12 AM departure")
        self.assertEqual(trigger, local(2026, 10, 26, 8, 2))

    async def test_predictive_alert_skipped_when_trigger_passed(self):
        await self.detector.schedule_predictive_alert(local(2026, 10, 26, 7, 50))
        pattern = (await self.detector.load_patterns())[0]
        result = await self.detector.schedule_predictive_alert(local(2026, 10, 26, 8, 5), pattern=pattern)
        self.assertIsNone(result)
        self.assertEqual(self.notifier.scheduled, {})

    async def test_corrupt_log_is_treated_as_empty(self):
        store = MemoryKeyValueStore({COMMUTE_DEPARTURES_KEY: "{oops", COMMUTE_PATTERNS_KEY: "[{\"destination\": 1}]"})
        detector = CommutePatternDetector(store, self.notifier, TORONTO)
        self.assertEqual(await detector.load_departures(), [])
        self.assertEqual(await detector.load_patterns(), [])
        await detector.record_departure("Work", local(2026, 10, 19, 8, 0))
        self.assertEqual(len(await detector.load_departures()), 1)


if __name__ == "__main__":
    unittest.main()
