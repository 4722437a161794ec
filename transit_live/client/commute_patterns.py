"""
Commute pattern detector.

Every chosen destination is logged with its weekday and local time of day.
Departures to the same destination on the same weekday that sit within a
45 minute chain of each other form a cluster; a cluster seen at least three
times becomes a commute pattern. Patterns drive the "time to leave" alert.
"""

import logging
import math
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Union

import pytz

from .notifications import Notifier, ensure_safe
from .storage import COMMUTE_DEPARTURES_KEY, COMMUTE_PATTERNS_KEY, KeyValueStore
from ..data.models.commute import CommuteDeparture, CommutePattern

logger = logging.getLogger(__name__)

MIN_OCCURRENCES = 3
CLUSTER_GAP_MINUTES = 45
RETENTION_DAYS = 60

TODAY_WINDOW_BEFORE_MINUTES = 30
TODAY_WINDOW_AFTER_MINUTES = 120
NEXT_COMMUTE_MIN_MINUTES = 10
NEXT_COMMUTE_MAX_MINUTES = 60
DEFAULT_LEAD_MINUTES = 10


def day_of_week(dt: datetime) -> int:
    """0=Sunday ... 6=Saturday"""
    return (dt.weekday() + 1) % 7


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def cluster_by_time(departures: List[CommuteDeparture]) -> List[List[CommuteDeparture]]:
    """Split departures into chains where consecutive times are at most 45 minutes apart"""
    if not departures:
        return []
    ordered = sorted(departures, key=lambda d: (d.minutes_since_midnight, d.timestamp))
    clusters = [[ordered[0]]]
    for departure in ordered[1:]:
        previous = clusters[-1][-1]
        if departure.minutes_since_midnight - previous.minutes_since_midnight <= CLUSTER_GAP_MINUTES:
            clusters[-1].append(departure)
        else:
            clusters.append([departure])
    return clusters


def pattern_from_cluster(cluster: List[CommuteDeparture]) -> CommutePattern:
    mean = sum(d.minutes_since_midnight for d in cluster) / len(cluster)
    avg_hour = int(math.floor(mean / 60))
    avg_minute = _round_half_up(mean % 60)
    if avg_minute == 60:
        avg_hour, avg_minute = avg_hour + 1, 0
    if avg_hour > 23:
        avg_hour, avg_minute = 23, 59
    return CommutePattern(
        destination=cluster[0].destination,
        day_of_week=cluster[0].day_of_week,
        avg_hour=avg_hour,
        avg_minute=avg_minute,
        occurrences=len(cluster),
        last_used=max(d.timestamp for d in cluster),
    )


def compute_patterns(departures: List[CommuteDeparture]) -> List[CommutePattern]:
    """Derive patterns from a departure log. Pure and deterministic."""
    by_destination: Dict[str, Dict[int, List[CommuteDeparture]]] = OrderedDict()
    for departure in departures:
        key = departure.destination.strip().lower()
        by_day = by_destination.setdefault(key, OrderedDict())
        by_day.setdefault(departure.day_of_week, []).append(departure)

    patterns = []
    for by_day in by_destination.values():
        for day_departures in by_day.values():
            for cluster in cluster_by_time(day_departures):
                if len(cluster) >= MIN_OCCURRENCES:
                    patterns.append(pattern_from_cluster(cluster))
    return patterns


def format_pattern_time(pattern: CommutePattern) -> str:
    """'8:15 AM' style label for a pattern"""
    hour = pattern.avg_hour % 12 or 12
    suffix = "PM" if pattern.avg_hour >= 12 else "AM"
    return f"{hour}:{pattern.avg_minute:02d} {suffix}"


def short_destination(destination: str) -> str:
    """First comma-separated part of an address"""
    return destination.split(",")[0].strip()


class CommutePatternDetector:
    """Records departures, maintains derived patterns and schedules the predictive alert"""

    def __init__(self, store: KeyValueStore, notifier: Notifier,
                 tz: Union[str, pytz.BaseTzInfo] = "America/Toronto",
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.notifier = ensure_safe(notifier)
        self.tz = pytz.timezone(tz) if isinstance(tz, str) else tz
        self.clock = clock or (lambda: datetime.now(pytz.utc))
        self._predictive_handle: Optional[str] = None

    def _local(self, when: Optional[datetime]) -> datetime:
        when = when or self.clock()
        if when.tzinfo is None:
            when = pytz.utc.localize(when)
        return when.astimezone(self.tz)

    async def load_departures(self) -> List[CommuteDeparture]:
        data = await self.store.get_object(COMMUTE_DEPARTURES_KEY)
        if not isinstance(data, list):
            return []
        departures = [CommuteDeparture.from_dict(item) for item in data if isinstance(item, dict)]
        return [d for d in departures if d is not None]

    async def load_patterns(self) -> List[CommutePattern]:
        data = await self.store.get_object(COMMUTE_PATTERNS_KEY)
        if not isinstance(data, list):
            return []
        patterns = [CommutePattern.from_dict(item) for item in data if isinstance(item, dict)]
        return [p for p in patterns if p is not None]

    async def record_departure(self, destination: str, when: Optional[datetime] = None) -> CommuteDeparture:
        """Append a departure, drop records older than 60 days and rebuild patterns"""
        local = self._local(when)
        record = CommuteDeparture(
            destination=destination.strip(),
            day_of_week=day_of_week(local),
            hour=local.hour,
            minute=local.minute,
            timestamp=local.timestamp(),
        )

        departures = await self.load_departures()
        departures.append(record)
        cutoff = record.timestamp - timedelta(days=RETENTION_DAYS).total_seconds()
        departures = [d for d in departures if d.timestamp > cutoff]
        await self.store.set(COMMUTE_DEPARTURES_KEY, [d.to_dict() for d in departures])

        patterns = compute_patterns(departures)
        await self.store.set(COMMUTE_PATTERNS_KEY, [p.to_dict() for p in patterns])
        logger.debug(f"Recorded departure to {record.destination}; {len(patterns)} patterns")
        return record

    async def todays_patterns(self, now: Optional[datetime] = None) -> List[CommutePattern]:
        """Today's patterns from 30 minutes ago to 2 hours ahead, soonest first"""
        local = self._local(now)
        today = day_of_week(local)
        now_minutes = local.hour * 60 + local.minute
        patterns = [
            p for p in await self.load_patterns()
            if p.day_of_week == today
            and now_minutes - TODAY_WINDOW_BEFORE_MINUTES <= p.minutes_since_midnight
            <= now_minutes + TODAY_WINDOW_AFTER_MINUTES
        ]
        return sorted(patterns, key=lambda p: p.minutes_since_midnight)

    async def next_commute(self, now: Optional[datetime] = None) -> Optional[CommutePattern]:
        """Soonest pattern more than 10 and at most 60 minutes ahead"""
        local = self._local(now)
        today = day_of_week(local)
        now_minutes = local.hour * 60 + local.minute
        upcoming = [
            p for p in await self.load_patterns()
            if p.day_of_week == today
            and now_minutes + NEXT_COMMUTE_MIN_MINUTES < p.minutes_since_midnight
            <= now_minutes + NEXT_COMMUTE_MAX_MINUTES
        ]
        return min(upcoming, key=lambda p: p.minutes_since_midnight) if upcoming else None

    async def schedule_predictive_alert(self, now: Optional[datetime] = None,
                                        lead_minutes: int = DEFAULT_LEAD_MINUTES,
                                        pattern: Optional[CommutePattern] = None) -> Optional[str]:
        """
        Schedule the "time to leave" alert for the next commute.

        Any previously scheduled predictive alert is cancelled first. Nothing is
        scheduled when there is no upcoming pattern or the trigger time has passed.

        Returns:
            The notifier handle of the scheduled alert, or None.
        """
        if self._predictive_handle is not None:
            await self.notifier.cancel(self._predictive_handle)
            self._predictive_handle = None

        local = self._local(now)
        if pattern is None:
            pattern = await self.next_commute(local)
        if pattern is None:
            return None

        departure = self.tz.localize(datetime(
            local.year, local.month, local.day, pattern.avg_hour % 24, pattern.avg_minute
        ))
        trigger = departure - timedelta(minutes=lead_minutes)
        if trigger <= local:
            logger.debug(f"Predictive alert for {pattern.destination} already passed")
            return None

        title = f"Time to head to {short_destination(pattern.destination)}"
        body = f"Leave now to catch your usual {format_pattern_time(pattern)} departure"
        self._predictive_handle = await self.notifier.schedule_at(title, body, trigger)
        if self._predictive_handle is not None:
            logger.info(f"Scheduled predictive departure for {trigger.isoformat()}")
        return self._predictive_handle
