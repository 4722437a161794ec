"""
Trip progress state machine.

Derives the active step and remaining stops of an itinerary from the clock,
fires one-shot "approaching" alerts before each transfer and on arrival near
the destination, and keeps the persistent trip notification up to date.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import List, Optional, Set, Tuple

import pytz

from .notifications import Notifier, ensure_safe, format_clock_time
from ..data.models.itinerary import Itinerary, TransitStep
from ..utils.geo import haversine_meters

logger = logging.getLogger(__name__)

DESTINATION_ALERT_METERS = 400.0
TRANSFER_ALERT_MIN_STOPS = 2
TRANSFER_ALERT_STOPS_AHEAD = 2


@dataclass(frozen=True)
class TripProgress:
    """Result of one progress tick"""
    step_index: int
    stops_remaining: Optional[int]
    arrival_clock_time: str
    label: str
    offline: bool = False
    alerts: Tuple[str, ...] = ()


def stops_remaining(step: TransitStep, now: datetime) -> int:
    """Stops left on a transit step, interpolated linearly between departure and arrival"""
    total = (step.arrival_time - step.departure_time).total_seconds()
    if total <= 0:
        return 0 if now >= step.arrival_time else step.num_stops
    progress = (now - step.departure_time).total_seconds() / total
    progress = min(1.0, max(0.0, progress))
    return max(0, step.num_stops - math.floor(progress * step.num_stops))


class TripProgressTracker:
    """Tracks progress through one itinerary; indices refer to itinerary.steps"""

    def __init__(self, itinerary: Itinerary, notifier: Notifier, offline: bool = False,
                 destination_alert_meters: float = DESTINATION_ALERT_METERS,
                 tz: Optional[tzinfo] = None):
        self.itinerary = itinerary
        self.notifier = ensure_safe(notifier)
        self.offline = offline
        self.destination_alert_meters = destination_alert_meters
        self.tz = tz or pytz.utc

        self._step_index = 0
        self._transfer_alerted: Set[int] = set()
        self._destination_alerted = False

    @property
    def step_index(self) -> int:
        return self._step_index

    @property
    def destination_alerted(self) -> bool:
        return self._destination_alerted

    def current_step_index(self, now: datetime) -> int:
        """Highest transit step already departed; never moves backwards"""
        index = 0
        for i, step in reversed(self.itinerary.transit_steps):
            if now >= step.departure_time:
                index = i
                break
        if index > self._step_index:
            logger.debug(f"Advanced to step {index} of {len(self.itinerary.steps)}")
            self._step_index = index
        return self._step_index

    def stops_remaining(self, step, now: datetime) -> Optional[int]:
        if not isinstance(step, TransitStep):
            return None
        return stops_remaining(step, now)

    def transfer_alerts_due(self, now: datetime) -> List[Tuple[int, TransitStep]]:
        """Transit steps whose transfer window contains `now` and have not alerted yet"""
        last_index = self.itinerary.last_transit_index
        due = []
        for i, step in self.itinerary.transit_steps:
            if i == last_index or i in self._transfer_alerted:
                continue
            if step.num_stops <= TRANSFER_ALERT_MIN_STOPS:
                continue
            lead = step.avg_stop_duration_seconds * TRANSFER_ALERT_STOPS_AHEAD
            window_start = step.arrival_time.timestamp() - lead
            if window_start <= now.timestamp() < step.arrival_time.timestamp():
                due.append((i, step))
        return due

    def _next_line_after(self, index: int) -> Optional[str]:
        for i, step in self.itinerary.transit_steps:
            if i > index:
                return step.line_name
        return None

    async def _fire_transfer_alerts(self, now: datetime) -> List[str]:
        fired = []
        for i, step in self.transfer_alerts_due(now):
            self._transfer_alerted.add(i)
            title = f"Approaching: {step.arrival_stop}"
            next_line = self._next_line_after(i)
            body = f"Get off in {TRANSFER_ALERT_STOPS_AHEAD} stops"
            if next_line:
                body += f" · Transfer to {next_line}"
            await self.notifier.schedule_immediate(title, body)
            logger.info(f"Transfer alert for step {i}: {step.arrival_stop}")
            fired.append(title)
        return fired

    async def on_location(self, lat: float, lon: float) -> bool:
        """Fire the destination alert once when within range; True if it fired on this fix"""
        if self._destination_alerted:
            return False
        target = self.itinerary.final_coordinate
        if target is None:
            return False
        distance = haversine_meters(lat, lon, target[0], target[1])
        if distance >= self.destination_alert_meters:
            return False
        self._destination_alerted = True
        name = self.itinerary.destination or "your destination"
        await self.notifier.schedule_immediate(f"Approaching: {name}", f"{round(distance)} m to go")
        logger.info(f"Destination alert fired at {distance:.0f} m")
        return True

    def arrival_clock_time(self) -> str:
        arrival = self.itinerary.arrival_time
        if arrival is None:
            return "--:--"
        return format_clock_time(arrival.astimezone(self.tz))

    def _label_for(self, index: int) -> str:
        if not self.itinerary.steps:
            return self.itinerary.destination or "Trip"
        step = self.itinerary.steps[index]
        if isinstance(step, TransitStep):
            return step.line_name
        return self._next_line_after(index) or self.itinerary.destination or "Walking"

    async def tick(self, now: datetime) -> TripProgress:
        index = self.current_step_index(now)
        step = self.itinerary.steps[index] if self.itinerary.steps else None
        stops_left = self.stops_remaining(step, now)
        alerts = await self._fire_transfer_alerts(now)

        clock = self.arrival_clock_time()
        label = self._label_for(index)
        await self.notifier.update_persistent(stops_left, clock, label)

        return TripProgress(
            step_index=index,
            stops_remaining=stops_left,
            arrival_clock_time=clock,
            label=label,
            offline=self.offline,
            alerts=tuple(alerts),
        )
