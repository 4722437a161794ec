"""
Notification collaborator contract.
The core only ever schedules, cancels and updates local alerts; delivery is the
device's business. Every call is fire-and-forget: failures are logged, never raised.
"""

import logging
import uuid
from datetime import datetime
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def format_clock_time(dt: datetime) -> str:
    """12-hour clock label, e.g. '8:05 AM'"""
    hour = dt.hour % 12 or 12
    return f"{hour}:{dt.minute:02d} {'PM' if dt.hour >= 12 else 'AM'}"


def trip_notification_body(stops_left: Optional[int], arrival_clock_time: str) -> str:
    if stops_left is None:
        return f"On your way · Arriving {arrival_clock_time}"
    return f"{stops_left} stop{'' if stops_left == 1 else 's'} left · Arriving {arrival_clock_time}"


class Notifier:
    """Interface implemented by the device notification/haptic layer"""

    async def schedule_immediate(self, title: str, body: str) -> Optional[str]:
        raise NotImplementedError

    async def schedule_at(self, title: str, body: str, trigger_time: datetime) -> Optional[str]:
        raise NotImplementedError

    async def cancel(self, handle: str) -> None:
        raise NotImplementedError

    async def update_persistent(self, stops_left: Optional[int], arrival_clock_time: str, label: str) -> None:
        raise NotImplementedError

    async def dismiss_persistent(self) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Reference notifier that records and logs every request"""

    def __init__(self):
        self.immediate = []
        self.scheduled: Dict[str, tuple] = {}
        self.persistent: Optional[tuple] = None

    async def schedule_immediate(self, title: str, body: str) -> Optional[str]:
        handle = uuid.uuid4().hex
        self.immediate.append((title, body))
        logger.info(f"[NOTIFICATION] {title} - {body}")
        return handle

    async def schedule_at(self, title: str, body: str, trigger_time: datetime) -> Optional[str]:
        handle = uuid.uuid4().hex
        self.scheduled[handle] = (title, body, trigger_time)
        logger.info(f"[NOTIFICATION] Scheduled '{title}' for {trigger_time.isoformat()}")
        return handle

    async def cancel(self, handle: str) -> None:
        self.scheduled.pop(handle, None)

    async def update_persistent(self, stops_left: Optional[int], arrival_clock_time: str, label: str) -> None:
        self.persistent = (label, trip_notification_body(stops_left, arrival_clock_time))
        logger.debug(f"[TRIP] {label}: {self.persistent[1]}")

    async def dismiss_persistent(self) -> None:
        self.persistent = None


class SafeNotifier(Notifier):
    """Wraps a notifier so that no delivery failure ever reaches the caller"""

    def __init__(self, inner: Notifier):
        self.inner = inner

    async def schedule_immediate(self, title: str, body: str) -> Optional[str]:
        try:
            return await self.inner.schedule_immediate(title, body)
        except Exception as e:
            logger.warning(f"Failed to trigger notification '{title}': {e}")
            return None

    async def schedule_at(self, title: str, body: str, trigger_time: datetime) -> Optional[str]:
        try:
            return await self.inner.schedule_at(title, body, trigger_time)
        except Exception as e:
            logger.warning(f"Failed to schedule notification '{title}': {e}")
            return None

    async def cancel(self, handle: str) -> None:
        try:
            await self.inner.cancel(handle)
        except Exception as e:
            logger.warning(f"Failed to cancel notification {handle}: {e}")

    async def update_persistent(self, stops_left: Optional[int], arrival_clock_time: str, label: str) -> None:
        try:
            await self.inner.update_persistent(stops_left, arrival_clock_time, label)
        except Exception as e:
            logger.warning(f"Failed to update trip notification: {e}")

    async def dismiss_persistent(self) -> None:
        try:
            await self.inner.dismiss_persistent()
        except Exception as e:
            logger.warning(f"Failed to dismiss trip notification: {e}")


def ensure_safe(notifier: Notifier) -> Notifier:
    return notifier if isinstance(notifier, SafeNotifier) else SafeNotifier(notifier)
