"""
Feed poller service.
Runs one independently scheduled polling loop per real-time feed and publishes
each successful decode into the feed cache. Failed polls keep the previous snapshot.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional

import pytz

from ..core.config import ApplicationConfig
from ..core.event_loop import ManagedEventLoop, TimerHandle
from ..data.models.feed import FeedKind, FeedSnapshot
from ..data.repositories.feed_cache import FeedCache
from ..data.sources.gtfs_realtime import GTFSRealtimeSource
from ..errors import FeedDecodeError, FeedFetchError

logger = logging.getLogger(__name__)


class FeedPollerService:
    """Owns the three polling loops and is the only writer of the feed cache"""

    def __init__(self, config: ApplicationConfig, source: GTFSRealtimeSource,
                 cache: Optional[FeedCache] = None, event_loop: Optional[ManagedEventLoop] = None):
        self.config = config
        self.source = source
        self.cache = cache or FeedCache()
        self.event_loop = event_loop or ManagedEventLoop()
        self._in_flight: Dict[FeedKind, bool] = {kind: False for kind in FeedKind}
        self._timers: Dict[FeedKind, TimerHandle] = {}
        self._fetches: Dict[FeedKind, TimerHandle] = {}
        self._failures: Dict[FeedKind, int] = {kind: 0 for kind in FeedKind}
        self.is_running = False

    async def start(self):
        """Start one polling loop per feed"""
        logger.info("Starting Feed Poller Service...")
        await self.event_loop.start()
        self.is_running = True
        for kind in FeedKind:
            interval = self.config.poll_interval(kind)
            self._timers[kind] = self.event_loop.add_interval(
                lambda kind=kind: self.tick(kind), interval, name=f"poll_{kind.value}"
            )
            logger.info(f"Polling {kind.value} every {interval}s from {self.config.feed_url(kind)}")

    async def stop(self):
        logger.info("Stopping Feed Poller Service...")
        self.is_running = False
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        await self.event_loop.stop()
        logger.info("Feed Poller Service stopped")

    def tick(self, kind: FeedKind) -> bool:
        """Launch a poll unless the previous one for this feed is still running.

        The poll runs as its own task so an overrunning fetch never delays the
        timer; the skipped tick is a silent no-op, not queued.
        """
        if self._in_flight[kind]:
            logger.debug(f"Skipping {kind.value} tick, previous fetch still running")
            return False
        self._in_flight[kind] = True
        self._fetches[kind] = self.event_loop.add_task(self._guarded_poll(kind), name=f"fetch_{kind.value}")
        return True

    def current_fetch(self, kind: FeedKind) -> Optional[asyncio.Task]:
        handle = self._fetches.get(kind)
        return handle.task if handle else None

    async def _guarded_poll(self, kind: FeedKind) -> bool:
        try:
            return await self._poll(kind)
        finally:
            self._in_flight[kind] = False

    async def poll_once(self, kind: FeedKind) -> bool:
        """Poll one feed now, honouring the single-flight guard.

        Returns:
            True if a new snapshot was published, False if the poll failed or was skipped.
        """
        if self._in_flight[kind]:
            return False
        self._in_flight[kind] = True
        return await self._guarded_poll(kind)

    async def _poll(self, kind: FeedKind) -> bool:
        url = self.config.feed_url(kind)
        try:
            entities = await self.source.fetch_entities(kind, url, self.config.alert_language)
        except (FeedFetchError, FeedDecodeError) as e:
            self._failures[kind] += 1
            previous = self.cache.snapshot(kind)
            logger.warning(
                f"Error updating {kind.value} feed (keeping {previous.entity_count} cached entities): {e}"
            )
            return False
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failures[kind] += 1
            logger.error(f"Unexpected error polling {kind.value} feed: {e}", exc_info=True)
            return False

        snapshot = FeedSnapshot(kind=kind, entities=entities, fetched_at=datetime.now(pytz.utc))
        self.cache.replace(snapshot)
        self._failures[kind] = 0
        logger.info(f"Successfully cached {snapshot.entity_count} {kind.value} entities")
        return True

    def snapshot(self, kind: FeedKind) -> FeedSnapshot:
        return self.cache.snapshot(kind)

    def health(self) -> Dict[str, dict]:
        return self.cache.health()

    def get_service_stats(self) -> Dict[str, object]:
        return {
            "is_running": self.is_running,
            "in_flight": {kind.value: busy for kind, busy in self._in_flight.items()},
            "consecutive_failures": {kind.value: count for kind, count in self._failures.items()},
        }
