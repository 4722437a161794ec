"""
Nearby departures service.
Polls the relay for vehicles around the user, keeps the closest vehicle of
each route, and attaches an arrival estimate from the route's trip predictions.
"""

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from .eta import dedupe_by_route, resolve_nearby
from ..core.config import ClientConfig
from ..core.event_loop import ManagedEventLoop, TimerHandle
from ..data.models.trip import TripUpdate
from ..data.models.vehicle import NearbyVehicle
from ..data.sources.relay_api import RelayAPISource
from ..errors import FeedDecodeError, FeedFetchError, LocationUnavailableError

logger = logging.getLogger(__name__)

LocationProvider = Callable[[], Union[Tuple[float, float], Awaitable[Tuple[float, float]]]]
UpdateCallback = Callable[[List[NearbyVehicle]], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[Exception], Union[None, Awaitable[None]]]


async def _maybe_await(result):
    if inspect.isawaitable(result):
        return await result
    return result


class NearbyDeparturesService:
    """Client-side nearby departures with live ETAs"""

    def __init__(self, config: ClientConfig, source: Optional[RelayAPISource] = None,
                 event_loop: Optional[ManagedEventLoop] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.source = source or RelayAPISource(
            config.relay_base_url,
            nearby_timeout_seconds=config.nearby_timeout_seconds,
            predictions_timeout_seconds=config.predictions_timeout_seconds,
        )
        self.event_loop = event_loop or ManagedEventLoop()
        self.clock = clock
        self._poll_handle: Optional[TimerHandle] = None
        self.last_results: List[NearbyVehicle] = []

    def route_name(self, route_id: str) -> str:
        return self.config.route_names.get(route_id) or f"Route {route_id}"

    def _parse_candidates(self, items: List[dict]) -> List[NearbyVehicle]:
        candidates = []
        for item in items:
            try:
                route_id = str(item.get("routeId") or "")
                if not route_id:
                    continue
                candidates.append(NearbyVehicle.from_relay_data(item, self.route_name(route_id)))
            except (TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed nearby vehicle {item.get('id')}: {e}")
        return candidates

    async def _predictions_for(self, route_id: str, semaphore: asyncio.Semaphore) -> Tuple[str, List[TripUpdate]]:
        async with semaphore:
            try:
                return route_id, await self.source.fetch_predictions(route_id)
            except (FeedFetchError, FeedDecodeError) as e:
                logger.warning(f"Predictions unavailable for route {route_id}, using distance estimate: {e}")
                return route_id, []

    async def fetch_nearby(self, lat: float, lon: float, radius: Optional[float] = None) -> List[NearbyVehicle]:
        """
        Nearest vehicle per route around (lat, lon) with resolved ETAs.

        Returns an empty list when the relay cannot be reached.
        """
        radius = radius if radius is not None else self.config.nearby_radius_meters
        try:
            items = await self.source.fetch_nearby(lat, lon, radius)
        except (FeedFetchError, FeedDecodeError) as e:
            logger.warning(f"Nearby vehicles unavailable: {e}")
            return []

        candidates = dedupe_by_route(self._parse_candidates(items))
        if not candidates:
            return []

        semaphore = asyncio.Semaphore(self.config.prediction_concurrency)
        route_ids = sorted({v.route_id for v in candidates})
        results = await asyncio.gather(*(self._predictions_for(r, semaphore) for r in route_ids))
        predictions_by_route: Dict[str, List[TripUpdate]] = dict(results)

        resolved = resolve_nearby(candidates, predictions_by_route, self.clock(), self.config.display_count)
        logger.debug(f"Resolved {len(resolved)} nearby departures from {len(candidates)} routes")
        return resolved

    def start_polling(self, location_provider: LocationProvider, on_update: UpdateCallback,
                      on_error: Optional[ErrorCallback] = None) -> TimerHandle:
        """Poll nearby departures on an interval; replaces any previous polling timer"""
        self.stop_polling()

        async def poll():
            try:
                lat, lon = await _maybe_await(location_provider())
            except LocationUnavailableError as e:
                if on_error is None:
                    logger.warning(f"Skipping nearby refresh: {e}")
                    return
                await _maybe_await(on_error(e))
                return
            self.last_results = await self.fetch_nearby(lat, lon)
            await _maybe_await(on_update(self.last_results))

        self._poll_handle = self.event_loop.add_interval(
            poll, self.config.nearby_poll_interval_seconds, name="nearby_departures"
        )
        return self._poll_handle

    def stop_polling(self):
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None

    async def close(self):
        self.stop_polling()
        await self.event_loop.stop()
        await self.source.close()
