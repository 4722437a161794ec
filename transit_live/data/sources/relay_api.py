"""
Relay API data source used by client-side engines.
Thin async client for the relay's /nearby and /predictions endpoints.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import aiohttp

from ..models.trip import TripUpdate
from ...errors import FeedDecodeError, FeedFetchError

logger = logging.getLogger(__name__)


class RelayAPISource:
    """Async client for the relay HTTP surface; failures surface as FeedFetchError/FeedDecodeError"""

    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None,
                 nearby_timeout_seconds: float = 5.0, predictions_timeout_seconds: float = 8.0):
        self.base_url = base_url.rstrip("/")
        self.nearby_timeout_seconds = nearby_timeout_seconds
        self.predictions_timeout_seconds = predictions_timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_json(self, path: str, params: Dict[str, str], timeout_seconds: float) -> dict:
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        try:
            async with session.get(url, params=params, timeout=timeout) as response:
                if response.status != 200:
                    raise FeedFetchError(f"{url} returned HTTP {response.status}")
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise FeedDecodeError(f"{url} returned invalid JSON: {e}") from e
        except asyncio.TimeoutError as e:
            raise FeedFetchError(f"{url} timed out after {timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(f"{url} request failed: {e}") from e
        if not isinstance(data, dict):
            raise FeedDecodeError(f"{url} returned {type(data).__name__}, expected an object")
        return data

    async def fetch_nearby(self, lat: float, lon: float, radius: float) -> List[dict]:
        data = await self._get_json(
            "/nearby",
            {"lat": str(lat), "lon": str(lon), "radius": str(radius)},
            self.nearby_timeout_seconds,
        )
        nearby = data.get("nearby") or []
        return [item for item in nearby if isinstance(item, dict)]

    async def fetch_predictions(self, route_id: str) -> List[TripUpdate]:
        data = await self._get_json("/predictions", {"route": route_id}, self.predictions_timeout_seconds)
        updates = []
        for item in data.get("predictions") or []:
            if not isinstance(item, dict):
                continue
            try:
                update = TripUpdate.from_dict(item)
            except (TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed prediction for route {route_id}: {e}")
                continue
            if update.trip_id:
                updates.append(update)
        return updates
