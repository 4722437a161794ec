"""
GTFS-Realtime feed source.
Downloads a binary feed over the shared HTTP session and decodes it into typed entities.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

import aiohttp
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from ..models.alert import ServiceAlert
from ..models.feed import FeedKind
from ..models.trip import TripUpdate
from ..models.vehicle import VehiclePosition
from ...core.resource_manager import ResourceManager
from ...errors import FeedDecodeError, FeedFetchError

logger = logging.getLogger(__name__)


def parse_feed_message(payload: bytes) -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(payload)
    except (DecodeError, ValueError) as e:
        raise FeedDecodeError(f"Could not decode feed payload ({len(payload)} bytes): {e}") from e
    return feed


def decode_entities(kind: FeedKind, payload: bytes, language: str = "") -> Dict[str, object]:
    """
    Decode a raw feed payload into an entity-id -> entity mapping.

    Entities of other types, and entities missing the data their type requires,
    are skipped rather than failing the whole feed.

    Raises:
        FeedDecodeError: If the payload is not a valid FeedMessage.
    """
    feed = parse_feed_message(payload)

    converters: Dict[FeedKind, Callable] = {
        FeedKind.VEHICLE_POSITIONS: VehiclePosition.from_entity,
        FeedKind.TRIP_UPDATES: TripUpdate.from_entity,
        FeedKind.ALERTS: lambda entity: ServiceAlert.from_entity(entity, language),
    }
    convert = converters[kind]

    entities: Dict[str, object] = {}
    skipped = 0
    for entity in feed.entity:
        if entity.is_deleted:
            continue
        try:
            decoded = convert(entity)
        except (ValueError, TypeError, AttributeError) as e:
            logger.debug(f"Skipping malformed {kind.value} entity {entity.id}: {e}")
            decoded = None
        if decoded is None:
            skipped += 1
            continue
        if kind == FeedKind.TRIP_UPDATES:
            key = entity.id or decoded.trip_id
        else:
            key = decoded.id or entity.id
        entities[key] = decoded

    if skipped:
        logger.debug(f"Skipped {skipped} {kind.value} entities without usable data")
    return entities


class GTFSRealtimeSource:
    """Fetches GTFS-Realtime binary feeds with a bounded timeout"""

    def __init__(self, resource_manager: ResourceManager, timeout_seconds: float = 10.0,
                 headers: Optional[Dict[str, str]] = None):
        self.resource_manager = resource_manager
        self.timeout_seconds = timeout_seconds
        self.headers = headers or {
            'Accept': 'application/x-protobuf, application/octet-stream, */*',
            'User-Agent': 'transit-live-relay/0.1',
        }

    async def fetch(self, url: str) -> bytes:
        """
        Download one feed.

        Raises:
            FeedFetchError: On timeout, transport error or non-200 status.
        """
        session = await self.resource_manager.get_http_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with session.get(url, headers=self.headers, timeout=timeout) as response:
                if response.status != 200:
                    raise FeedFetchError(f"{url} returned HTTP {response.status}")
                return await response.read()
        except asyncio.TimeoutError as e:
            raise FeedFetchError(f"{url} timed out after {self.timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(f"{url} request failed: {e}") from e

    def decode(self, kind: FeedKind, payload: bytes, language: str = "") -> Dict[str, object]:
        return decode_entities(kind, payload, language)

    async def fetch_entities(self, kind: FeedKind, url: str, language: str = "") -> Dict[str, object]:
        payload = await self.fetch(url)
        return self.decode(kind, payload, language)
