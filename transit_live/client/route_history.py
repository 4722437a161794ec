"""
Search history for frequently used destinations.
"""

import logging
import time
from typing import Callable, Dict, List

from .storage import ROUTE_HISTORY_KEY, KeyValueStore

logger = logging.getLogger(__name__)

FREQUENT_THRESHOLD = 3
FREQUENT_LIMIT = 3


class RouteHistory:
    """Per-destination search counter kept in local storage"""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def entries(self) -> List[Dict]:
        data = await self.store.get_object(ROUTE_HISTORY_KEY)
        if not isinstance(data, list):
            return []
        entries = []
        for item in data:
            if not isinstance(item, dict) or not item.get("destination"):
                continue
            try:
                entries.append({
                    "destination": str(item["destination"]),
                    "count": int(item.get("count", 0)),
                    "lastUsed": float(item.get("lastUsed", 0)),
                })
            except (TypeError, ValueError):
                logger.debug(f"Skipping malformed history entry: {item}")
        return entries

    async def record_search(self, destination: str) -> int:
        """Count a search for `destination` (case-insensitive); returns the new count"""
        history = await self.entries()
        normalized = destination.strip().lower()
        now = self.clock()
        for entry in history:
            if entry["destination"].strip().lower() == normalized:
                entry["count"] += 1
                entry["lastUsed"] = now
                count = entry["count"]
                break
        else:
            history.append({"destination": destination, "count": 1, "lastUsed": now})
            count = 1
        await self.store.set(ROUTE_HISTORY_KEY, history)
        return count

    async def frequent_routes(self) -> List[Dict]:
        """Top destinations searched at least three times, by count then recency"""
        history = [e for e in await self.entries() if e["count"] >= FREQUENT_THRESHOLD]
        history.sort(key=lambda e: (-e["count"], -e["lastUsed"]))
        return [{"destination": e["destination"], "count": e["count"]} for e in history[:FREQUENT_LIMIT]]
