"""
Feed cache repository.
Holds the latest snapshot of each real-time feed. Snapshots are replaced wholesale;
readers always get a complete snapshot from a single poll.
"""

import logging
import threading
from typing import Dict

from ..models.feed import FeedKind, FeedSnapshot

logger = logging.getLogger(__name__)


class FeedCache:
    """Single-writer / multi-reader store of one snapshot per feed kind"""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshots: Dict[FeedKind, FeedSnapshot] = {
            kind: FeedSnapshot.empty(kind) for kind in FeedKind
        }

    def snapshot(self, kind: FeedKind) -> FeedSnapshot:
        """Return the current snapshot; never blocks on an in-flight fetch."""
        with self._lock:
            return self._snapshots[kind]

    def replace(self, snapshot: FeedSnapshot) -> FeedSnapshot:
        """Atomically swap in a new snapshot and return the one it replaced."""
        with self._lock:
            previous = self._snapshots[snapshot.kind]
            self._snapshots[snapshot.kind] = snapshot
        logger.debug(
            f"Replaced {snapshot.kind.value} snapshot: {previous.entity_count} -> {snapshot.entity_count} entities"
        )
        return previous

    def health(self) -> Dict[str, dict]:
        with self._lock:
            snapshots = dict(self._snapshots)
        return {kind.value: snap.health() for kind, snap in snapshots.items()}
