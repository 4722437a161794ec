"""
Data sources module.
"""

from .gtfs_realtime import GTFSRealtimeSource, decode_entities
from .relay_api import RelayAPISource

__all__ = [
    "GTFSRealtimeSource",
    "decode_entities",
    "RelayAPISource",
]
