"""
Exception types shared across the relay and client components.
"""


class TransitLiveError(Exception):
    """Base class for all transit_live errors"""


class FeedFetchError(TransitLiveError):
    """Feed could not be downloaded (timeout, transport error, non-200 status)"""


class FeedDecodeError(TransitLiveError):
    """Feed payload could not be parsed as a GTFS-Realtime FeedMessage"""


class BadRequestError(TransitLiveError):
    """Invalid or missing query parameter; maps to HTTP 400"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LocationUnavailableError(TransitLiveError):
    """No location permission or no position fix available"""
