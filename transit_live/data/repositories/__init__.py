"""
Repositories module.
"""

from .feed_cache import FeedCache

__all__ = ["FeedCache"]
