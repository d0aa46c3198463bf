"""Services for feed_shelf."""

from .feed_discovery import discover_feed, discover_feed_url, DiscoveredFeed
from .feed_parser import fetch_items
from .refresher import refresh_source, refresh_due, refresh_loop

__all__ = [
    "discover_feed",
    "discover_feed_url",
    "DiscoveredFeed",
    "fetch_items",
    "refresh_source",
    "refresh_due",
    "refresh_loop",
]
