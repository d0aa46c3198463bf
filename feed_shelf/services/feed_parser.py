"""Feed parser service.

This module fetches RSS/Atom feeds and turns their entries into fetched items.
"""

import logging
import httpx
import feedparser
from typing import List

from feed_shelf.models.schemas import FetchedItem

logger = logging.getLogger(__name__)


async def fetch_items(feed_url: str) -> List[FetchedItem]:
    """Fetch an RSS/Atom feed and extract its items.

    Args:
        feed_url: URL of the feed to fetch

    Returns:
        List of FetchedItem objects (empty if the feed could not be fetched)
    """
    logger.info(f"Fetching feed: {feed_url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=30.0,
        headers={"User-Agent": "FeedShelf/1.0 (RSS Feed Reader)"},
    ) as client:
        try:
            response = await client.get(feed_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch feed: {e}")
            return []

    feed = feedparser.parse(response.text)

    if feed.bozo and not feed.entries:
        logger.warning(f"Feed parsing error: {feed.bozo_exception}")
        return []

    items = []
    for entry in feed.entries:
        title = entry.get("title", "").strip()
        if not title:
            continue

        url = entry.get("link", "").strip()
        if not url:
            for link in entry.get("links", []):
                if link.get("rel") == "alternate" or link.get("href"):
                    url = link.get("href", "")
                    break

        if not url:
            continue

        items.append(FetchedItem(
            url=url,
            title=title,
            content=_extract_content(entry),
        ))

    logger.info(f"Fetched {len(items)} items from feed")
    return items


def _extract_content(entry: dict) -> str:
    """Get the body of a feed entry: full content if present, else the summary."""
    for content in entry.get("content", None) or []:
        value = content.get("value", "")
        if value:
            return value
    return entry.get("summary", "") or ""
