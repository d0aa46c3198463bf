"""Feed discovery service.

Finds the RSS/Atom feed behind a URL given when adding a source, and the
feed's own title to name the source with.
"""

import logging
import httpx
import feedparser
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


# Common feed paths to probe
COMMON_FEED_PATHS = [
    "/feed",
    "/rss",
    "/feed.xml",
    "/rss.xml",
    "/atom.xml",
    "/index.xml",
    "/feeds/posts/default",  # Blogger
    "/?feed=rss2",  # WordPress
    "/blog/feed",
    "/blog/rss",
]

# Feed MIME types to look for in <link> tags
FEED_MIME_TYPES = [
    "application/rss+xml",
    "application/atom+xml",
    "application/feed+json",
    "application/xml",
    "text/xml",
]


@dataclass
class DiscoveredFeed:
    url: str
    title: str


def normalize_url(url: str) -> str:
    """Add https:// to URLs given without a scheme."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url


async def discover_feed(url: str) -> Optional[DiscoveredFeed]:
    """Find the feed for a URL.

    1. If the URL itself is a feed, use it
    2. Look for <link rel="alternate"> tags with feed MIME types on the page
    3. Probe common feed paths

    Args:
        url: Feed or homepage URL

    Returns:
        DiscoveredFeed if found, None otherwise
    """
    url = normalize_url(url)
    base_url = url.rstrip("/")
    logger.info(f"Discovering feed for: {url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=30.0,
        headers={"User-Agent": "FeedShelf/1.0 (RSS Feed Discovery)"},
    ) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch {url}: {e}")
            response = None

        if response is not None:
            title = _feed_title(response.text)
            if title is not None:
                logger.info(f"{url} is a feed")
                return DiscoveredFeed(url=url, title=title or url)

            soup = BeautifulSoup(response.text, "lxml")
            for link in soup.find_all("link", rel=lambda x: x and "alternate" in x):
                link_type = link.get("type", "").lower()
                href = link.get("href", "")
                if not href or not any(mime in link_type for mime in FEED_MIME_TYPES):
                    continue

                found = await _probe(client, urljoin(url, href))
                if found:
                    logger.info(f"Found feed via link tag: {found.url}")
                    return found

        for path in COMMON_FEED_PATHS:
            found = await _probe(client, base_url + path)
            if found:
                logger.info(f"Found feed via path probing: {found.url}")
                return found

    logger.info(f"No feed found for: {url}")
    return None


async def discover_feed_url(url: str) -> Optional[str]:
    """Find the feed URL for a URL, or None."""
    found = await discover_feed(url)
    return found.url if found else None


def _feed_title(text: str) -> Optional[str]:
    """Title of the feed in text; "" for an untitled feed, None if not a feed."""
    feed = feedparser.parse(text)
    # Unrecognised formats (e.g. HTML pages) have no version
    if not feed.get("version"):
        return None
    if feed.bozo and not feed.entries:
        return None
    title = feed.feed.get("title", "")
    if not (title or feed.entries):
        return None
    return title.strip()


async def _probe(client: httpx.AsyncClient, feed_url: str) -> Optional[DiscoveredFeed]:
    """Fetch feed_url and return it if it serves a valid feed."""
    try:
        response = await client.get(feed_url)
    except httpx.HTTPError as e:
        logger.debug(f"Probe of {feed_url} failed: {e}")
        return None

    if response.status_code != 200:
        return None

    title = _feed_title(response.text)
    if title is None:
        return None
    return DiscoveredFeed(url=feed_url, title=title or feed_url)
