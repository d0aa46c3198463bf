"""Source refresh service.

Fetches a source's feed, keeps the items not stored yet and appends them as
new unread articles. ``refresh_loop`` does this periodically for every source.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from feed_shelf.errors import DuplicateArticleError
from feed_shelf.models.schemas import Article
from feed_shelf.services.feed_parser import fetch_items
from feed_shelf.storage.article_store import ArticleStore
from feed_shelf.storage.directory import SourceDirectory

logger = logging.getLogger(__name__)

# How often the loop checks which sources are due
TICK_SECONDS = 10.0


async def refresh_source(store: ArticleStore) -> int:
    """Fetch new articles for one source.

    Returns:
        Number of articles added
    """
    try:
        items = await fetch_items(store.url)
    finally:
        store.touch()

    added = 0
    for item in store.filter_new(items):
        try:
            await store.append(Article.from_item(item))
        except DuplicateArticleError:
            # A concurrent refresh stored it first
            continue
        added += 1

    if added:
        logger.info(f"Source {store.title}: {added} new articles")
    return added


def is_due(store: ArticleStore, default_period: float, now: Optional[datetime] = None) -> bool:
    """Whether the source's refresh period has elapsed since its last refresh."""
    if store.last_refreshed is None:
        return True
    now = now or datetime.now(timezone.utc)
    period = store.refresh_period or default_period
    return (now - store.last_refreshed).total_seconds() >= period


async def refresh_due(directory: SourceDirectory, default_period: float) -> int:
    """Refresh every source whose period has elapsed.

    A failing source is logged and does not stop the others.

    Returns:
        Total number of articles added
    """
    due = [store for store in directory.list() if is_due(store, default_period)]
    if not due:
        return 0

    results = await asyncio.gather(
        *(refresh_source(store) for store in due), return_exceptions=True
    )

    total = 0
    for store, result in zip(due, results):
        if isinstance(result, Exception):
            logger.error(f"Error refreshing {store.title}: {result}")
            continue
        total += result
    return total


async def refresh_loop(
    directory: SourceDirectory,
    default_period: float,
    tick: float = TICK_SECONDS,
) -> None:
    """Refresh sources as they become due, until cancelled."""
    logger.info("Refresh loop started")
    try:
        while True:
            await refresh_due(directory, default_period)
            await asyncio.sleep(tick)
    finally:
        logger.info("Refresh loop stopped")
