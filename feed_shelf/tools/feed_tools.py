"""Feed reader MCP tools.

This module provides MCP tools for managing sources and their articles.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional numbers.
"""

import logging
from typing import Any, Dict

from mcp.server.fastmcp import Context

from feed_shelf.config import get_config, save_config
from feed_shelf.errors import (
    ArticleNotFoundError,
    SourceExistsError,
    SourceNotFoundError,
    SourceRenameError,
)
from feed_shelf.models.schemas import Article
from feed_shelf.services.feed_discovery import discover_feed, normalize_url
from feed_shelf.services.refresher import refresh_source as refresh_store
from feed_shelf.storage import directory
from feed_shelf.storage.article_store import ArticleStore

logger = logging.getLogger(__name__)


def _source_dict(store: ArticleStore) -> Dict[str, Any]:
    return {
        "title": store.title,
        "url": store.url,
        "refresh_period": store.refresh_period,
        "total_articles": len(store),
        "unread_articles": store.unread_count,
        "last_refreshed": store.last_refreshed.isoformat() if store.last_refreshed else None,
    }


def _article_dict(article: Article, include_content: bool = False) -> Dict[str, Any]:
    data = {
        "url": article.url,
        "title": article.title,
        "fetched_at": article.fetched_at.isoformat(),
        "is_read": article.read,
    }
    if include_content:
        data["content"] = article.content
    return data


def _save_sources(sources: directory.SourceDirectory) -> None:
    """Write the current source list back to the config file."""
    config = get_config()
    config.sources = sources.configs()
    try:
        save_config(config)
    except OSError as e:
        logger.error(f"Could not save config: {e}")


async def list_sources(ctx: Context = None) -> Dict[str, Any]:
    """List all configured sources with article counts.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of sources
        - sources: list of source objects with title, url, refresh_period,
          total_articles, unread_articles, last_refreshed
    """
    logger.info("list_sources called")

    sources = await directory.get_directory()

    return {
        "success": True,
        "count": len(sources),
        "sources": [_source_dict(store) for store in sources.list()],
    }


async def add_source(
    url: str,
    title: str = "",
    refresh_period: float = 0,
    discover: bool = True,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Add a new feed source to track.

    When discover is true, the URL may be a homepage: the tool looks for the
    RSS/Atom feed behind it and uses the feed's title if no title is given.

    Args:
        url: Feed URL or homepage URL (https:// is added if no scheme)
        title: Display name for the source (empty string to use the feed title)
        refresh_period: Seconds between refreshes (0 for the default period)
        discover: Look for the feed behind the URL
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - source: the created source
        - feed_discovered: bool indicating if a different feed URL was found
        - error: string if success is False
    """
    logger.info(f"add_source called: url={url}, title={title}")

    url = normalize_url(url)
    feed_url = url
    feed_title = ""

    if discover:
        found = await discover_feed(url)
        if found is None:
            return {
                "success": False,
                "error": f"Could not find a feed for {url}. Pass discover=false to add it anyway.",
            }
        feed_url = found.url
        feed_title = found.title

    title = title.strip() or feed_title or feed_url
    sources = await directory.get_directory()

    try:
        store = await sources.add(title, feed_url, refresh_period or None)
    except (SourceExistsError, ValueError) as e:
        return {
            "success": False,
            "error": str(e),
        }

    _save_sources(sources)

    return {
        "success": True,
        "source": _source_dict(store),
        "feed_discovered": feed_url != url,
    }


async def remove_source(title: str, ctx: Context = None) -> Dict[str, Any]:
    """Remove a source and delete all its stored articles.

    Pending writes are applied before the data is deleted. This action
    cannot be undone.

    Args:
        title: Title of the source (case-sensitive, must match exactly)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - message: confirmation string if successful
        - articles_deleted: count of articles removed
        - error: string if source not found
    """
    logger.info(f"remove_source called: title={title}")

    sources = await directory.get_directory()

    try:
        article_count = await sources.remove(title)
    except SourceNotFoundError as e:
        return {
            "success": False,
            "error": str(e),
        }

    _save_sources(sources)

    return {
        "success": True,
        "message": f"Removed source '{title}' and {article_count} articles",
        "articles_deleted": article_count,
    }


async def edit_source(
    title: str,
    new_title: str = "",
    url: str = "",
    refresh_period: float = -1,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Rename a source, change its feed URL or its refresh period.

    Renaming moves the source's data directory; if that fails nothing changes.

    Args:
        title: Current title of the source
        new_title: New title (empty string keeps the current one)
        url: New feed URL (empty string keeps the current one)
        refresh_period: Seconds between refreshes (0 for the default, -1 keeps the current one)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - source: the updated source
        - error: string if success is False
    """
    logger.info(f"edit_source called: title={title}, new_title={new_title}, url={url}")

    sources = await directory.get_directory()

    try:
        store = sources.get(title)
        if new_title.strip():
            store = await sources.rename(title, new_title.strip())
    except (SourceNotFoundError, SourceExistsError, SourceRenameError) as e:
        return {
            "success": False,
            "error": str(e),
        }

    if url:
        await store.set_url(normalize_url(url))
    if refresh_period >= 0:
        store.refresh_period = refresh_period or None

    _save_sources(sources)

    return {
        "success": True,
        "source": _source_dict(store),
    }


async def refresh_source(title: str = "", ctx: Context = None) -> Dict[str, Any]:
    """Fetch new articles for one source, or for all sources.

    Items whose URL is already stored are skipped.

    Args:
        title: Refresh only this source (empty string refreshes all sources)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - sources_refreshed: number of sources processed
        - total_new_articles: total new articles added
        - results: per-source results with title, new_articles, errors
    """
    logger.info(f"refresh_source called: title={title}")

    sources = await directory.get_directory()

    if title:
        try:
            stores = [sources.get(title)]
        except SourceNotFoundError as e:
            return {
                "success": False,
                "error": str(e),
            }
    else:
        stores = sources.list()

    results = []
    total_new = 0

    for store in stores:
        result = {"title": store.title, "new_articles": 0, "errors": []}
        try:
            added = await refresh_store(store)
            result["new_articles"] = added
            total_new += added
        except Exception as e:
            logger.error(f"Error refreshing {store.title}: {e}")
            result["errors"].append(str(e))
        results.append(result)

    return {
        "success": True,
        "sources_refreshed": len(stores),
        "total_new_articles": total_new,
        "results": results,
    }


async def list_articles(
    title: str,
    include_read: bool = False,
    limit: int = 50,
    ctx: Context = None,
) -> Dict[str, Any]:
    """List the articles of a source, newest first.

    Args:
        title: Title of the source
        include_read: Include articles marked as read (default: False, only unread)
        limit: Maximum number of articles to return (0 for no limit)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of articles returned
        - unread_articles: unread count of the source
        - articles: list of article objects with url, title, fetched_at, is_read
    """
    logger.info(f"list_articles called: title={title}, include_read={include_read}, limit={limit}")

    sources = await directory.get_directory()

    try:
        store = sources.get(title)
    except SourceNotFoundError as e:
        return {
            "success": False,
            "error": str(e),
        }

    articles = store.list_articles(include_read=include_read, limit=limit)

    return {
        "success": True,
        "count": len(articles),
        "unread_articles": store.unread_count,
        "articles": [_article_dict(a) for a in articles],
    }


async def get_article(title: str, url: str, ctx: Context = None) -> Dict[str, Any]:
    """Get one article of a source, including its content.

    Args:
        title: Title of the source
        url: URL of the article
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - article: article object with url, title, fetched_at, is_read, content
        - error: string if the source or article is not found
    """
    logger.info(f"get_article called: title={title}, url={url}")

    sources = await directory.get_directory()

    try:
        store = sources.get(title)
    except SourceNotFoundError as e:
        return {
            "success": False,
            "error": str(e),
        }

    article = store.lookup(url)
    if article is None:
        return {
            "success": False,
            "error": str(ArticleNotFoundError(title, url)),
        }

    return {
        "success": True,
        "article": _article_dict(article, include_content=True),
    }


async def mark_article_read(title: str, url: str, ctx: Context = None) -> Dict[str, Any]:
    """Mark an article as read.

    Marking an article that is already read has no effect.

    Args:
        title: Title of the source
        url: URL of the article
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - article: object with url, title, fetched_at, is_read (if found)
        - unread_articles: remaining unread count of the source
        - error: string if the source or article is not found
    """
    logger.info(f"mark_article_read called: title={title}, url={url}")

    sources = await directory.get_directory()

    try:
        store = sources.get(title)
        article = await store.mark_read(url)
    except (SourceNotFoundError, ArticleNotFoundError) as e:
        return {
            "success": False,
            "error": str(e),
        }

    return {
        "success": True,
        "article": _article_dict(article),
        "unread_articles": store.unread_count,
    }


async def mark_all_read(title: str, ctx: Context = None) -> Dict[str, Any]:
    """Mark all unread articles of a source as read.

    Args:
        title: Title of the source
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - articles_marked_read: count of articles updated
        - error: string if the source is not found
    """
    logger.info(f"mark_all_read called: title={title}")

    sources = await directory.get_directory()

    try:
        store = sources.get(title)
    except SourceNotFoundError as e:
        return {
            "success": False,
            "error": str(e),
        }

    count = await store.mark_all_read()

    return {
        "success": True,
        "articles_marked_read": count,
    }


# List of feed tools for registration
feed_tools = [
    list_sources,
    add_source,
    remove_source,
    edit_source,
    refresh_source,
    list_articles,
    get_article,
    mark_article_read,
    mark_all_read,
]
