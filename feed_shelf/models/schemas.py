"""Data models for feed_shelf.

This module defines the core data structures for sources and articles.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass
class SourceConfig:
    """Represents a configured source, as stored in the config file."""

    title: str
    url: str
    refresh_period: Optional[float] = None

    def to_dict(self) -> dict:
        data = {"title": self.title, "url": self.url}
        if self.refresh_period:
            data["refresh_period"] = self.refresh_period
        return data


@dataclass
class FetchedItem:
    """An item found by a refresh, not yet stored."""

    url: str
    title: str
    content: Any = ""


@dataclass
class Article:
    """Represents an article stored for a source.

    The URL is the article's identity within its source. ``read`` only ever
    moves from False to True.
    """

    url: str
    title: str
    content: Any
    fetched_at: datetime
    read: bool = False

    @classmethod
    def from_item(cls, item: FetchedItem) -> "Article":
        """Wrap a fetched item into a new unread article."""
        return cls(
            url=item.url,
            title=item.title,
            content=item.content,
            fetched_at=datetime.now(timezone.utc),
            read=False,
        )
