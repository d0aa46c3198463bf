"""In-memory article store for one source, mirrored on disk.

Every mutation is applied to memory under the source lock and then queued on
the source's WriteBackQueue, which persists it asynchronously.
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TypeVar

from feed_shelf.errors import (
    ArticleDecodeError,
    ArticleNotFoundError,
    DuplicateArticleError,
    SourceRenameError,
    WriteBackClosedError,
)
from feed_shelf.models.schemas import Article, SourceConfig
from feed_shelf.storage import codec
from feed_shelf.storage.write_back import TEMP_PREFIX, WriteBackQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _read_articles(directory: Path) -> List[Article]:
    """Decode every article file in directory, skipping bad ones."""
    articles = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.name.startswith(TEMP_PREFIX) or not entry.is_file():
                continue
            try:
                with open(entry.path, "rb") as f:
                    data = f.read()
            except OSError as e:
                logger.error(f"Cannot read article file {entry.path}: {e}")
                continue
            try:
                articles.append(codec.decode(data))
            except ArticleDecodeError as e:
                logger.error(f"Cannot decode article file {entry.path}: {e}")
    return articles


class ArticleStore:
    """Articles of one source, with their unread count and data directory.

    Args:
        title: Source title; its slug names the data directory
        url: Source (feed) URL
        data_root: Directory holding one sub-directory per source
        refresh_period: Optional refresh interval in seconds
        write_queue_size: Capacity of the write-back queue (0 for unbounded)
    """

    def __init__(
        self,
        title: str,
        url: str,
        data_root: Path,
        refresh_period: Optional[float] = None,
        write_queue_size: int = 0,
    ):
        self.title = title
        self.slug = codec.slugify(title)
        self.url = url
        self.refresh_period = refresh_period
        self.data_root = Path(data_root)
        self.unread_count = 0
        self.last_refreshed: Optional[datetime] = None

        self._articles: List[Article] = []
        self._index: Dict[str, Article] = {}
        self._lock = asyncio.Lock()
        self._writer = WriteBackQueue(
            self.data_root / self.slug, maxsize=write_queue_size, name=title
        )

    @classmethod
    def from_config(
        cls, source: SourceConfig, data_root: Path, write_queue_size: int = 0
    ) -> "ArticleStore":
        return cls(
            title=source.title,
            url=source.url,
            data_root=data_root,
            refresh_period=source.refresh_period,
            write_queue_size=write_queue_size,
        )

    def __len__(self) -> int:
        return len(self._articles)

    def __repr__(self) -> str:
        return (
            f"ArticleStore(title={self.title!r}, articles={len(self._articles)}, "
            f"unread={self.unread_count})"
        )

    @property
    def data_dir(self) -> Path:
        return self._writer.directory

    @property
    def writer(self) -> WriteBackQueue:
        return self._writer

    def to_config(self) -> SourceConfig:
        return SourceConfig(
            title=self.title, url=self.url, refresh_period=self.refresh_period
        )

    def start(self) -> None:
        """Start persisting queued writes."""
        self._writer.start()

    async def close(self) -> None:
        """Apply every pending write and stop the writer."""
        await self._writer.close()

    async def flush(self) -> None:
        """Wait until every mutation so far is on disk."""
        await self._writer.join()

    def _check_open(self) -> None:
        if self._writer.closed:
            raise WriteBackClosedError(f"Source '{self.title}' is closed")

    async def load(self) -> int:
        """Load the articles stored in the data directory.

        Creates the directory if it does not exist yet. Unreadable or
        malformed files are logged and skipped. The resulting order is the
        directory listing order.

        Returns:
            Number of articles loaded
        """
        async with self._lock:
            directory = self.data_dir
            if not directory.exists():
                try:
                    await asyncio.to_thread(directory.mkdir, mode=0o700, parents=True)
                except OSError as e:
                    logger.error(f"Error creating source directory {directory}: {e}")
                return 0

            try:
                loaded = await asyncio.to_thread(_read_articles, directory)
            except OSError as e:
                logger.error(f"Could not open articles for source {self.title}: {e}")
                return 0

            count = 0
            for article in loaded:
                if article.url in self._index:
                    logger.error(
                        f"Skipping duplicate article {self.title}/{article.url}"
                    )
                    continue
                self._articles.append(article)
                self._index[article.url] = article
                if not article.read:
                    self.unread_count += 1
                count += 1

        logger.info(f"Loaded {count} articles for source {self.title}")
        return count

    def lookup(self, url: str) -> Optional[Article]:
        """Get an article by URL, or None if this source has no such article."""
        return self._index.get(url)

    def filter_new(self, candidates: Iterable[T]) -> List[T]:
        """Select the candidates not matching an existing article.

        Candidates are compared by their ``url`` attribute (or ``"url"`` key).
        A URL repeated within candidates is kept only the first time.
        """
        result = []
        seen = set()
        for item in candidates:
            url = item["url"] if isinstance(item, dict) else item.url
            if url in self._index or url in seen:
                continue
            seen.add(url)
            result.append(item)
        return result

    def list_articles(self, include_read: bool = True, limit: int = 0) -> List[Article]:
        """Snapshot of the articles, newest first."""
        articles = [a for a in self._articles if include_read or not a.read]
        articles.sort(key=lambda a: a.fetched_at, reverse=True)
        if limit > 0:
            articles = articles[:limit]
        return articles

    async def append(self, article: Article) -> None:
        """Add an article and queue it for writing.

        Raises:
            DuplicateArticleError: If an article with the same URL exists
            WriteBackClosedError: If the store has been closed
        """
        async with self._lock:
            self._check_open()
            if article.url in self._index:
                raise DuplicateArticleError(self.title, article.url)
            self._articles.append(article)
            self._index[article.url] = article
            if not article.read:
                self.unread_count += 1
            await self._writer.submit(article)

    async def mark_read(self, url: str) -> Article:
        """Mark an article as read. Marking a read article again does nothing.

        Raises:
            ArticleNotFoundError: If no article has this URL
            WriteBackClosedError: If the store has been closed
        """
        async with self._lock:
            self._check_open()
            article = self._index.get(url)
            if article is None:
                logger.warning(f"Could not find article {self.title}/{url}")
                raise ArticleNotFoundError(self.title, url)

            if not article.read:
                article.read = True
                self.unread_count -= 1
                await self._writer.submit(article)

            return article

    async def mark_all_read(self) -> int:
        """Mark every unread article as read.

        Returns:
            Number of articles that changed
        """
        async with self._lock:
            self._check_open()
            changed = 0
            for article in self._articles:
                if article.read:
                    continue
                article.read = True
                self.unread_count -= 1
                changed += 1
                await self._writer.submit(article)
            return changed

    async def rename(self, new_title: str) -> None:
        """Rename the source and move its data directory.

        Nothing changes if the directory rename fails.

        Raises:
            SourceRenameError: If the directory could not be renamed
        """
        async with self._lock:
            if new_title == self.title:
                return

            try:
                new_slug = codec.slugify(new_title)
            except ValueError as e:
                raise SourceRenameError(str(e)) from e

            try:
                await self._writer.relocate(self.data_root / new_slug)
            except OSError as e:
                logger.error(f"Error renaming source datadir: {e}")
                raise SourceRenameError(
                    f"Could not rename source '{self.title}' to '{new_title}': {e}"
                ) from e

            logger.info(f"Renamed source '{self.title}' to '{new_title}'")
            self.title = new_title
            self.slug = new_slug
            self._writer.name = new_title

    async def set_url(self, url: str) -> None:
        async with self._lock:
            self.url = url

    def touch(self) -> None:
        """Record that the source was just refreshed."""
        self.last_refreshed = datetime.now(timezone.utc)
