"""Registry of the configured sources.

Owns one ArticleStore (and through it one write-back worker) per source.
Data location: <data_dir>/<slug(source title)>/ (see feed_shelf.config)
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from feed_shelf.config import ServerConfig, get_config
from feed_shelf.errors import (
    SourceDirectoryClosedError,
    SourceExistsError,
    SourceNotFoundError,
)
from feed_shelf.models.schemas import SourceConfig
from feed_shelf.storage.article_store import ArticleStore

logger = logging.getLogger(__name__)


class SourceDirectory:
    """All sources of the reader, keyed by title."""

    def __init__(self, data_root: Path, write_queue_size: int = 0):
        self.data_root = Path(data_root)
        self.write_queue_size = write_queue_size
        self._sources: Dict[str, ArticleStore] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    def __contains__(self, title: str) -> bool:
        return title in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    async def open(self, sources: Iterable[SourceConfig]) -> None:
        """Create and load a store for every configured source."""
        await asyncio.to_thread(self.data_root.mkdir, parents=True, exist_ok=True)
        for source in sources:
            if source.title in self._sources:
                logger.error(f"Ignoring duplicate source in config: {source.title}")
                continue
            await self._open_store(source)

    async def _open_store(self, source: SourceConfig) -> ArticleStore:
        store = ArticleStore.from_config(source, self.data_root, self.write_queue_size)
        store.start()
        await store.load()
        self._sources[store.title] = store
        return store

    def get(self, title: str) -> ArticleStore:
        """Get a source by title.

        Raises:
            SourceNotFoundError: If no such source exists
        """
        store = self._sources.get(title)
        if store is None:
            raise SourceNotFoundError(title)
        return store

    def list(self) -> List[ArticleStore]:
        """Sources ordered by title."""
        return sorted(self._sources.values(), key=lambda s: s.title.lower())

    def configs(self) -> List[SourceConfig]:
        return [store.to_config() for store in self.list()]

    async def add(
        self, title: str, url: str, refresh_period: Optional[float] = None
    ) -> ArticleStore:
        """Add a source and create its data directory.

        Raises:
            SourceExistsError: If a source with this title exists
            SourceDirectoryClosedError: If the directory has been closed
        """
        async with self._lock:
            if self._closed:
                raise SourceDirectoryClosedError("Cannot add a source after close")
            if title in self._sources:
                raise SourceExistsError(title)
            store = await self._open_store(
                SourceConfig(title=title, url=url, refresh_period=refresh_period)
            )
        logger.info(f"Added source {title} ({url})")
        return store

    async def remove(self, title: str, delete_data: bool = True) -> int:
        """Remove a source after its pending writes have been applied.

        Returns:
            Number of articles the source held

        Raises:
            SourceNotFoundError: If no such source exists
        """
        async with self._lock:
            store = self.get(title)
            del self._sources[title]

        await store.close()
        article_count = len(store)
        if delete_data:
            try:
                await asyncio.to_thread(shutil.rmtree, store.data_dir)
            except OSError as e:
                logger.error(f"Error deleting data for source {title}: {e}")
        logger.info(f"Removed source {title} ({article_count} articles)")
        return article_count

    async def rename(self, title: str, new_title: str) -> ArticleStore:
        """Rename a source and its data directory.

        Raises:
            SourceNotFoundError: If no such source exists
            SourceExistsError: If new_title is taken by another source
            SourceRenameError: If the directory could not be renamed
        """
        async with self._lock:
            store = self.get(title)
            if new_title == title:
                return store
            if new_title in self._sources:
                raise SourceExistsError(new_title)
            await store.rename(new_title)
            del self._sources[title]
            self._sources[new_title] = store
        return store

    async def close(self) -> None:
        """Flush and stop every source's writer."""
        if self._closed:
            return
        self._closed = True
        results = await asyncio.gather(
            *(store.close() for store in self._sources.values()),
            return_exceptions=True,
        )
        for store, result in zip(list(self._sources.values()), results):
            if isinstance(result, Exception):
                logger.error(f"Error closing source {store.title}: {result}")


# Singleton directory
_directory: Optional[SourceDirectory] = None


async def get_directory(config: Optional[ServerConfig] = None) -> SourceDirectory:
    """Get or create the process-wide source directory.

    Returns:
        Opened SourceDirectory
    """
    global _directory

    if _directory is None:
        if config is None:
            config = get_config()
        directory = SourceDirectory(config.data_dir, config.write_queue_size)
        await directory.open(config.sources)
        _directory = directory

    return _directory


async def close_directory() -> None:
    """Close the source directory, draining every pending write."""
    global _directory

    if _directory is not None:
        await _directory.close()
        _directory = None
