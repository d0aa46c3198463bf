"""Per-source write-back queue.

Article mutations happen in memory first and are persisted by a single worker
task per source, in the order they were submitted. The worker encodes an
article when it dequeues it, so it always writes the latest in-memory state.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from feed_shelf.errors import WriteBackClosedError
from feed_shelf.models.schemas import Article
from feed_shelf.storage import codec

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".tmp-"

_STOP = object()


def write_article_file(directory: Path, article: Article) -> Path:
    """Write an article to its file in directory, replacing any previous content.

    The data goes to a temporary file first so readers never see a partial file.
    """
    data = codec.encode(article)
    target = directory / codec.filename_for(article.url)

    fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise

    return target


class WriteBackQueue:
    """Ordered, single-consumer queue of article writes for one source.

    Args:
        directory: Data directory of the source
        maxsize: Queue capacity; 0 means unbounded. When bounded, submit()
            waits for room instead of dropping the write.
        name: Source name used in log messages
    """

    def __init__(self, directory: Path, maxsize: int = 0, name: str = ""):
        self.directory = Path(directory)
        self.name = name or self.directory.name
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        # Held while a file is written or the directory is moved
        self._io_lock = asyncio.Lock()
        self._worker: Optional[asyncio.Task] = None
        self._closed = False
        self.failed_writes = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of writes waiting in the queue."""
        return self._queue.qsize()

    def start(self) -> None:
        """Start the worker task. Must be called from a running event loop."""
        if self._closed:
            raise WriteBackClosedError(f"Write-back queue for '{self.name}' is closed")
        if self._worker is None:
            self._worker = asyncio.create_task(
                self._run(), name=f"write-back:{self.name}"
            )

    async def submit(self, article: Article) -> None:
        """Queue an article to be written. Does not wait for the write itself."""
        if self._closed:
            raise WriteBackClosedError(f"Write-back queue for '{self.name}' is closed")
        await self._queue.put(article)

    async def join(self) -> None:
        """Wait until every write submitted so far has been applied."""
        await self._queue.join()

    async def relocate(self, new_directory: Path) -> None:
        """Rename the data directory with no write in flight.

        Writes still queued afterwards go to the new directory.

        Raises:
            OSError: If the rename fails; the old directory stays in use
        """
        new_directory = Path(new_directory)
        async with self._io_lock:
            if new_directory.exists():
                raise FileExistsError(f"Directory already exists: {new_directory}")
            await asyncio.to_thread(os.rename, self.directory, new_directory)
            self.directory = new_directory

    async def close(self) -> None:
        """Stop accepting writes, apply the queued ones, then stop the worker."""
        if self._closed:
            if self._worker is not None:
                await self._worker
            return

        self._closed = True
        if self._worker is None:
            # Never started: apply whatever was queued in place
            self._worker = asyncio.create_task(
                self._run(), name=f"write-back:{self.name}"
            )
        await self._queue.put(_STOP)
        await self._worker
        logger.debug(f"Write-back queue for '{self.name}' closed")

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                await self._write(item)
            finally:
                self._queue.task_done()

    async def _write(self, article: Article) -> None:
        async with self._io_lock:
            try:
                await asyncio.to_thread(write_article_file, self.directory, article)
            except Exception as e:
                self.failed_writes += 1
                logger.error(
                    f"Error writing article {self.name}/{article.url}: {e}"
                )
