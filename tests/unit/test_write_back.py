"""Unit tests for the write-back queue."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from feed_shelf.errors import WriteBackClosedError
from feed_shelf.models.schemas import Article
from feed_shelf.storage import codec, write_back
from feed_shelf.storage.write_back import WriteBackQueue, write_article_file


# Mark all tests as async
pytestmark = pytest.mark.anyio


def make_article(url: str, read: bool = False) -> Article:
    return Article(
        url=url,
        title=url,
        content="body",
        fetched_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        read=read,
    )


def stored(directory, url: str) -> Article:
    return codec.decode((directory / codec.filename_for(url)).read_bytes())


class TestWriteArticleFile:
    """Tests for the file writer."""

    def test_writes_and_overwrites(self, tmp_path):
        article = make_article("http://x/1")
        write_article_file(tmp_path, article)
        article.read = True
        write_article_file(tmp_path, article)

        assert stored(tmp_path, "http://x/1").read is True
        # No temporary files left behind
        assert [p.name for p in tmp_path.iterdir()] == [codec.filename_for("http://x/1")]

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(OSError):
            write_article_file(tmp_path / "missing", make_article("http://x/1"))


class TestWriteBackQueue:
    """Tests for ordering, failure handling and shutdown."""

    async def test_writes_in_order(self, tmp_path):
        queue = WriteBackQueue(tmp_path)
        queue.start()
        written = []
        real_write = write_back.write_article_file

        def recording_write(directory, article):
            written.append(article.url)
            return real_write(directory, article)

        with patch("feed_shelf.storage.write_back.write_article_file", side_effect=recording_write):
            for i in range(10):
                await queue.submit(make_article(f"http://x/{i}"))
            await queue.close()

        assert written == [f"http://x/{i}" for i in range(10)]

    async def test_latest_state_is_written(self, tmp_path):
        queue = WriteBackQueue(tmp_path)
        queue.start()
        article = make_article("http://x/1")

        await queue.submit(article)
        article.read = True
        await queue.submit(article)
        await queue.join()

        assert stored(tmp_path, "http://x/1").read is True
        await queue.close()

    async def test_failed_write_does_not_stop_worker(self, tmp_path):
        queue = WriteBackQueue(tmp_path)
        queue.start()
        real_write = write_back.write_article_file

        def flaky_write(directory, article):
            if article.url == "http://x/bad":
                raise OSError("disk full")
            return real_write(directory, article)

        with patch("feed_shelf.storage.write_back.write_article_file", side_effect=flaky_write):
            await queue.submit(make_article("http://x/1"))
            await queue.submit(make_article("http://x/bad"))
            await queue.submit(make_article("http://x/2"))
            await queue.join()

        assert queue.failed_writes == 1
        assert stored(tmp_path, "http://x/1").url == "http://x/1"
        assert stored(tmp_path, "http://x/2").url == "http://x/2"
        assert not (tmp_path / codec.filename_for("http://x/bad")).exists()
        await queue.close()

    async def test_close_drains_pending_writes(self, tmp_path):
        queue = WriteBackQueue(tmp_path)
        queue.start()
        for i in range(25):
            await queue.submit(make_article(f"http://x/{i}"))

        await queue.close()

        assert queue.pending == 0
        assert len(list(tmp_path.iterdir())) == 25

    async def test_close_without_start_still_writes(self, tmp_path):
        queue = WriteBackQueue(tmp_path)
        await queue.submit(make_article("http://x/1"))

        await queue.close()

        assert stored(tmp_path, "http://x/1").url == "http://x/1"

    async def test_submit_after_close_raises(self, tmp_path):
        queue = WriteBackQueue(tmp_path)
        queue.start()
        await queue.close()

        with pytest.raises(WriteBackClosedError):
            await queue.submit(make_article("http://x/1"))

    async def test_close_twice(self, tmp_path):
        queue = WriteBackQueue(tmp_path)
        queue.start()
        await queue.close()
        await queue.close()
        assert queue.closed

    async def test_bounded_queue_blocks_instead_of_dropping(self, tmp_path):
        queue = WriteBackQueue(tmp_path, maxsize=1)
        await queue.submit(make_article("http://x/1"))

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(queue.submit(make_article("http://x/2")), timeout=0.05)

        queue.start()
        await queue.submit(make_article("http://x/2"))
        await queue.close()

        assert stored(tmp_path, "http://x/1").url == "http://x/1"
        assert stored(tmp_path, "http://x/2").url == "http://x/2"

    async def test_relocate_moves_directory(self, tmp_path):
        source_dir = tmp_path / "A"
        source_dir.mkdir()
        queue = WriteBackQueue(source_dir)
        queue.start()
        await queue.submit(make_article("http://x/1"))
        await queue.join()

        await queue.relocate(tmp_path / "B")
        await queue.submit(make_article("http://x/2"))
        await queue.close()

        assert not source_dir.exists()
        assert stored(tmp_path / "B", "http://x/1").url == "http://x/1"
        assert stored(tmp_path / "B", "http://x/2").url == "http://x/2"

    async def test_relocate_onto_existing_directory_fails(self, tmp_path):
        (tmp_path / "A").mkdir()
        (tmp_path / "B").mkdir()
        queue = WriteBackQueue(tmp_path / "A")

        with pytest.raises(FileExistsError):
            await queue.relocate(tmp_path / "B")

        assert queue.directory == tmp_path / "A"
        await queue.close()
