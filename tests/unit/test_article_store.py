"""Unit tests for the per-source article store.

Stores are backed by a temporary directory and flushed before the files are
inspected.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from feed_shelf.errors import (
    ArticleNotFoundError,
    DuplicateArticleError,
    SourceRenameError,
    WriteBackClosedError,
)
from feed_shelf.models.schemas import Article, FetchedItem
from feed_shelf.storage import codec
from feed_shelf.storage.article_store import ArticleStore
from feed_shelf.storage.write_back import write_article_file


# Mark all tests as async
pytestmark = pytest.mark.anyio


def make_article(url: str, read: bool = False, minutes_ago: int = 0) -> Article:
    return Article(
        url=url,
        title=f"Title of {url}",
        content=f"<p>{url}</p>",
        fetched_at=datetime(2024, 1, 1, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago),
        read=read,
    )


def read_file(store: ArticleStore, url: str) -> Article:
    path = store.data_dir / codec.filename_for(url)
    return codec.decode(path.read_bytes())


async def open_store(tmp_path, title: str = "A") -> ArticleStore:
    store = ArticleStore(title, "https://example.com/feed", tmp_path)
    store.start()
    await store.load()
    return store


@pytest.fixture
async def store(tmp_path):
    """An empty, started store."""
    store = await open_store(tmp_path)
    yield store
    await store.close()


class TestAppendAndLookup:
    """Tests for append/lookup."""

    async def test_append_counts_unread(self, store):
        urls = [f"http://x/{i}" for i in range(5)]
        for url in urls:
            await store.append(make_article(url))

        assert store.unread_count == 5
        assert len(store) == 5
        for url in urls:
            assert store.lookup(url).url == url

    async def test_lookup_missing_returns_none(self, store):
        assert store.lookup("http://x/missing") is None

    async def test_append_duplicate_raises(self, store):
        await store.append(make_article("http://x/1"))

        with pytest.raises(DuplicateArticleError):
            await store.append(make_article("http://x/1"))

        assert store.unread_count == 1
        assert len(store) == 1

    async def test_append_read_article_does_not_count(self, store):
        await store.append(make_article("http://x/1", read=True))
        assert store.unread_count == 0

    async def test_append_persists(self, store):
        """Empty source, append one article: counter and file are updated."""
        await store.append(make_article("http://x/1"))
        assert store.unread_count == 1

        await store.flush()

        assert (store.data_dir / codec.filename_for("http://x/1")).exists()
        assert read_file(store, "http://x/1").read is False

    async def test_concurrent_appends(self, store):
        await asyncio.gather(
            *(store.append(make_article(f"http://x/{i}")) for i in range(50))
        )
        await store.flush()

        assert store.unread_count == 50
        assert len(list(store.data_dir.iterdir())) == 50

    async def test_append_after_close_changes_nothing(self, store):
        await store.close()

        with pytest.raises(WriteBackClosedError):
            await store.append(make_article("http://x/1"))

        assert store.unread_count == 0
        assert len(store) == 0
        assert store.lookup("http://x/1") is None


class TestMarkRead:
    """Tests for mark_read/mark_all_read."""

    async def test_mark_read_persists(self, store):
        await store.append(make_article("http://x/1"))

        article = await store.mark_read("http://x/1")

        assert article.read is True
        assert store.unread_count == 0
        await store.flush()
        assert read_file(store, "http://x/1").read is True

    async def test_mark_read_is_idempotent(self, store):
        await store.append(make_article("http://x/1"))
        await store.append(make_article("http://x/2"))

        await store.mark_read("http://x/1")
        await store.mark_read("http://x/1")

        assert store.unread_count == 1
        assert store.lookup("http://x/1").read is True
        assert store.lookup("http://x/2").read is False

    async def test_mark_read_unknown_url(self, store):
        await store.append(make_article("http://x/1"))

        with pytest.raises(ArticleNotFoundError):
            await store.mark_read("http://x/unknown")

        assert store.unread_count == 1

    async def test_mark_all_read(self, store):
        for i in range(3):
            await store.append(make_article(f"http://x/{i}"))
        await store.mark_read("http://x/0")

        changed = await store.mark_all_read()

        assert changed == 2
        assert store.unread_count == 0
        await store.flush()
        assert all(read_file(store, f"http://x/{i}").read for i in range(3))

    async def test_mark_read_after_close_changes_nothing(self, store):
        await store.append(make_article("http://x/1"))
        await store.close()

        with pytest.raises(WriteBackClosedError):
            await store.mark_read("http://x/1")
        with pytest.raises(WriteBackClosedError):
            await store.mark_all_read()

        assert store.unread_count == 1
        assert store.lookup("http://x/1").read is False


class TestFilterNew:
    """Tests for the dedup gate."""

    async def test_filter_new_drops_known(self, store):
        await store.append(make_article("http://x/1"))

        result = store.filter_new([{"url": "http://x/1"}, {"url": "http://x/2"}])

        assert result == [{"url": "http://x/2"}]

    async def test_filter_new_preserves_order(self, store):
        await store.append(make_article("http://x/2"))
        await store.append(make_article("http://x/4"))
        candidates = [
            FetchedItem(url=f"http://x/{i}", title=str(i)) for i in range(6)
        ]

        result = store.filter_new(candidates)

        assert [item.url for item in result] == [
            "http://x/0", "http://x/1", "http://x/3", "http://x/5",
        ]

    async def test_filter_new_drops_repeats_within_batch(self, store):
        result = store.filter_new([
            {"url": "http://x/1", "title": "first"},
            {"url": "http://x/1", "title": "second"},
        ])

        assert result == [{"url": "http://x/1", "title": "first"}]

    async def test_filter_new_on_empty_store(self, store):
        assert store.filter_new([]) == []


class TestLoad:
    """Tests for loading a source from disk."""

    async def test_load_creates_directory(self, tmp_path):
        store = await open_store(tmp_path, "New source")
        try:
            assert store.data_dir.is_dir()
            assert len(store) == 0
        finally:
            await store.close()

    async def test_load_restores_articles_and_counter(self, tmp_path):
        directory = tmp_path / codec.slugify("A")
        directory.mkdir()
        write_article_file(directory, make_article("http://x/1"))
        write_article_file(directory, make_article("http://x/2", read=True))
        write_article_file(directory, make_article("http://x/3"))

        store = await open_store(tmp_path)
        try:
            assert len(store) == 3
            assert store.unread_count == 2
            assert store.lookup("http://x/2").read is True
        finally:
            await store.close()

    async def test_load_skips_bad_files(self, tmp_path):
        directory = tmp_path / codec.slugify("A")
        directory.mkdir()
        write_article_file(directory, make_article("http://x/1"))
        (directory / "garbage").write_bytes(b"not an article")
        (directory / "partial").write_bytes(b'{"url": "http://x/2"}')
        (directory / ".tmp-leftover").write_bytes(b"{")
        (directory / "subdir").mkdir()

        store = await open_store(tmp_path)
        try:
            assert len(store) == 1
            assert store.lookup("http://x/1") is not None
        finally:
            await store.close()

    async def test_load_skips_duplicate_urls(self, tmp_path):
        directory = tmp_path / codec.slugify("A")
        directory.mkdir()
        data = codec.encode(make_article("http://x/1"))
        (directory / "copy-a").write_bytes(data)
        (directory / "copy-b").write_bytes(data)

        store = await open_store(tmp_path)
        try:
            assert len(store) == 1
            assert store.unread_count == 1
        finally:
            await store.close()

    async def test_load_skips_timestamps_without_timezone(self, tmp_path):
        directory = tmp_path / codec.slugify("A")
        directory.mkdir()
        write_article_file(directory, make_article("http://x/1"))
        naive = make_article("http://x/2")
        naive.fetched_at = datetime(2024, 1, 2)
        write_article_file(directory, naive)

        store = await open_store(tmp_path)
        try:
            assert len(store) == 1
            assert [a.url for a in store.list_articles()] == ["http://x/1"]
        finally:
            await store.close()

    async def test_load_then_mark_read(self, tmp_path):
        directory = tmp_path / codec.slugify("A")
        directory.mkdir()
        write_article_file(directory, make_article("http://x/1"))

        store = await open_store(tmp_path)
        try:
            await store.mark_read("http://x/1")
            await store.flush()
            assert read_file(store, "http://x/1").read is True
        finally:
            await store.close()


class TestRename:
    """Tests for renaming a source."""

    async def test_rename_moves_files(self, tmp_path):
        store = await open_store(tmp_path, "A")
        try:
            await store.append(make_article("http://x/1"))
            await store.append(make_article("http://x/2"))
            await store.flush()

            await store.rename("B")

            assert store.title == "B"
            assert store.data_dir == tmp_path / codec.slugify("B")
            assert not (tmp_path / codec.slugify("A")).exists()
            assert read_file(store, "http://x/1").url == "http://x/1"
            assert read_file(store, "http://x/2").url == "http://x/2"
            assert store.lookup("http://x/1") is not None
            assert store.lookup("http://x/2") is not None
        finally:
            await store.close()

    async def test_rename_then_write_goes_to_new_directory(self, tmp_path):
        store = await open_store(tmp_path, "A")
        try:
            await store.append(make_article("http://x/1"))
            await store.rename("B")
            await store.mark_read("http://x/1")
            await store.flush()

            assert read_file(store, "http://x/1").read is True
            assert not (tmp_path / codec.slugify("A")).exists()
        finally:
            await store.close()

    async def test_rename_same_title_is_noop(self, store):
        directory = store.data_dir
        await store.rename("A")
        assert store.data_dir == directory

    async def test_rename_failure_keeps_title(self, tmp_path):
        (tmp_path / codec.slugify("B")).mkdir()
        store = await open_store(tmp_path, "A")
        try:
            with pytest.raises(SourceRenameError):
                await store.rename("B")

            assert store.title == "A"
            assert store.slug == codec.slugify("A")
            assert store.data_dir == tmp_path / codec.slugify("A")
        finally:
            await store.close()


class TestListArticles:
    """Tests for list_articles."""

    async def test_newest_first_and_filters(self, store):
        await store.append(make_article("http://x/old", minutes_ago=10))
        await store.append(make_article("http://x/new", minutes_ago=0))
        await store.append(make_article("http://x/mid", minutes_ago=5))
        await store.mark_read("http://x/mid")

        all_urls = [a.url for a in store.list_articles()]
        unread_urls = [a.url for a in store.list_articles(include_read=False)]

        assert all_urls == ["http://x/new", "http://x/mid", "http://x/old"]
        assert unread_urls == ["http://x/new", "http://x/old"]
        assert len(store.list_articles(limit=1)) == 1
