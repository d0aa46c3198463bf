"""Exceptions raised by the feed_shelf storage layer."""


class FeedShelfError(Exception):
    """Base class for feed_shelf errors."""


class ArticleNotFoundError(FeedShelfError, LookupError):
    """No article with the given URL exists in the source."""

    def __init__(self, source: str, url: str):
        super().__init__(f"Article '{url}' not found in source '{source}'")
        self.source = source
        self.url = url


class DuplicateArticleError(FeedShelfError):
    """An article with the same URL is already stored in the source."""

    def __init__(self, source: str, url: str):
        super().__init__(f"Article '{url}' already exists in source '{source}'")
        self.source = source
        self.url = url


class ArticleDecodeError(FeedShelfError, ValueError):
    """Persisted article data could not be decoded."""


class SourceNotFoundError(FeedShelfError, LookupError):
    """No source with the given title is configured."""

    def __init__(self, title: str):
        super().__init__(f"Source '{title}' not found")
        self.title = title


class SourceExistsError(FeedShelfError):
    """A source with the same title (or the same directory) already exists."""

    def __init__(self, title: str):
        super().__init__(f"Source '{title}' already exists")
        self.title = title


class SourceRenameError(FeedShelfError):
    """Renaming a source's data directory failed."""


class WriteBackClosedError(FeedShelfError):
    """A write was submitted after the write-back queue was closed."""


class SourceDirectoryClosedError(FeedShelfError):
    """A source was added after the source directory was closed."""
