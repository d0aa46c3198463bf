"""Storage layer for feed_shelf."""

from .article_store import ArticleStore
from .codec import decode, encode, filename_for, slugify
from .directory import SourceDirectory, close_directory, get_directory
from .write_back import WriteBackQueue

__all__ = [
    "ArticleStore",
    "SourceDirectory",
    "WriteBackQueue",
    "close_directory",
    "decode",
    "encode",
    "filename_for",
    "get_directory",
    "slugify",
]
