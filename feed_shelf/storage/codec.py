"""Article serialization for on-disk storage.

Each article is stored as one UTF-8 JSON file. File and directory names are
derived with the same transform: ``slugify`` for source titles and
``filename_for`` for article URLs.
"""

import hashlib
import json
from datetime import datetime
from urllib.parse import quote

from feed_shelf.errors import ArticleDecodeError
from feed_shelf.models.schemas import Article

# Longest name produced without hashing. Most filesystems allow 255 bytes.
MAX_NAME_LENGTH = 200

# Never produced by quote(..., safe=""), so hashed and plain names cannot collide.
HASH_SEPARATOR = "+"

_FIELDS = ("url", "title", "content", "fetched_at", "read")


def slugify(text: str) -> str:
    """Derive a filesystem-safe name from arbitrary text.

    Distinct inputs give distinct names and the same input always gives the
    same name. Long inputs are shortened and suffixed with their SHA-256.

    Raises:
        ValueError: If text is empty
    """
    if not text:
        raise ValueError("Cannot derive a file name from an empty string")

    name = quote(text, safe="")
    # Keep ".", ".." and hidden-file names out of the directory listing.
    if name.startswith("."):
        name = "%2E" + name[1:]

    if len(name) > MAX_NAME_LENGTH:
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
        prefix = name[: MAX_NAME_LENGTH - len(digest) - 1]
        # Don't cut a %XX escape in half
        cut = prefix.rfind("%", len(prefix) - 2)
        if cut != -1:
            prefix = prefix[:cut]
        name = prefix + HASH_SEPARATOR + digest

    return name


def filename_for(url: str) -> str:
    """File name under which the article with this URL is stored."""
    return slugify(url)


def encode(article: Article) -> bytes:
    """Serialize an article to bytes."""
    payload = {
        "url": article.url,
        "title": article.title,
        "content": article.content,
        "fetched_at": article.fetched_at.isoformat(),
        "read": article.read,
    }
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def decode(data: bytes) -> Article:
    """Deserialize an article.

    Raises:
        ArticleDecodeError: If the data is not a valid encoded article
    """
    try:
        payload = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArticleDecodeError(f"Invalid article data: {e}") from e

    if not isinstance(payload, dict):
        raise ArticleDecodeError("Article data must be a JSON object")

    missing = [name for name in _FIELDS if name not in payload]
    if missing:
        raise ArticleDecodeError(f"Article data is missing fields: {', '.join(missing)}")

    url, title, read = payload["url"], payload["title"], payload["read"]
    if not isinstance(url, str) or not url:
        raise ArticleDecodeError("Article url must be a non-empty string")
    if not isinstance(title, str):
        raise ArticleDecodeError("Article title must be a string")
    if not isinstance(read, bool):
        raise ArticleDecodeError("Article read flag must be a boolean")

    try:
        fetched_at = datetime.fromisoformat(payload["fetched_at"])
    except (TypeError, ValueError) as e:
        raise ArticleDecodeError(f"Invalid fetched_at timestamp: {payload['fetched_at']!r}") from e
    if fetched_at.tzinfo is None:
        raise ArticleDecodeError(f"fetched_at has no timezone: {payload['fetched_at']!r}")

    return Article(
        url=url,
        title=title,
        content=payload["content"],
        fetched_at=fetched_at,
        read=read,
    )
