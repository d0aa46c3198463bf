"""feed_shelf - a self-hosted feed reader that keeps articles on local disk."""

__version__ = "0.1.0"
