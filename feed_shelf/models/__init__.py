"""Data models for feed_shelf."""
