"""Shared fixtures for feed_shelf tests."""

import pytest


@pytest.fixture
def anyio_backend():
    """The storage layer is built on asyncio."""
    return "asyncio"
