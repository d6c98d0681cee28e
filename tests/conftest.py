"""Shared fixtures for the cache tests."""
from unittest.mock import AsyncMock

import pytest

from cache.redis_manager import set_redis_manager
from config.settings import get_config
from tests.mock_store import MockRedisStore


@pytest.fixture
def store():
    """Install an empty in-memory store for the test."""
    mock_store = MockRedisStore()
    set_redis_manager(mock_store)
    yield mock_store
    set_redis_manager(None)


@pytest.fixture
def failing_store():
    """Install a store whose every operation raises."""
    broken = AsyncMock()
    for name in ("get", "set", "delete", "exists", "ttl", "scan", "pipeline_delete"):
        getattr(broken, name).side_effect = ConnectionError("redis is down")
    set_redis_manager(broken)
    yield broken
    set_redis_manager(None)


@pytest.fixture
def config():
    """The process-wide config; change it with monkeypatch.setattr."""
    return get_config()
